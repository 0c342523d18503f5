"""Component-prefixed loggers for the weather feed service.

Every logger lives under the ``weather_feed`` namespace and prefixes its
records with ``[Component]``. A logger bound to a connection prefixes with
``[Component:conn-1@127.0.0.1]`` so per-session lines can be grepped.
"""

from __future__ import annotations

import logging
from typing import Optional

NAMESPACE = "weather_feed"


class FeedLogger:
    """Thin wrapper around a stdlib logger that adds the component prefix."""

    __slots__ = ("_logger", "_component", "_prefix")

    def __init__(self, logger: logging.Logger, component: str, scope: Optional[str] = None) -> None:
        self._logger = logger
        self._component = component
        label = f"{component}:{scope}" if scope else component
        self._prefix = f"[{label}] "

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def component(self) -> str:
        return self._component

    def bind(self, scope: str) -> "FeedLogger":
        """Return a logger whose prefix also names ``scope`` (e.g. a session)."""
        return FeedLogger(self._logger, self._component, scope)

    def _log(self, level: int, message: str, args: tuple, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if args:
            # The prefix becomes part of the %-format string
            self._logger.log(level, self._prefix.replace("%", "%%") + message, *args, **kwargs)
        else:
            self._logger.log(level, self._prefix + message, **kwargs)

    def debug(self, message: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, message, args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self._log(logging.INFO, message, args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, message, args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, message, args, **kwargs)

    def exception(self, message: str, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, args, **kwargs)


def get_module_logger(name: str) -> FeedLogger:
    """Return the logger for ``name`` (a component or a dotted module path)."""
    if name.startswith(NAMESPACE + "."):
        component = name[len(NAMESPACE) + 1:]
    else:
        component = name
    return FeedLogger(logging.getLogger(f"{NAMESPACE}.{component}"), component)


__all__ = ["FeedLogger", "get_module_logger"]
