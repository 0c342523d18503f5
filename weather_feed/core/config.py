"""Service configuration: defaults, environment (.env) and validation."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from .logging_utils import get_module_logger

logger = get_module_logger("Config")

DEFAULT_IFACE = "0.0.0.0"
DEFAULT_PORT = 8000
DEFAULT_FREQUENCY_MS = 2000
DEFAULT_DELAY_PROB = 0.2
DEFAULT_ERROR_PROB = 0.1

MIN_PORT = 1025
MAX_PORT = 65535

# Environment variable -> FeedConfig field
ENV_FIELDS = {
    "IFACE": "iface",
    "PORT": "port",
    "FREQUENCY": "frequency_ms",
    "DELAY_PROB": "delay_probability",
    "ERROR_PROB": "error_probability",
    "SIMULATE_FAILURES": "simulate_failures",
    "SIMULATE_DELAYS": "simulate_delays",
}


class ConfigError(ValueError):
    """Raised when a configuration value is out of range."""


@dataclass(frozen=True)
class FeedConfig:
    iface: str = DEFAULT_IFACE
    port: int = DEFAULT_PORT
    simulate_failures: bool = True
    simulate_delays: bool = True
    frequency_ms: int = DEFAULT_FREQUENCY_MS
    delay_probability: float = DEFAULT_DELAY_PROB
    error_probability: float = DEFAULT_ERROR_PROB

    def validate(self) -> "FeedConfig":
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise ConfigError(
                f"Invalid port (must be between {MIN_PORT} and {MAX_PORT}): {self.port}"
            )
        if self.frequency_ms <= 0:
            raise ConfigError(f"Frequency must be a positive number of milliseconds: {self.frequency_ms}")
        for name in ("delay_probability", "error_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1]: {value}")
        return self

    def merged(self, overrides: Mapping[str, Any]) -> "FeedConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off")


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_STRINGS:
        return True
    if normalized in _FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce(field_name: str, raw: str) -> Any:
    target = type(getattr(FeedConfig(), field_name))
    if target is bool:
        return _parse_bool(raw)
    if target is int:
        return int(raw, 10)
    if target is float:
        return float(raw)
    return raw.strip()


def config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    *,
    dotenv_path: Optional[Path] = None,
    load_dotenv_file: bool = True,
) -> Dict[str, Any]:
    """Collect FeedConfig overrides from the environment.

    When ``environ`` is not given, a ``.env`` file is loaded into
    ``os.environ`` first (existing variables win). Values that fail to
    parse are logged and skipped.
    """
    if environ is None:
        if load_dotenv_file:
            load_dotenv(dotenv_path=dotenv_path, override=False)
        environ = os.environ

    overrides: Dict[str, Any] = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            overrides[field_name] = _coerce(field_name, raw)
        except ValueError:
            logger.warning("Ignoring unparsable %s=%r", env_name, raw)
    return overrides


__all__ = [
    "ConfigError",
    "FeedConfig",
    "config_from_env",
]
