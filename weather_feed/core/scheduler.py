"""Deferred callbacks measured in milliseconds."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol


class CancellableHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def after(self, delay_ms: int, callback: Callable[[], None]) -> CancellableHandle: ...


class LoopScheduler:
    """Scheduler backed by ``loop.call_later`` on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def after(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0, delay_ms) / 1000.0, callback)
