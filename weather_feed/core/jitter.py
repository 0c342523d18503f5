"""Randomized intervals around a nominal duration."""

from __future__ import annotations

import random
from typing import Optional, Protocol


class UniformSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


class JitterClock:
    """Turns a base interval into a jittered one.

    ``next_interval(2000, 0.2)`` yields an integer uniformly spread over
    ``[1600, 2400]``.
    """

    def __init__(self, rng: Optional[UniformSource] = None) -> None:
        self._rng = rng or random.Random()

    def next_interval(self, base_ms: int, precision: float) -> int:
        if base_ms < 0:
            raise ValueError(f"Base interval must be non-negative: {base_ms}")
        if not 0.0 <= precision <= 1.0:
            raise ValueError(f"Precision must be within [0, 1]: {precision}")
        low = base_ms * (1.0 - precision)
        high = base_ms * (1.0 + precision)
        return max(0, int(round(self._rng.uniform(low, high))))
