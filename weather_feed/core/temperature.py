"""Simulated ambient temperature."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional, Protocol

SECONDS_PER_DAY = 24 * 60 * 60
PEAK_HOUR = 15


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


class TemperatureModel:
    """Diurnal sine wave peaking mid-afternoon, with optional bounded noise.

    Without a random source the reading is a pure function of the
    timestamp's local time of day.
    """

    def __init__(
        self,
        baseline: float = 22.0,
        amplitude: float = 8.0,
        noise: float = 0.3,
        rng: Optional[RandomSource] = None,
    ) -> None:
        if amplitude < 0 or noise < 0:
            raise ValueError("Amplitude and noise must be non-negative")
        self.baseline = baseline
        self.amplitude = amplitude
        self.noise = noise
        self._rng = rng

    @property
    def bounds(self) -> tuple[float, float]:
        spread = self.amplitude + (self.noise if self._rng is not None else 0.0)
        return self.baseline - spread, self.baseline + spread

    def value_at(self, timestamp: datetime) -> float:
        seconds = timestamp.hour * 3600 + timestamp.minute * 60 + timestamp.second
        phase = 2 * math.pi * (seconds - PEAK_HOUR * 3600) / SECONDS_PER_DAY
        value = self.baseline + self.amplitude * math.cos(phase)
        if self._rng is not None and self.noise:
            value += self._rng.uniform(-self.noise, self.noise)
        low, high = self.bounds
        return round(min(max(value, low), high), 2)
