"""Unit test fixtures for isolated, fast test execution.

Sessions built here run against a FakeScheduler, a ScriptedRandom and a
RecordingTransport, so every timer firing and every probability draw is
under the test's control.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from weather_feed.core.config import FeedConfig
from weather_feed.core.jitter import JitterClock
from weather_feed.core.session import ConnectionSession
from weather_feed.core.temperature import TemperatureModel
from tests.infrastructure.mocks import (
    FakeScheduler,
    MidpointUniform,
    RecordingTransport,
    ScriptedRandom,
)


FIXED_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_config() -> Callable[..., FeedConfig]:
    """Factory for FeedConfig with every fault disabled unless overridden."""
    def factory(**overrides: Any) -> FeedConfig:
        values = {
            "simulate_failures": False,
            "simulate_delays": False,
            "frequency_ms": 2000,
            "delay_probability": 0.2,
            "error_probability": 0.1,
        }
        values.update(overrides)
        return FeedConfig(**values).validate()
    return factory


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def on_error() -> MagicMock:
    return MagicMock(name="on_error")


@pytest.fixture
def make_session(make_config, scheduler, transport, rng, on_error) -> Callable[..., ConnectionSession]:
    """Factory for a ConnectionSession wired to the deterministic doubles.

    Jitter resolves to the midpoint of its range, so emission re-arms at
    exactly ``frequency_ms`` and forced disconnects at 200s.
    """
    def factory(config: FeedConfig = None, **kwargs: Any) -> ConnectionSession:
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("rng", rng)
        kwargs.setdefault("jitter", JitterClock(MidpointUniform()))
        kwargs.setdefault("temperature", TemperatureModel())
        kwargs.setdefault("clock", lambda: FIXED_TIME)
        return ConnectionSession(
            transport,
            config or make_config(),
            "test-session",
            on_error,
            **kwargs,
        )
    return factory
