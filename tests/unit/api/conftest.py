"""Pytest fixtures for feed server tests.

Provides a FeedServer with fast, fault-free defaults plus helpers for
building servers whose sessions use scripted collaborators.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from weather_feed.core.api import FeedServer
from weather_feed.core.config import FeedConfig
from weather_feed.core.session import ConnectionSession


def fast_config(**overrides: Any) -> FeedConfig:
    values = {
        "iface": "127.0.0.1",
        "port": 8000,
        "simulate_failures": False,
        "simulate_delays": False,
        "frequency_ms": 50,
    }
    values.update(overrides)
    return FeedConfig(**values).validate()


def session_factory_with(**collaborators: Any) -> Callable[..., ConnectionSession]:
    """Session factory that injects fixed collaborators into every session."""
    def factory(transport, config, name, on_error) -> ConnectionSession:
        return ConnectionSession(transport, config, name, on_error, **collaborators)
    return factory


@pytest.fixture
def feed_server() -> FeedServer:
    return FeedServer(fast_config())
