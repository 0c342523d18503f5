"""Deterministic stand-ins for the feed session's collaborators."""

from .feed_mocks import (
    FakeHandle,
    FakeScheduler,
    FixedJitter,
    MidpointUniform,
    RecordingTransport,
    ScriptedRandom,
    SteppingClock,
)

__all__ = [
    "FakeHandle",
    "FakeScheduler",
    "FixedJitter",
    "MidpointUniform",
    "RecordingTransport",
    "ScriptedRandom",
    "SteppingClock",
]
