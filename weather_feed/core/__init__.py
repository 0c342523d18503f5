"""Core components of the weather feed: session state machine and collaborators."""

from .config import ConfigError, FeedConfig, config_from_env
from .jitter import JitterClock
from .messages import ValidationError, ValidationKind
from .scheduler import LoopScheduler, Scheduler
from .session import ConnectionSession, SubscriptionState
from .temperature import TemperatureModel

__all__ = [
    "ConfigError",
    "ConnectionSession",
    "FeedConfig",
    "JitterClock",
    "LoopScheduler",
    "Scheduler",
    "SubscriptionState",
    "TemperatureModel",
    "ValidationError",
    "ValidationKind",
    "config_from_env",
]
