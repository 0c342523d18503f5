"""Installed distribution version."""

from importlib import metadata

try:
    __version__ = metadata.version("weather-feed")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"
