"""Flaky weather sensor feed for exercising client resilience logic."""

from __future__ import annotations

import asyncio
import sys
from typing import Optional, Sequence

from ._version import __version__
from .app.main import main


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the feed until interrupted and return a process exit code."""
    try:
        asyncio.run(main(list(argv) if argv is not None else None))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


__all__ = ["__version__", "main", "run"]
