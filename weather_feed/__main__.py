"""Allow ``python -m weather_feed`` to launch the feed server."""

from __future__ import annotations

import sys

from weather_feed import run


def main() -> None:
    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
