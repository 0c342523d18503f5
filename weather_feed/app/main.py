import argparse
import asyncio
import signal
from typing import Optional

from weather_feed._version import __version__
from weather_feed.cli.common import add_logging_arguments, port_number, positive_int, probability
from weather_feed.core.api import FeedServer
from weather_feed.core.config import ConfigError, FeedConfig, config_from_env
from weather_feed.core.logging_config import configure_logging
from weather_feed.core.logging_utils import get_module_logger


logger = get_module_logger(__name__)

PROG = "weather-feed"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Flaky weather sensor feed - a WebSocket test double for resilience testing",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "-i", "--iface",
        dest="iface",
        default=None,
        help="The interface the service will listen to for requests",
    )
    parser.add_argument(
        "-p", "--port",
        dest="port",
        type=port_number,
        default=None,
        help="The port number the service will listen to for requests",
    )
    parser.add_argument(
        "-f", "--frequency",
        dest="frequency_ms",
        metavar="MS",
        type=positive_int,
        default=None,
        help="The frequency each temperature message is sent",
    )
    parser.add_argument(
        "-d", "--delay-prob",
        dest="delay_probability",
        metavar="PROB",
        type=probability,
        default=None,
        help="The probability that a message is delayed",
    )
    parser.add_argument(
        "-e", "--error-prob",
        dest="error_probability",
        metavar="PROB",
        type=probability,
        default=None,
        help="The probability that an error occurs",
    )
    parser.add_argument(
        "-E", "--no-env",
        dest="use_env",
        action="store_false",
        default=True,
        help="Ignore the environment and the .env file",
    )
    parser.add_argument(
        "-F", "--no-failures",
        dest="simulate_failures",
        action="store_false",
        default=None,
        help="Don't simulate failures",
    )
    parser.add_argument(
        "-D", "--no-delays",
        dest="simulate_delays",
        action="store_false",
        default=None,
        help="Don't simulate delays",
    )

    add_logging_arguments(parser)
    return parser


def parse_args(argv: Optional[list[str]] = None) -> tuple[argparse.Namespace, FeedConfig]:
    """Parse the command line into a validated FeedConfig.

    Precedence, lowest first: built-in defaults, environment (.env),
    command-line options. Invalid values exit with status 2.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = FeedConfig()
    if args.use_env:
        config = config.merged(config_from_env())

    config = config.merged({
        "iface": args.iface,
        "port": args.port,
        "frequency_ms": args.frequency_ms,
        "delay_probability": args.delay_probability,
        "error_probability": args.error_probability,
        "simulate_failures": args.simulate_failures,
        "simulate_delays": args.simulate_delays,
    })

    try:
        config.validate()
    except ConfigError as exc:
        parser.error(str(exc))

    return args, config


async def main(argv: Optional[list[str]] = None) -> None:
    args, config = parse_args(argv)

    configure_logging(args.log_level, args.log_file)

    logger.info("Weather feed %s starting", __version__)
    logger.info("Configuration: %s", config.to_dict())

    server = FeedServer(config)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    await server.start()
    try:
        await stop_event.wait()
    finally:
        await server.stop()

    logger.info("Weather feed stopped")
