"""Run a disposable InfluxDB instance from the command line.

Boots the same container the test fixtures use, prints how to reach it,
and removes it again on Ctrl-C. Handy for poking at the seeded instance
while writing tests.

Usage:
    python -m influxdb_fixture
    python -m influxdb_fixture --timeout 120 --log-level DEBUG
    python -m influxdb_fixture --image registry.local/influxdb:v2.0.2 --substitute
"""

import argparse
import logging
import sys
import threading

from foundation.logger import configure_logging

from .config import InfluxDBFixtureConfig
from .container import InfluxDBFixture
from .exceptions import FixtureError

logger = logging.getLogger("influxdb_fixture.cli")

# 128 + SIGINT, as shells report a Ctrl-C'd command
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m influxdb_fixture",
        description="Start a disposable, pre-seeded InfluxDB container and keep it running until interrupted.",
    )
    parser.add_argument("--image", help="Image to start instead of the pinned one")
    parser.add_argument(
        "--substitute",
        action="store_true",
        help="Declare --image a compatible substitute for the pinned image",
    )
    parser.add_argument("--timeout", type=float, help="Seconds to wait for readiness")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    return parser


def main(argv: list[str] | None = None, stop_event: threading.Event | None = None) -> int:
    """Entry point.

    Args:
        argv: Command line arguments. Default: ``sys.argv[1:]``.
        stop_event: Event that ends the run when set. Default: wait for Ctrl-C.

    Returns:
        Process exit code: 0 after a clean stop, 1 on fixture errors,
        130 when interrupted before the instance was ready.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = InfluxDBFixtureConfig.from_env()
        overrides: dict[str, object] = {}
        if args.image:
            overrides["image"] = args.image
            overrides["image_is_substitute"] = args.substitute
        if args.timeout is not None:
            overrides["startup_timeout"] = args.timeout
        if overrides:
            config = InfluxDBFixtureConfig.model_validate({**config.model_dump(), **overrides})
        fixture = InfluxDBFixture.configure(config)
    except (ValueError, FixtureError) as e:
        logger.error("Invalid fixture configuration", extra={"error": str(e)})
        return 1

    try:
        handle = fixture.start()
    except FixtureError as e:
        logger.error("InfluxDB fixture failed", extra={"error": str(e), "error_type": type(e).__name__})
        return 1
    except KeyboardInterrupt:
        # start() has already removed the container
        logger.warning("Interrupted while starting InfluxDB fixture")
        return EXIT_INTERRUPTED

    with fixture:
        print(f"url:          {handle.url}")
        print(f"username:     {config.username}")
        print(f"password:     {config.password}")
        print(f"token:        {config.token}")
        print(f"organization: {config.organization}")
        print(f"bucket:       {config.bucket}")
        print("Press Ctrl-C to stop.", flush=True)
        try:
            (stop_event or threading.Event()).wait()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
