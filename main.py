import argparse
import logging
import sys
from typing import List, Optional

import structlog

from aggregator import Aggregator
from config import Settings, get_settings, get_settings_for_environment
from generator import generate_events
from records import InputError, read_events, write_accounts, write_events

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Configure structured logging. Logs always go to stderr."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
        force=True,
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fold a transaction table into one balance row per client"
    )
    parser.add_argument("path", nargs="?", help="Input table with header type,client,tx,amount")
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Write a synthetic input table to stdout instead of reading one",
    )
    parser.add_argument("--num-txns", type=int, default=1000)
    parser.add_argument("--num-clients", type=int, default=10)
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Fold client partitions in the main thread",
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Settings profile: development, production or testing",
    )
    return parser


def run(path: str, settings: Settings) -> int:
    logger.info("Reading transactions", app=settings.app_name, version=settings.app_version, path=path)
    try:
        events = read_events(path)
    except InputError as e:
        logger.error("Reading transactions failed", path=e.path, error=e.detail)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    accounts = Aggregator(settings).process_events(events)
    write_accounts(accounts, sys.stdout)
    logger.info("Done", path=path)
    return 0


def generate(num_txns: int, num_clients: int) -> int:
    logger.info("Generating transactions", num_txns=num_txns, num_clients=num_clients)
    write_events(generate_events(num_txns, num_clients), sys.stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings_for_environment(args.env) if args.env else get_settings()
    if args.sequential:
        settings = settings.model_copy(update={"parallel": False})
    configure_logging(settings)

    if args.generate:
        if not 1 <= args.num_clients <= 65535:
            parser.error("--num-clients must be between 1 and 65535")
        if args.num_txns < 0:
            parser.error("--num-txns cannot be negative")
        return generate(args.num_txns, args.num_clients)

    if not args.path:
        parser.error("the input path is required unless --generate is given")
    return run(args.path, settings)


if __name__ == "__main__":
    sys.exit(main())
