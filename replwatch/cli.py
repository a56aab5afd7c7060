"""Command-line entry point: load the config file and monitor every target."""

import argparse
import asyncio
import sys
from collections.abc import Sequence

import structlog

from replwatch import __version__
from replwatch.config import LoggingConfig, load_config, load_logging_config_from_env
from replwatch.errors import ConfigError
from replwatch.logging_config import configure_logging
from replwatch.services.supervisor import monitor_targets

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="replwatch",
        description="Watch MariaDB replicas and fix known-recoverable replication errors.",
    )
    parser.add_argument(
        "-c", "--config", default="config.ini", help="Path to config file (default: config.ini)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override LOG_LEVEL",
    )
    parser.add_argument(
        "--log-format", choices=["console", "json"], help="Override LOG_FORMAT"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_logging_config(args: argparse.Namespace) -> LoggingConfig:
    env_config = load_logging_config_from_env()
    return LoggingConfig(
        level=args.log_level or env_config.level,
        format=args.log_format or env_config.format,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging_config = resolve_logging_config(args)
    configure_logging(logging_config)

    try:
        settings = load_config(args.config, logging_config)
    except ConfigError as e:
        logger.error("config_error", error=str(e), path=args.config)
        return 1

    try:
        asyncio.run(monitor_targets(settings))
    except KeyboardInterrupt:
        logger.info("monitoring_interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
