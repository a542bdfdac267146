"""Shared CLI utilities and argument parsers."""

import argparse
import logging
from typing import Any, Optional

from rich.console import Console

from .. import __logger__
from ..__logger__ import add_log_file, create_logger
from ..config import Config, ConfigError, find_config_file, load_config
from ..context import RunContext

logger = logging.getLogger(__name__)


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    # leave the values given before the subcommand in place
    add_verbosity_args(parser, default=argparse.SUPPRESS)
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser, default: Any = False) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Enable verbose output, including transfer progress",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        default=default,
        help="Enable debug output",
    )


def add_target_args(parser: argparse.ArgumentParser, archive: bool = True) -> None:
    """Add the primary targets (and the archive root) to a parser."""
    parser.add_argument(
        "targets",
        nargs="+",
        metavar="TARGET",
        help="Primary ZFS pool or dataset",
    )
    if archive:
        parser.add_argument(
            "-a",
            "--archive",
            required=True,
            metavar="ARCHIVE",
            help="ZFS pool or dataset holding the archive mirrors",
        )


def add_dry_run_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_effective_config(args: argparse.Namespace) -> Config:
    """Load the configuration file, or the defaults if there is none.

    Raises:
        ConfigError: If the file is invalid
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        return Config()

    logger.debug("Loading configuration from: %s", config_path)
    config, warnings = load_config(config_path)
    for warning in warnings:
        logger.warning("Config: %s", warning)
    return config


def prepare_run(
    args: argparse.Namespace, console: Optional[Console] = None
) -> Optional[RunContext]:
    """Set up logging and build the run context for a subcommand.

    Returns:
        The run context, or None if the configuration is invalid
    """
    create_logger(level=get_log_level(args), console=console)

    try:
        config = load_effective_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return None

    log_file = config.global_config.log_file
    if log_file:
        try:
            add_log_file(log_file, config.global_config.log_file_size)
        except OSError as e:
            logger.warning("Cannot write the log file %s: %s", log_file, e)

    return RunContext(
        config=config,
        dry_run=getattr(args, "dry_run", False),
        verbose=getattr(args, "verbose", False),
        console=__logger__.cons,
    )
