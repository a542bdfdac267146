"""CLI dispatcher: argument parsing and routing to the subcommands."""

import argparse
import sys
from typing import Callable

from .. import PROGRAM_NAME
from .common import (
    add_dry_run_arg,
    add_target_args,
    add_verbosity_args,
    create_global_parser,
)


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Incremental backup, diff and snapshot retention for ZFS filesystems",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    global_parser = create_global_parser()
    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        parents=[global_parser],
        help="Back up primary filesystems to an archive",
        description="Take a snapshot on each primary and send it to its archive mirror",
    )
    add_target_args(backup_parser)
    add_dry_run_arg(backup_parser)

    # diff command
    diff_parser = subparsers.add_parser(
        "diff",
        parents=[global_parser],
        help="Show changes since the latest backup",
        description="Compare the primary filesystems with their archive mirrors",
    )
    add_target_args(diff_parser)

    # snapshot command
    snapshot_parser = subparsers.add_parser(
        "snapshot",
        parents=[global_parser],
        help="Take and purge snapshots",
        description="Take a snapshot and purge the expired ones, or list the snapshots",
    )
    add_target_args(snapshot_parser, archive=False)
    snapshot_parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List the snapshots by generation instead of taking one",
    )
    add_dry_run_arg(snapshot_parser)

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        parents=[global_parser],
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"{PROGRAM_NAME} {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "backup": cmd_backup,
        "diff": cmd_diff,
        "snapshot": cmd_snapshot,
        "config": cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute backup command."""
    from .backup import execute_backup

    return execute_backup(args)


def cmd_diff(args: argparse.Namespace) -> int:
    """Execute diff command."""
    from .diff import execute_diff

    return execute_diff(args)


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Execute snapshot command."""
    from .snapshot import execute_snapshot

    return execute_snapshot(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the elephant-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
