"""Snapshot command: Take and purge snapshots, or list them."""

import argparse
import logging

from rich.table import Table

from .. import __util__
from ..core.rotation import SnapshotRotation
from ..retention import format_retention_summary
from ..snapshot import Generations
from .common import prepare_run

logger = logging.getLogger(__name__)


def build_generations_table(target: str, generations: Generations) -> Table:
    """Rich table of the snapshots of one filesystem, newest first."""
    table = Table(title=f"'{target}' has the following snapshots")
    table.add_column("Generation", style="cyan", no_wrap=True)
    table.add_column("Snapshot", no_wrap=True)
    table.add_column("Created", style="green", no_wrap=True)

    for label, snapshots in (
        ("young", generations.young),
        ("middle", generations.middle),
        ("old", generations.old),
    ):
        for snapshot in reversed(snapshots):
            table.add_row(label, snapshot.name, snapshot.created.strftime("%Y-%m-%d %H:%M:%S"))
    return table


def execute_snapshot(args: argparse.Namespace) -> int:
    """Execute the snapshot command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    context = prepare_run(args)
    if context is None:
        return 1

    rotation = SnapshotRotation(context)

    if args.list:
        ok = True
        for target, generations, error in rotation.generations(args.targets):
            if generations is None:
                ok = False
                continue
            context.console.print(build_generations_table(target, generations))
        return 0 if ok else 1

    if context.dry_run:
        logger.info("Dry run mode - no snapshot will be taken or purged")
    else:
        check = __util__.check_privileges()
        if not check.granted:
            logger.error("Cannot take snapshots: %s", check.reason)
            return 1

    logger.info("Retention: %s", format_retention_summary(context.config.retention))
    results = rotation.run(args.targets)
    return 0 if all(r.ok for r in results) else 1
