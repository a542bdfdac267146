"""Backup command: Mirror primary filesystems onto an archive."""

import argparse
import logging

from .. import __util__
from ..core.backup import BackupOrchestrator
from .common import prepare_run

logger = logging.getLogger(__name__)


def execute_backup(args: argparse.Namespace) -> int:
    """Execute the backup command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    context = prepare_run(args)
    if context is None:
        return 1

    if context.dry_run:
        logger.info("Dry run mode - no ZFS filesystem will be changed")
    else:
        check = __util__.check_privileges()
        if not check.granted:
            logger.error("Cannot back up: %s", check.reason)
            return 1

    results = BackupOrchestrator(context).run(args.targets, args.archive)

    failed = [r for r in results if not r.ok]
    if failed:
        logger.error(
            "%d of %d backup(s) failed: %s",
            len(failed),
            len(results),
            ", ".join(r.target for r in failed),
        )
        return 1
    return 0
