"""Diff command: Show changes since the latest backup."""

import argparse
import logging

from ..core.diff import DiffEngine
from .common import prepare_run

logger = logging.getLogger(__name__)


def execute_diff(args: argparse.Namespace) -> int:
    """Execute the diff command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    context = prepare_run(args)
    if context is None:
        return 1

    reports = DiffEngine(context).run(args.targets, args.archive)

    errors = sum(len(r.errors) for r in reports)
    if errors:
        logger.warning("%d path(s) could not be compared", errors)
    return 0 if all(r.ok for r in reports) else 1
