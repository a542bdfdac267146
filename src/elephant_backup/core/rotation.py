"""Take snapshots on primary filesystems and thin out the old ones."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..__util__ import NotFoundError, ParseError, ProcessExecutionError, ValidationError
from ..context import RunContext
from ..retention import PurgeResult, purge_snapshots
from ..snapshot import Generations
from ..zfs.filesystem import ZfsFilesystem

logger = logging.getLogger(__name__)


@dataclass
class RotationResult:
    """Outcome of rotating the snapshots of one filesystem."""

    target: str
    snapshot: Optional[str] = None
    purge: Optional[PurgeResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and (self.purge is None or self.purge.ok)


class SnapshotRotation:
    """Snapshot-only operation: a new snapshot, then the retention sweep."""

    def __init__(self, context: RunContext) -> None:
        self.context = context

    def _filesystems(self, targets: Iterable[str]):
        seen: set[str] = set()
        for target in targets:
            try:
                if target in seen:
                    raise ValidationError(f"A ZFS filesystem is duplicated: {target}")
                seen.add(target)
                yield target, self.context.filesystem(target).require_exists(), None
            except (ValidationError, NotFoundError) as e:
                logger.error("Skipping %s: %s", target, e)
                yield target, None, str(e)

    def run(self, targets: Iterable[str]) -> list[RotationResult]:
        results = []
        for target, filesystem, error in self._filesystems(targets):
            result = RotationResult(target=target, error=error)
            if filesystem is not None:
                try:
                    self.rotate(filesystem, result)
                except (ProcessExecutionError, ParseError) as e:
                    logger.error("Snapshot of %s aborted: %s", target, e)
                    result.error = str(e)
            results.append(result)
        return results

    def rotate(
        self, filesystem: ZfsFilesystem, result: Optional[RotationResult] = None
    ) -> RotationResult:
        """Take a new snapshot on ``filesystem`` and purge the expired ones."""
        result = result or RotationResult(target=filesystem.name)
        logger.info("Take a snapshot on '%s'", filesystem.name)
        result.snapshot = filesystem.take_snapshot()
        result.purge = purge_snapshots(
            filesystem,
            self.context.config.retention,
            self.context.clock(),
            self.context.prefix,
        )
        return result

    def generations(self, targets: Iterable[str]) -> list[tuple[str, Optional[Generations], Optional[str]]]:
        """Snapshots of each target grouped by retention generation.

        Returns:
            List of (target, generations, error) tuples
        """
        retention = self.context.config.retention
        now = self.context.clock()
        listing = []
        for target, filesystem, error in self._filesystems(targets):
            if filesystem is None:
                listing.append((target, None, error))
                continue
            try:
                snapshots = filesystem.get_snapshot_list()
            except (ProcessExecutionError, ParseError) as e:
                logger.error("Cannot list the snapshots of %s: %s", target, e)
                listing.append((target, None, str(e)))
                continue
            generations = snapshots.by_generation(
                now, retention.keep_hours, retention.keep_days, self.context.prefix
            )
            listing.append((target, generations, None))
        return listing
