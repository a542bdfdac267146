"""Core backup operation: mirror primary filesystems onto an archive.

For each primary filesystem a dataset of the same name is kept below the
archive root (``archive/<primary>``). Every backup takes a new snapshot on
the primary and then sends whatever the archive mirror is missing: the
earliest snapshot in full the first time, an incremental range from the
latest common snapshot afterwards.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .. import __util__
from ..__util__ import NotFoundError, ParseError, ProcessExecutionError, ValidationError
from ..context import RunContext
from ..zfs.filesystem import ZfsFilesystem

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Outcome of backing up one primary filesystem.

    Attributes:
        target: Name of the primary filesystem
        archive: Name of the archive mirror
        transfers: (first, last) snapshot ranges sent; last is None for a full send
        up_to_date: Whether the archive ended up current
        error: Why the backup was skipped or aborted
    """

    target: str
    archive: str = ""
    transfers: list[tuple[str, Optional[str]]] = field(default_factory=list)
    up_to_date: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackupOrchestrator:
    """Back up primary filesystems one after another."""

    def __init__(self, context: RunContext) -> None:
        self.context = context

    def run(self, targets: Iterable[str], archive: str) -> list[BackupResult]:
        """Back up every target into ``archive``.

        A target that is missing, duplicated or fails during transfer is
        reported and the remaining targets are still processed.
        """
        logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
        results = []
        seen: set[str] = set()

        for target in targets:
            result = BackupResult(target=target)
            try:
                if target in seen:
                    raise ValidationError(f"A primary ZFS filesystem is duplicated: {target}")
                seen.add(target)
                primary, archive_root = self._check_accessible(target, archive)
                self.backup(primary, archive_root, result)
            except (ValidationError, NotFoundError) as e:
                logger.error("Skipping %s: %s", target, e)
                result.error = str(e)
            except (ProcessExecutionError, ParseError) as e:
                logger.error("Backup of %s aborted: %s", target, e)
                result.error = str(e)
            results.append(result)

        logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
        return results

    def _check_accessible(self, target: str, archive: str) -> tuple[ZfsFilesystem, ZfsFilesystem]:
        primary = self.context.filesystem(target)
        archive_root = self.context.filesystem(archive)
        primary.require_exists("A primary ZFS filesystem")
        archive_root.require_exists("An archive ZFS filesystem")
        if primary == archive_root or archive_root.name.startswith(primary.name + "/"):
            raise ValidationError(
                f"The archive {archive_root.name} must not be inside the primary {primary.name}"
            )
        return primary, archive_root

    def backup(
        self,
        primary: ZfsFilesystem,
        archive_root: ZfsFilesystem,
        result: Optional[BackupResult] = None,
    ) -> BackupResult:
        """Back up the primary filesystem to its mirror below ``archive_root``."""
        console = self.context.console
        result = result or BackupResult(target=primary.name)
        logger.info("Start to back up from [%s] to [%s]", primary.name, archive_root.name)

        # the mirror has the primary's full name below the archive root
        archive = archive_root.open_child(primary.name)
        result.archive = archive.name
        if not archive.exists():
            archive.create()
        # 'recv -d' drops the pool from the sent names and appends the rest
        receive_target = archive_root.open_child(primary.pool)

        primary.take_snapshot()

        primary_snapshots = primary.get_snapshot_list()
        archive_snapshots = archive.get_snapshot_list()
        common = primary_snapshots.find_latest_common(archive_snapshots)

        if common is None:
            earliest = primary_snapshots.earliest()
            if earliest is None:
                raise ParseError(f"No snapshots on {primary.name} after taking one")

            size = primary.estimate_transfer_size(earliest)
            console.print(f"The first backup size of {primary.name}: {size}")
            primary.transfer(receive_target, earliest)
            result.transfers.append((earliest, None))
            common = earliest

        latest = primary_snapshots.latest()
        if common == latest:
            console.print(f"Archive is up to date: {archive.name}")
            result.up_to_date = True
            return result

        size = primary.estimate_transfer_size(common, latest)
        console.print(f"The incremental backup size of {primary.name}: {size}")
        primary.transfer(receive_target, common, latest)
        result.transfers.append((common, latest))
        result.up_to_date = True
        return result
