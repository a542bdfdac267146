"""Compare primary filesystems with their archive mirrors.

The comparison works on the mounted trees: every path of the primary is
looked up below the mirror's mount point and reported when it was added,
removed or modified since the last backup.
"""

import hashlib
import logging
import os
import stat
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .. import __util__
from ..__util__ import NotFoundError, ParseError, ProcessExecutionError, ValidationError
from ..context import RunContext
from ..zfs.filesystem import ZfsFilesystem

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class DiffKind(Enum):
    """Kind of difference of one path."""

    ADDED = "+"
    REMOVED = "-"
    MODIFIED = "M"


@dataclass(frozen=True)
class DiffEntry:
    kind: DiffKind
    path: str

    def __str__(self) -> str:
        return f" {self.kind.value} {self.path}"


@dataclass
class DiffReport:
    """Differences between one primary filesystem and its mirror.

    Paths are absolute paths on the primary side. Directories get a
    trailing slash.
    """

    primary: str
    archive: str = ""
    archived: bool = True
    entries: list[DiffEntry] = field(default_factory=list)
    new_datasets: list[str] = field(default_factory=list)
    skipped_reason: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return bool(self.entries or self.new_datasets)

    @property
    def ok(self) -> bool:
        return self.skipped_reason is None and not self.errors

    def paths(self, kind: DiffKind) -> list[str]:
        return [e.path for e in self.entries if e.kind is kind]


def file_digest(path: str) -> bytes:
    """SHA-512 digest over the full content of a file."""
    digest = hashlib.sha512()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.digest()


def _file_type(mode: int) -> int:
    return stat.S_IFMT(mode)


class TreeComparer:
    """Walk a primary directory tree side by side with its mirror.

    Directories found only on the primary are reported once and not
    descended. Paths listed in ``excludes`` (mount points of other
    datasets) are skipped together with everything below them.
    """

    def __init__(self, report: DiffReport, excludes: Iterable[str] = ()) -> None:
        self.report = report
        self.excludes = {os.path.normpath(p) for p in excludes}

    def compare(self, one: str, another: str) -> None:
        one = os.path.normpath(one)
        another = os.path.normpath(another)
        if one in self.excludes:
            logger.debug("Excluded from comparing: %s", one)
            return

        try:
            one_entries = self._scan(one)
            another_entries = self._scan(another)
        except OSError as e:
            self._error(f"Cannot read directory: {e}")
            return

        for name in sorted(another_entries.keys() - one_entries.keys()):
            path = os.path.join(one, name)
            if path in self.excludes:
                continue
            self._add(DiffKind.REMOVED, path, another_entries[name])

        for name, entry in sorted(one_entries.items()):
            path = os.path.join(one, name)
            if path in self.excludes:
                continue
            other = another_entries.get(name)
            if other is None:
                self._add(DiffKind.ADDED, path, entry)
                continue
            try:
                self._compare_entry(path, entry, other)
            except OSError as e:
                self._error(f"Cannot compare {path}: {e}")

    def _scan(self, directory: str) -> dict[str, os.DirEntry]:
        with os.scandir(directory) as it:
            return {entry.name: entry for entry in it}

    def _compare_entry(self, path: str, one: os.DirEntry, another: os.DirEntry) -> None:
        one_is_dir = one.is_dir(follow_symlinks=False)
        another_is_dir = another.is_dir(follow_symlinks=False)
        if one_is_dir and another_is_dir:
            self.compare(one.path, another.path)
            return
        if one_is_dir != another_is_dir:
            self._add(DiffKind.MODIFIED, path, one)
            return

        one_mode = one.stat(follow_symlinks=False).st_mode
        another_mode = another.stat(follow_symlinks=False).st_mode
        if _file_type(one_mode) != _file_type(another_mode):
            self._add(DiffKind.MODIFIED, path, one)
        elif stat.S_ISLNK(one_mode):
            if os.readlink(one.path) != os.readlink(another.path):
                self._add(DiffKind.MODIFIED, path, one)
        elif stat.S_ISREG(one_mode):
            if file_digest(one.path) != file_digest(another.path):
                self._add(DiffKind.MODIFIED, path, one)
        # sockets, fifos and devices only compare by type

    def _add(self, kind: DiffKind, path: str, entry: os.DirEntry) -> None:
        if entry.is_dir(follow_symlinks=False):
            path = os.path.join(path, "")
        self.report.entries.append(DiffEntry(kind, path))

    def _error(self, message: str) -> None:
        logger.error(message)
        self.report.errors.append(message)


class DiffEngine:
    """Show what changed on primary filesystems since their latest backup."""

    def __init__(self, context: RunContext) -> None:
        self.context = context

    def run(self, targets: Iterable[str], archive: str) -> list[DiffReport]:
        logger.info(__util__.log_heading(f"Diff started at {time.ctime()}"))
        reports = []
        seen: set[str] = set()

        for target in targets:
            report = DiffReport(primary=target)
            try:
                if target in seen:
                    raise ValidationError(f"A primary ZFS filesystem is duplicated: {target}")
                seen.add(target)
                primary = self.context.filesystem(target).require_exists("A primary ZFS filesystem")
                archive_root = self.context.filesystem(archive).require_exists(
                    "An archive ZFS filesystem"
                )
                self.diff(primary, archive_root, report)
            except (ValidationError, NotFoundError) as e:
                logger.error("Skipping %s: %s", target, e)
                report.skipped_reason = str(e)
            except (ProcessExecutionError, ParseError) as e:
                logger.error("Diff of %s aborted: %s", target, e)
                report.skipped_reason = str(e)
            reports.append(report)

        return reports

    def diff(
        self,
        primary: ZfsFilesystem,
        archive_root: ZfsFilesystem,
        report: Optional[DiffReport] = None,
    ) -> DiffReport:
        """Compare ``primary`` and its descendants with their mirrors."""
        console = self.context.console
        report = report or DiffReport(primary=primary.name)
        logger.info("Start to diff: from [%s] to [%s]", primary.name, archive_root.name)

        archive = archive_root.open_child(primary.name)
        report.archive = archive.name
        if not archive.exists():
            console.print(f"{primary.name} is not yet archived on {archive_root.name}")
            report.archived = False
            return report

        if not primary.mounted(recursive=True):
            report.skipped_reason = (
                f"The primary ZFS filesystem contains unmounted filesystems: {primary.name}"
            )
            logger.warning(report.skipped_reason)
            return report
        if not archive.mounted(recursive=True):
            report.skipped_reason = (
                f"The archive ZFS dataset contains unmounted filesystems: {archive.name}"
            )
            logger.warning(report.skipped_reason)
            return report

        console.print(f"Printing the differences of {primary.name} and {archive.name}")
        datasets = [primary, *primary.children()]
        mount_points = {fs.name: fs.mount_point for fs in datasets}

        for dataset in datasets:
            mirror = archive_root.open_child(dataset.name)
            if not mirror.exists():
                console.print(f"A new ZFS dataset: {dataset.name}")
                report.new_datasets.append(dataset.name)
                continue

            excludes = [mp for name, mp in mount_points.items() if name != dataset.name]
            before = len(report.entries)
            TreeComparer(report, excludes).compare(mount_points[dataset.name], mirror.mount_point)
            for entry in report.entries[before:]:
                console.print(str(entry), highlight=False, markup=False)

        if not report.has_differences:
            console.print(f"No differences between {primary.name} and {archive.name}")
        return report
