# pyright: standard

"""elephant-backup: elephant_backup/zfs/filesystem.py
ZFS filesystems (pools and datasets) as seen by elephant-backup.
"""

import logging
import time
from typing import TYPE_CHECKING, Optional

from ..__util__ import NotFoundError, ValidationError
from ..pipeline import Stage, StderrPolicy
from ..snapshot import Snapshot, SnapshotList
from .commands import NOT_APPLICABLE, parse_lines, parse_size_token

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger(__name__)


class FilesystemRegistry:
    """The filesystems known to the storage engine during one run.

    The full list is queried once and then kept, so that a run works on one
    consistent view even if other actors change the pools meanwhile.
    Filesystems created by this run are added to the view; in dry-run mode
    they are only provisional and never queried.
    """

    def __init__(self, context: "RunContext") -> None:
        self._context = context
        self._names: Optional[list[str]] = None
        self._provisional: set[str] = set()

    def names(self) -> list[str]:
        if self._names is None:
            cmd = self._context.zfs.list_filesystems()
            output = self._context.executor.run([Stage(cmd)])
            self._names = parse_lines(output)
            logger.debug("ZFS filesystems: %s", self._names)
        return list(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self.names() or name in self._provisional

    def register(self, name: str, provisional: bool = False) -> None:
        """Record a filesystem created during this run."""
        if provisional:
            self._provisional.add(name)
        elif name not in self.names():
            self._names.append(name)  # type: ignore[union-attr]

    def is_provisional(self, name: str) -> bool:
        return name in self._provisional


class ZfsFilesystem:
    """A ZFS pool or dataset, addressed by its full name (e.g. ``tank/home``)."""

    def __init__(self, name: str, context: "RunContext") -> None:
        name = name.strip().strip("/")
        if not name or "@" in name:
            raise ValidationError(f"Not a ZFS filesystem name: {name!r}")
        self._name = name
        self._context = context
        self._mount_point: Optional[str] = None
        # the snapshot 'taken' during a dry run, which does not really exist
        self._provisional_snapshot: Optional[str] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def pool(self) -> str:
        return self._name.split("/", 1)[0]

    @property
    def parent_name(self) -> Optional[str]:
        parent, sep, _ = self._name.rpartition("/")
        return parent if sep else None

    def __repr__(self) -> str:
        return f"ZfsFilesystem({self._name!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ZfsFilesystem) and other.name == self._name

    def __hash__(self) -> int:
        return hash(self._name)

    def exists(self) -> bool:
        """Whether the filesystem is in this run's view of the storage engine."""
        return self._name in self._context.registry

    def require_exists(self, role: str = "ZFS filesystem") -> "ZfsFilesystem":
        if not self.exists():
            raise NotFoundError(f"{role} does not exist: {self._name}")
        return self

    def create(self) -> None:
        """Create this dataset and any missing parents."""
        logger.info("Creating ZFS dataset: %s", self._name)
        cmd = self._context.zfs.create(self._name)
        self._context.mutator.run([Stage(cmd, echo_stdout=True)])
        self._context.registry.register(self._name, provisional=self._context.dry_run)

    def open_child(self, name: str) -> "ZfsFilesystem":
        """The dataset ``<this>/<name>``; it need not exist yet."""
        self.require_exists()
        return ZfsFilesystem(f"{self._name}/{name.strip('/')}", self._context)

    def children(self) -> list["ZfsFilesystem"]:
        """All datasets below this one, recursively, without this one."""
        cmd = self._context.zfs.list_filesystems(self._name, recursive=True)
        names = parse_lines(self._context.executor.run([Stage(cmd)]))
        return [
            ZfsFilesystem(name, self._context)
            for name in names
            if name.startswith(self._name + "/")
        ]

    def get_snapshot_list(self, include_provisional: bool = True) -> SnapshotList:
        """All snapshots of this filesystem in creation order."""
        if self._context.registry.is_provisional(self._name):
            lines = []
        else:
            cmd = self._context.zfs.list_snapshots(self._name)
            lines = parse_lines(self._context.executor.run([Stage(cmd)]))
        snapshots = SnapshotList.from_listing(self._name, lines)

        provisional = self._provisional_snapshot
        if include_provisional and provisional and provisional not in snapshots:
            logger.debug("Adding the dry-run snapshot to the listing: %s", provisional)
            snapshots = SnapshotList(self._name, snapshots.names + [provisional])
        return snapshots

    def take_snapshot(self) -> str:
        """Take a recursive snapshot named after the current time.

        Names have a resolution of one second. If a snapshot with the same
        name already exists, it was taken within this very second and is
        reused instead of failing on the collision.
        """
        snapshot = Snapshot.create(self._context.clock(), self._context.prefix)
        if snapshot.name in self.get_snapshot_list():
            logger.warning(
                "Snapshot %s@%s was already taken this second, reusing it",
                self._name,
                snapshot.name,
            )
            return snapshot.name

        cmd = self._context.zfs.snapshot(self._name, snapshot.name)
        self._context.mutator.run([Stage(cmd)])
        if self._context.dry_run:
            self._provisional_snapshot = snapshot.name

        self._context.console.print(f"Taken the new snapshot: {self._name}@{snapshot.name}")
        return snapshot.name

    def destroy_snapshot(self, snapshot: str) -> None:
        """Recursively destroy one snapshot of this filesystem."""
        cmd = self._context.zfs.destroy(self._name, snapshot)
        self._context.mutator.run([Stage(cmd)])
        self._context.console.print(f"Purged the snapshot: {self._name}@{snapshot}")

    def estimate_transfer_size(self, first: str, last: Optional[str] = None) -> str:
        """Human-readable estimated size of sending ``first`` or ``first..last``."""
        cmd = self._context.zfs.estimate_send(self._name, first, last)
        output = self._context.mutator.run([Stage(cmd, stderr=StderrPolicy.DISCARD)])
        if not output and self._context.dry_run:
            return "unknown"
        return parse_size_token(output)

    def transfer(self, target: "ZfsFilesystem", first: str, last: Optional[str] = None) -> None:
        """Send ``first`` alone, or ``first..last`` incrementally, into ``target``.

        The stream is raw and recursive; received datasets do not inherit the
        mount points of the sent ones.
        """
        verbose = self._context.verbose
        send = Stage(
            self._context.zfs.send(self._name, first, last, verbose=verbose),
            stderr=StderrPolicy.FORWARD if verbose else StderrPolicy.LOG,
        )
        receive = Stage(self._context.zfs.receive(target.name), echo_stdout=True)

        start = time.monotonic()
        self._context.mutator.run([send, receive])
        logger.info(
            "Sent %s@%s%s to %s in %.1fs",
            self._name,
            first,
            f"..{last}" if last else "",
            target.name,
            time.monotonic() - start,
        )

    def get_values(self, prop: str, recursive: bool = False) -> list[str]:
        cmd = self._context.zfs.get(self._name, prop, recursive=recursive)
        return parse_lines(self._context.executor.run([Stage(cmd)]))

    def mounted(self, recursive: bool = False) -> bool:
        """Whether this filesystem (and all below it) is mounted."""
        values = [v for v in self.get_values("mounted", recursive) if v != NOT_APPLICABLE]
        return all(value == "yes" for value in values)

    @property
    def mount_point(self) -> str:
        if self._mount_point is None:
            values = self.get_values("mountpoint")
            if not values:
                raise NotFoundError(f"No mount point reported for {self._name}")
            self._mount_point = values[0]
        return self._mount_point
