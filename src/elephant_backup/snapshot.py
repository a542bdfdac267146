"""Snapshot names and per-filesystem snapshot lists.

A snapshot taken by elephant-backup is named
``<prefix>-<YYYY>-<MM>-<DD>-<HHMMSS>`` with the local wall-clock time it was
taken at, e.g. ``elephant-backup-2022-08-29-153407``. Names that do not follow
this grammar belong to somebody else and are never touched.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Iterable, Iterator, NamedTuple, Optional

from .__util__ import ParseError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "elephant-backup"
TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M%S"


@lru_cache(maxsize=None)
def _name_pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(prefix)}-(\d{{4}}-\d{{2}}-\d{{2}}-\d{{6}})$")


@dataclass(frozen=True)
class Snapshot:
    """A validated elephant-backup snapshot name.

    Two snapshots are equal if and only if their names are equal.
    """

    name: str
    prefix: str = field(default=DEFAULT_PREFIX, compare=False)
    created: datetime = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        match = _name_pattern(self.prefix).match(self.name)
        if not match:
            raise ValidationError(f"Snapshot is not elephant-backup's: {self.name}")
        try:
            created = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
        except ValueError as e:
            raise ValidationError(f"Invalid snapshot time in {self.name}: {e}") from e
        object.__setattr__(self, "created", created)

    @classmethod
    def create(cls, now: datetime, prefix: str = DEFAULT_PREFIX) -> "Snapshot":
        """Snapshot named after the given instant (whole seconds)."""
        return cls(f"{prefix}-{now.strftime(TIMESTAMP_FORMAT)}", prefix)

    @staticmethod
    def is_valid_name(name: str, prefix: str = DEFAULT_PREFIX) -> bool:
        try:
            Snapshot(name, prefix)
        except ValidationError:
            return False
        return True

    def to_name(self) -> str:
        """Rebuild the name from prefix and creation time."""
        return f"{self.prefix}-{self.created.strftime(TIMESTAMP_FORMAT)}"

    def age(self, now: datetime) -> timedelta:
        return now - self.created

    def __str__(self) -> str:
        return self.name


class Generations(NamedTuple):
    """Snapshots of one filesystem bucketed by age, each oldest first."""

    young: list[Snapshot]
    middle: list[Snapshot]
    old: list[Snapshot]


class SnapshotList:
    """Snapshot names of exactly one filesystem in ascending creation order.

    The order is the order reported by the storage engine; it is not
    re-sorted here.
    """

    def __init__(self, filesystem: str, names: Iterable[str] = ()) -> None:
        self.filesystem = filesystem
        self._names = list(names)
        logger.debug("Snapshots on %s: %s", filesystem, self._names)

    @classmethod
    def from_listing(cls, filesystem: str, lines: Iterable[str]) -> "SnapshotList":
        """Build from ``filesystem@snapshot`` lines."""
        names = []
        for line in lines:
            owner, sep, name = line.strip().partition("@")
            if not sep or not name:
                raise ParseError(f"Not a snapshot: {line!r}")
            if owner != filesystem:
                raise ParseError(
                    f"Snapshot {line!r} does not belong to filesystem {filesystem}"
                )
            names.append(name)
        return cls(filesystem, names)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __repr__(self) -> str:
        return f"SnapshotList({self.filesystem!r}, {self._names!r})"

    def earliest(self) -> Optional[str]:
        return self._names[0] if self._names else None

    def latest(self) -> Optional[str]:
        return self._names[-1] if self._names else None

    def find_latest_common(self, other: "SnapshotList") -> Optional[str]:
        """Latest snapshot of this list, in this list's order, also in ``other``.

        Returns None if the lists have nothing in common.
        """
        others = set(other)
        for name in reversed(self._names):
            if name in others:
                logger.debug("The latest of the common snapshots: %s", name)
                return name
        logger.debug("No common snapshot between %s and %s", self.filesystem, other.filesystem)
        return None

    def snapshots(self, prefix: str = DEFAULT_PREFIX) -> list[Snapshot]:
        """Own snapshots of this list, skipping foreign names."""
        return [Snapshot(name, prefix) for name in self._names if Snapshot.is_valid_name(name, prefix)]

    def by_generation(
        self,
        now: datetime,
        keep_hours: int,
        keep_days: int,
        prefix: str = DEFAULT_PREFIX,
    ) -> Generations:
        """Bucket own snapshots into young, middle and old generations.

        young: age < keep_hours hours
        middle: keep_hours hours <= age < keep_days days
        old: age >= keep_days days
        """
        hour_window = timedelta(hours=keep_hours)
        day_window = timedelta(days=keep_days)

        generations = Generations([], [], [])
        for snapshot in self.snapshots(prefix):
            age = snapshot.age(now)
            if age < hour_window:
                generations.young.append(snapshot)
            elif age < day_window:
                generations.middle.append(snapshot)
            else:
                generations.old.append(snapshot)
        return generations
