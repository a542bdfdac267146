"""Generational retention of elephant-backup snapshots.

Snapshots are bucketed by age (see ``SnapshotList.by_generation``):

- young (younger than ``keep_hours``): all kept
- middle (younger than ``keep_days``): one kept per day
- old: one kept per week, and no more than ``keep_weeks`` of those

Only snapshots whose names follow elephant-backup's naming grammar are ever
considered for deletion.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .__util__ import ProcessExecutionError
from .config import RetentionConfig
from .snapshot import DEFAULT_PREFIX, Snapshot, SnapshotList

if TYPE_CHECKING:
    from .zfs.filesystem import ZfsFilesystem

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
WEEK = timedelta(days=7)


@dataclass
class RetentionPlan:
    """Snapshots to keep and to destroy, both oldest first."""

    keep: list[Snapshot] = field(default_factory=list)
    destroy: list[Snapshot] = field(default_factory=list)


@dataclass
class PurgeResult:
    """Outcome of purging one filesystem."""

    filesystem: str
    destroyed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def decimate(snapshots: list[Snapshot], interval: timedelta) -> tuple[list[Snapshot], list[Snapshot]]:
    """Keep at most one snapshot per ``interval``, walking oldest to newest.

    The first snapshot is kept and the next one is kept only once it is at
    least ``interval`` younger than the last kept one.

    Returns:
        Tuple of (kept, dropped)
    """
    kept: list[Snapshot] = []
    dropped: list[Snapshot] = []
    next_keep = datetime.min
    for snapshot in snapshots:
        if snapshot.created >= next_keep:
            kept.append(snapshot)
            next_keep = snapshot.created + interval
        else:
            dropped.append(snapshot)
    return kept, dropped


def plan_retention(
    snapshot_list: SnapshotList,
    retention: RetentionConfig,
    now: datetime,
    prefix: str = DEFAULT_PREFIX,
) -> RetentionPlan:
    """Decide which snapshots of one filesystem may be destroyed."""
    generations = snapshot_list.by_generation(
        now, retention.keep_hours, retention.keep_days, prefix
    )

    middle_kept, middle_dropped = decimate(generations.middle, DAY)
    old_kept, old_dropped = decimate(generations.old, WEEK)

    # cap the weekly survivors, dropping the oldest
    excess = max(len(old_kept) - retention.keep_weeks, 0)
    old_dropped += old_kept[:excess]
    old_kept = old_kept[excess:]

    dropped = {s.name for s in middle_dropped + old_dropped}
    plan = RetentionPlan()
    for snapshot in snapshot_list.snapshots(prefix):
        (plan.destroy if snapshot.name in dropped else plan.keep).append(snapshot)

    logger.debug(
        "Retention on %s: young=%d middle=%d/%d old=%d/%d",
        snapshot_list.filesystem,
        len(generations.young),
        len(middle_kept),
        len(generations.middle),
        len(old_kept),
        len(generations.old),
    )
    return plan


def purge_snapshots(
    filesystem: "ZfsFilesystem",
    retention: RetentionConfig,
    now: datetime,
    prefix: str = DEFAULT_PREFIX,
) -> PurgeResult:
    """Destroy the snapshots of ``filesystem`` that the retention policy drops.

    Each snapshot is destroyed on its own; a failure is logged and the sweep
    goes on with the next one.
    """
    plan = plan_retention(filesystem.get_snapshot_list(), retention, now, prefix)
    result = PurgeResult(filesystem.name)

    logger.info(
        "%s: keeping %d, purging %d snapshot(s)",
        filesystem.name,
        len(plan.keep),
        len(plan.destroy),
    )
    for snapshot in plan.destroy:
        try:
            filesystem.destroy_snapshot(snapshot.name)
            result.destroyed.append(snapshot.name)
        except ProcessExecutionError as e:
            logger.error("Failed to purge %s@%s: %s", filesystem.name, snapshot.name, e)
            result.failed.append(snapshot.name)

    return result


def format_retention_summary(retention: RetentionConfig) -> str:
    """One-line description of a retention policy."""
    return (
        f"all for {retention.keep_hours}h, daily for {retention.keep_days}d, "
        f"weekly up to {retention.keep_weeks}w"
    )
