"""Core operations of elephant-backup: backup, diff and snapshot rotation."""

from .backup import BackupOrchestrator, BackupResult
from .diff import DiffEngine, DiffEntry, DiffKind, DiffReport, TreeComparer
from .rotation import RotationResult, SnapshotRotation

__all__ = [
    "BackupOrchestrator",
    "BackupResult",
    "DiffEngine",
    "DiffEntry",
    "DiffKind",
    "DiffReport",
    "TreeComparer",
    "RotationResult",
    "SnapshotRotation",
]
