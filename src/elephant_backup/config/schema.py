"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..snapshot import DEFAULT_PREFIX

DEFAULT_LOG_FILE = "/var/log/elephant-backup.log"


@dataclass
class RetentionConfig:
    """Generational retention policy for elephant-backup snapshots.

    Attributes:
        keep_hours: Keep every snapshot younger than this many hours
        keep_days: Keep one snapshot per day until this many days old
        keep_weeks: Keep at most this many weekly snapshots beyond that
    """

    keep_hours: int = 24
    keep_days: int = 30
    keep_weeks: int = 104


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        snapshot_prefix: Prefix of the names of snapshots taken by elephant-backup
        zfs_command: The zfs executable to run
        log_file: Path to log file (empty for no file logging)
        log_file_size: Maximum size of the log file in bytes
    """

    snapshot_prefix: str = DEFAULT_PREFIX
    zfs_command: str = "zfs"
    log_file: Optional[str] = DEFAULT_LOG_FILE
    log_file_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Global settings
        retention: Snapshot retention policy
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
