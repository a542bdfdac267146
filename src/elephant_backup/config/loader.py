"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import re
import tomllib
from pathlib import Path
from typing import Any

from .schema import Config, GlobalConfig, RetentionConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "elephant-backup" / "config.toml",
    Path("/etc/elephant-backup/config.toml"),
]

_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]*$")


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _get_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass, but 'true' is never a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"'{key}' must not be negative, got {value}")
    return value


def _get_str(data: dict[str, Any], key: str, default: str | None) -> str | None:
    value = data.get(key, default)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string, got {value!r}")
    return value


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict."""
    defaults = RetentionConfig()
    return RetentionConfig(
        keep_hours=_get_int(data, "keep_hours", defaults.keep_hours),
        keep_days=_get_int(data, "keep_days", defaults.keep_days),
        keep_weeks=_get_int(data, "keep_weeks", defaults.keep_weeks),
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    defaults = GlobalConfig()
    prefix = _get_str(data, "snapshot_prefix", defaults.snapshot_prefix)
    if not prefix or not _PREFIX_PATTERN.match(prefix):
        raise ConfigError(
            f"Invalid snapshot_prefix {prefix!r}: use letters, digits, '_', '.', ':' or '-'"
        )

    zfs_command = _get_str(data, "zfs_command", defaults.zfs_command)
    if not zfs_command:
        raise ConfigError("'zfs_command' must not be empty")

    return GlobalConfig(
        snapshot_prefix=prefix,
        zfs_command=zfs_command,
        log_file=_get_str(data, "log_file", defaults.log_file),
        log_file_size=_get_int(data, "log_file_size", defaults.log_file_size),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []
    retention = config.retention

    if retention.keep_days * 24 <= retention.keep_hours:
        warnings.append(
            f"keep_days ({retention.keep_days}) does not exceed keep_hours "
            f"({retention.keep_hours}); no daily snapshots will be kept"
        )

    if retention.keep_weeks == 0:
        warnings.append("keep_weeks is 0; all snapshots older than keep_days are purged")

    if config.global_config.log_file and config.global_config.log_file_size == 0:
        warnings.append("log_file_size is 0; the log file is emptied on every run")

    return warnings


def parse_config(data: dict[str, Any]) -> tuple[Config, list[str]]:
    """Build and validate a Config from already decoded TOML data."""
    for section in ("global", "retention"):
        if not isinstance(data.get(section, {}), dict):
            raise ConfigError(f"[{section}] must be a table")

    config = Config(
        global_config=_parse_global(data.get("global", {})),
        retention=_parse_retention(data.get("retention", {})),
    )
    return config, _validate_config(config)


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    return parse_config(data)


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# elephant-backup configuration

[global]
snapshot_prefix = "elephant-backup"
zfs_command = "zfs"
log_file = "/var/log/elephant-backup.log"   # "" disables the log file
log_file_size = 5242880     # 5 MiB, older runs are dropped from the head

[retention]
keep_hours = 24             # Keep every snapshot of the last 24 hours
keep_days = 30              # Then keep one snapshot per day for 30 days
keep_weeks = 104            # Then keep one snapshot per week, at most 104
"""
