"""Configuration system for elephant-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import Config, GlobalConfig, RetentionConfig

__all__ = [
    "Config",
    "GlobalConfig",
    "RetentionConfig",
    "load_config",
    "find_config_file",
    "ConfigError",
]
