"""elephant-backup: elephant_backup/zfs/__init__.py."""

from .commands import ZfsCommands, parse_lines, parse_size_token
from .filesystem import FilesystemRegistry, ZfsFilesystem

__all__ = [
    "ZfsCommands",
    "FilesystemRegistry",
    "ZfsFilesystem",
    "parse_lines",
    "parse_size_token",
]
