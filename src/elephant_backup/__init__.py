"""elephant-backup: elephant_backup/__init__.py."""

__version__ = "0.3.0"

PROGRAM_NAME = "elephant-backup"
