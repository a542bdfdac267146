# pyright: standard

"""elephant-backup: elephant_backup/__logger__.py
A common logger for displaying through rich, with an optional log file.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from filelock import FileLock
from rich.console import Console
from rich.logging import RichHandler

LOG_START_SENTENCE = "===== Start Elephant Backup ====="
LOG_FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Initialize basic console and handler
cons = Console()
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.Logger("elephant-backup", logging.INFO)


def create_logger(level: str = "INFO", console: Optional[Console] = None) -> None:
    """Helper function to setup logging on a rich console."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = console or Console()
    rich_handler = RichHandler(console=cons, show_path=False)

    logger.handlers.clear()
    logger.propagate = False
    logger.addHandler(rich_handler)
    logger.setLevel(level)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[rich_handler],
        force=True,
    )


def trim_log_file(path: Path, max_size: int) -> None:
    """Drop the head of the log file so that it fits into ``max_size`` bytes.

    Only whole runs are kept: the kept part starts at the first start marker
    found after the cut. Concurrent runs coordinate through a lock file.
    """
    path = Path(path)
    with FileLock(f"{path}.lock"):
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return
        start = size - max_size
        if start <= 0:
            return

        with open(path, "rb") as f:
            f.seek(start)
            tail = f.read().decode("utf-8", errors="replace")

        kept: list[str] = []
        found = False
        for line in tail.splitlines(keepends=True):
            if not found and LOG_START_SENTENCE in line:
                found = True
            if found:
                kept.append(line)

        temporary = path.with_name(path.name + ".temp")
        with open(temporary, "w", encoding="utf-8") as f:
            f.writelines(kept)
        os.replace(temporary, path)


def add_log_file(path: str | Path, max_size: int) -> logging.Handler:
    """Append all log records to ``path`` and mark the start of this run."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    trim_log_file(path, max_size)

    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
    logging.getLogger().addHandler(handler)
    logger.addHandler(handler)

    logger.info(LOG_START_SENTENCE)
    return handler
