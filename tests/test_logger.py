"""Tests for logging setup and the log file."""

import logging

import pytest
from rich.console import Console

from elephant_backup import __logger__
from elephant_backup.__logger__ import (
    LOG_START_SENTENCE,
    add_log_file,
    create_logger,
    trim_log_file,
)


def run_block(number: int, lines: int = 5) -> str:
    body = "".join(f"2024-06-30 12:00:0{number} INFO    run {number} line {i}\n" for i in range(lines))
    return f"2024-06-30 12:00:00 INFO    elephant-backup: {LOG_START_SENTENCE}\n{body}"


@pytest.fixture
def remove_file_handlers():
    yield
    for owner in (logging.getLogger(), __logger__.logger):
        for handler in list(owner.handlers):
            if isinstance(handler, logging.FileHandler):
                owner.removeHandler(handler)
                handler.close()


class TestCreateLogger:
    """Tests for create_logger function."""

    def test_level(self):
        create_logger("WARNING")
        assert __logger__.logger.level == logging.WARNING
        assert logging.getLogger().level == logging.WARNING

    def test_console(self):
        console = Console(record=True)
        create_logger("INFO", console=console)
        assert __logger__.cons is console
        assert __logger__.rich_handler.console is console


class TestTrimLogFile:
    """Tests for trim_log_file function."""

    def test_small_file_untouched(self, tmp_path):
        path = tmp_path / "eb.log"
        content = run_block(1)
        path.write_text(content)

        trim_log_file(path, 10_000)

        assert path.read_text() == content

    def test_missing_file(self, tmp_path):
        trim_log_file(tmp_path / "none.log", 10)
        assert not (tmp_path / "none.log").exists()

    def test_keeps_whole_runs(self, tmp_path):
        path = tmp_path / "eb.log"
        path.write_text(run_block(1) + run_block(2) + run_block(3))

        trim_log_file(path, len(run_block(3)) + 20)

        assert path.read_text() == run_block(3)

    def test_no_marker_in_tail(self, tmp_path):
        path = tmp_path / "eb.log"
        path.write_text(run_block(1, lines=50))

        trim_log_file(path, 100)

        assert path.read_text() == ""

    def test_zero_size(self, tmp_path):
        path = tmp_path / "eb.log"
        path.write_text(run_block(1))
        trim_log_file(path, 0)
        assert path.read_text() == ""


class TestAddLogFile:
    """Tests for add_log_file function."""

    def test_writes_start_marker(self, tmp_path, remove_file_handlers):
        path = tmp_path / "logs" / "eb.log"
        create_logger("INFO", console=Console(record=True))

        add_log_file(path, 10_000)
        logging.getLogger("elephant_backup.test").info("hello from a module")

        text = path.read_text()
        assert LOG_START_SENTENCE in text
        assert "hello from a module" in text

    def test_appends(self, tmp_path, remove_file_handlers):
        path = tmp_path / "eb.log"
        path.write_text(run_block(1))
        create_logger("INFO", console=Console(record=True))

        add_log_file(path, 10_000)

        text = path.read_text()
        assert text.startswith(run_block(1))
        assert text.count(LOG_START_SENTENCE) == 2
