"""Pytest configuration and shared fixtures."""

import io
import logging
from datetime import datetime
from typing import Optional, Sequence

import pytest
from rich.console import Console

from elephant_backup import __logger__
from elephant_backup.__util__ import ProcessExecutionError
from elephant_backup.config import Config
from elephant_backup.config.schema import DEFAULT_LOG_FILE
from elephant_backup.context import RunContext
from elephant_backup.pipeline import Executor

MUTATING = {"create", "snapshot", "destroy", "recv", "receive"}

NOW = datetime(2024, 6, 30, 12, 0, 0)


class FakeZfs(Executor):
    """In-memory stand-in for the zfs command line tool.

    Keeps a set of filesystems with their snapshots and answers the
    commands elephant-backup runs. Every pipeline is recorded in ``calls``
    as a list of argument vectors.
    """

    def __init__(self, filesystems: Sequence[str] = ()) -> None:
        self.filesystems: list[str] = []
        self.snapshots: dict[str, list[str]] = {}
        self.properties: dict[tuple[str, str], str] = {}
        self.calls: list[list[list[str]]] = []
        self.failures: list[tuple[str, str, str]] = []
        for name in filesystems:
            self.add_filesystem(name)

    # -- setup helpers ---------------------------------------------------

    def add_filesystem(self, name: str, snapshots: Sequence[str] = ()) -> None:
        if name not in self.filesystems:
            self.filesystems.append(name)
        self.snapshots.setdefault(name, []).extend(snapshots)

    def set_property(self, name: str, prop: str, value: str) -> None:
        self.properties[(name, prop)] = value

    def fail(self, subcommand: str, match: str = "", stderr: str = "simulated failure") -> None:
        """Make commands ``zfs <subcommand> ...`` containing ``match`` exit 1."""
        self.failures.append((subcommand, match, stderr))

    def descendants(self, name: str) -> list[str]:
        return [fs for fs in self.filesystems if fs == name or fs.startswith(name + "/")]

    # -- inspection helpers ----------------------------------------------

    def mutating_calls(self) -> list[list[list[str]]]:
        return [
            pipeline
            for pipeline in self.calls
            if any(self._is_mutating(argv) for argv in pipeline)
        ]

    def transfers(self) -> list[list[str]]:
        """Send commands that really moved data (not estimates)."""
        return [
            pipeline[0]
            for pipeline in self.calls
            if pipeline[0][1] == "send" and "-n" not in pipeline[0]
        ]

    def commands(self, subcommand: str) -> list[list[str]]:
        return [argv for pipeline in self.calls for argv in pipeline if argv[1] == subcommand]

    @staticmethod
    def _is_mutating(argv: list[str]) -> bool:
        if argv[1] == "send":
            return "-n" not in argv
        return argv[1] in MUTATING

    # -- Executor --------------------------------------------------------

    def run(self, stages, stdin=None) -> str:
        pipeline = [list(stage.argv) for stage in stages]
        self.calls.append(pipeline)

        for argv in pipeline:
            for subcommand, match, stderr in self.failures:
                if argv[1] == subcommand and match in " ".join(argv):
                    raise ProcessExecutionError(argv, 1, stderr)

        argv = pipeline[0]
        handler = getattr(self, f"_zfs_{argv[1]}")
        if argv[1] == "send" and "-n" not in argv:
            return handler(argv, pipeline[1])
        return handler(argv)

    def _missing(self, argv: list[str], name: str):
        return ProcessExecutionError(argv, 1, f"cannot open '{name}': dataset does not exist")

    def _zfs_list(self, argv: list[str]) -> str:
        kind = argv[argv.index("-t") + 1]
        name: Optional[str] = argv[-1] if argv[-1] not in ("filesystem", "-r") else None
        if kind == "snapshot":
            if name not in self.filesystems:
                raise self._missing(argv, name)
            return "\n".join(f"{name}@{s}" for s in self.snapshots[name])

        if name is None:
            return "\n".join(self.filesystems)
        if name not in self.filesystems:
            raise self._missing(argv, name)
        if "-r" in argv:
            return "\n".join(self.descendants(name))
        return name

    def _zfs_create(self, argv: list[str]) -> str:
        parts = argv[-1].split("/")
        for i in range(1, len(parts) + 1):
            self.add_filesystem("/".join(parts[:i]))
        return ""

    def _zfs_snapshot(self, argv: list[str]) -> str:
        name, _, snap = argv[-1].partition("@")
        if name not in self.filesystems:
            raise self._missing(argv, name)
        if any(snap in self.snapshots[fs] for fs in self.descendants(name)):
            raise ProcessExecutionError(argv, 1, f"cannot create snapshot '{argv[-1]}': dataset already exists")
        for fs in self.descendants(name):
            self.snapshots[fs].append(snap)
        return ""

    def _zfs_destroy(self, argv: list[str]) -> str:
        name, _, snap = argv[-1].partition("@")
        for fs in self.descendants(name):
            if snap in self.snapshots[fs]:
                self.snapshots[fs].remove(snap)
        return ""

    def _zfs_send(self, argv: list[str], receive: Optional[list[str]] = None) -> str:
        if "-n" in argv:
            return f"full\t{argv[-1]}\t1249\nsize\t1249\ntotal estimated size is 1.22K"

        if "-I" in argv:
            position = argv.index("-I")
            source, _, first = argv[position + 1].partition("@")
            last = argv[position + 2].partition("@")[2]
        else:
            source, _, first = argv[-1].partition("@")
            last = None

        target = receive[-1]
        for fs in self.descendants(source):
            names = self.snapshots[fs]
            if last is None:
                sent = [first]
            else:
                sent = names[names.index(first) + 1 : names.index(last) + 1]
            # 'recv -d' drops the pool name of the sent datasets
            _, _, rest = fs.partition("/")
            mirror = f"{target}/{rest}" if rest else target
            self._zfs_create(["zfs", "create", mirror])
            if last is not None and first not in self.snapshots[mirror]:
                raise ProcessExecutionError(receive, 1, f"cannot receive: most recent snapshot of {mirror} does not match incremental source")
            self.snapshots[mirror].extend(s for s in sent if s not in self.snapshots[mirror])
        return ""

    def _zfs_get(self, argv: list[str]) -> str:
        prop, name = argv[-2], argv[-1]
        if name not in self.filesystems:
            raise self._missing(argv, name)
        values = []
        for fs in self.descendants(name) if "-r" in argv else [name]:
            values.append(self._property(fs, prop))
            if "-r" in argv:
                values.extend("-" for _ in self.snapshots[fs])
        return "\n".join(values)

    def _property(self, name: str, prop: str) -> str:
        default = {"mounted": "yes", "mountpoint": f"/{name}"}.get(prop, "-")
        return self.properties.get((name, prop), default)


@pytest.fixture
def fake_zfs():
    """A fake zfs with a primary pool and an archive pool."""
    return FakeZfs(["tank", "tank/home", "backup"])


@pytest.fixture
def now():
    """The frozen local time of the fake clock."""
    return NOW


@pytest.fixture
def console():
    """A rich console recording everything printed to it."""
    return Console(file=io.StringIO(), record=True, width=200)


@pytest.fixture
def make_context(fake_zfs, console):
    """Factory of run contexts talking to the fake zfs."""

    def _make(dry_run=False, verbose=False, now=NOW, config=None, executor=None):
        return RunContext(
            config=config or Config(),
            executor=executor or fake_zfs,
            dry_run=dry_run,
            verbose=verbose,
            console=console,
            clock=lambda: now,
        )

    return _make


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
snapshot_prefix = "nightly"
zfs_command = "/usr/sbin/zfs"
log_file_size = 1048576

[retention]
keep_hours = 48
keep_days = 14
keep_weeks = 52
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[retention]
keep_days = 7
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def no_config_files(monkeypatch):
    """Hide the real configuration files of the machine running the tests."""
    monkeypatch.setattr("elephant_backup.config.loader.CONFIG_PATHS", [])


@pytest.fixture(autouse=True)
def default_log_file(tmp_path, monkeypatch):
    """Write the default log file below tmp_path and detach file handlers afterwards."""
    path = tmp_path / "default-log" / "elephant-backup.log"

    def _add_log_file(log_file, max_size):
        if str(log_file) == DEFAULT_LOG_FILE:
            log_file = path
        return __logger__.add_log_file(log_file, max_size)

    monkeypatch.setattr("elephant_backup.cli.common.add_log_file", _add_log_file)
    yield path
    for owner in (logging.getLogger(), __logger__.logger):
        for handler in list(owner.handlers):
            if isinstance(handler, logging.FileHandler):
                owner.removeHandler(handler)
                handler.close()
