"""Tests for CLI common utilities."""

import argparse

import pytest

from elephant_backup.cli.common import (
    add_target_args,
    add_verbosity_args,
    create_global_parser,
    get_log_level,
    load_effective_config,
    prepare_run,
)
from elephant_backup.config import Config, ConfigError


class TestCreateGlobalParser:
    """Tests for create_global_parser function."""

    def test_returns_parser(self):
        """Test that it returns an ArgumentParser."""
        parser = create_global_parser()
        assert isinstance(parser, argparse.ArgumentParser)

    def test_parser_has_no_help(self):
        """Test that parser has add_help=False."""
        parser = create_global_parser()
        args = parser.parse_args([])
        assert args is not None

    def test_has_verbosity_args(self):
        """Test that parser has verbosity arguments."""
        parser = create_global_parser()
        args = parser.parse_args(["--verbose"])
        assert args.verbose is True

    def test_verbosity_not_defaulted(self):
        """Test that absent options leave values set by the main parser alone."""
        args = create_global_parser().parse_args([])
        assert not hasattr(args, "verbose")


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args function."""

    def test_adds_verbose(self):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        assert parser.parse_args(["-v"]).verbose is True

    def test_adds_quiet(self):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        assert parser.parse_args(["--quiet"]).quiet is True

    def test_adds_debug(self):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        assert parser.parse_args(["--debug"]).debug is True


class TestAddTargetArgs:
    """Tests for add_target_args function."""

    def test_targets_and_archive(self):
        parser = argparse.ArgumentParser()
        add_target_args(parser)
        args = parser.parse_args(["tank/home", "tank/var", "-a", "backup"])
        assert args.targets == ["tank/home", "tank/var"]
        assert args.archive == "backup"

    def test_archive_required(self):
        parser = argparse.ArgumentParser()
        add_target_args(parser)
        with pytest.raises(SystemExit):
            parser.parse_args(["tank/home"])

    def test_without_archive(self):
        parser = argparse.ArgumentParser()
        add_target_args(parser, archive=False)
        args = parser.parse_args(["tank"])
        assert not hasattr(args, "archive")


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_default_is_info(self):
        args = argparse.Namespace(verbose=False, quiet=False, debug=False)
        assert get_log_level(args) == "INFO"

    def test_verbose_is_debug(self):
        args = argparse.Namespace(verbose=True, quiet=False, debug=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet_is_warning(self):
        args = argparse.Namespace(verbose=False, quiet=True, debug=False)
        assert get_log_level(args) == "WARNING"

    def test_debug_wins_over_quiet(self):
        args = argparse.Namespace(verbose=False, quiet=True, debug=True)
        assert get_log_level(args) == "DEBUG"

    def test_missing_attributes(self):
        assert get_log_level(argparse.Namespace()) == "INFO"


class TestLoadEffectiveConfig:
    """Tests for configuration loading on behalf of the subcommands."""

    def test_defaults_without_file(self, no_config_files):
        assert load_effective_config(argparse.Namespace(config=None)) == Config()

    def test_explicit_file(self, config_file):
        config = load_effective_config(argparse.Namespace(config=str(config_file)))
        assert config.global_config.snapshot_prefix == "nightly"

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[retention]\nkeep_days = -3\n")
        with pytest.raises(ConfigError):
            load_effective_config(argparse.Namespace(config=str(path)))


class TestPrepareRun:
    """Tests for prepare_run function."""

    def test_builds_context(self, config_file):
        args = argparse.Namespace(config=str(config_file), dry_run=True, verbose=True)
        context = prepare_run(args)

        assert context is not None
        assert context.dry_run is True
        assert context.verbose is True
        assert context.prefix == "nightly"
        assert context.zfs.binary == "/usr/sbin/zfs"
        assert context.executor.console is context.console

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("not toml [")
        assert prepare_run(argparse.Namespace(config=str(path))) is None

    def test_default_log_file(self, no_config_files, default_log_file):
        """Test that a run without any configuration still writes the log file."""
        context = prepare_run(argparse.Namespace(config=None))

        assert context is not None
        assert context.config.global_config.log_file == "/var/log/elephant-backup.log"
        assert "Start Elephant Backup" in default_log_file.read_text()

    def test_log_file_unwritable(self, tmp_path):
        """Test that an unwritable log file does not stop the run."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        path = tmp_path / "config.toml"
        path.write_text(f'[global]\nlog_file = "{blocker / "eb.log"}"\n')

        context = prepare_run(argparse.Namespace(config=str(path)))

        assert context is not None

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "elephant-backup.log"
        path = tmp_path / "config.toml"
        path.write_text(f'[global]\nlog_file = "{log_file}"\n')

        context = prepare_run(argparse.Namespace(config=str(path)))

        assert context is not None
        assert "Start Elephant Backup" in log_file.read_text()
