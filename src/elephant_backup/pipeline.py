# pyright: standard

"""elephant-backup: elephant_backup/pipeline.py
Run chains of external commands connected by OS pipes.

A pipeline is an ordered list of ``Stage`` objects handed to an
``Executor``. ``SubprocessExecutor`` really spawns the commands,
``DryRunExecutor`` only records what would have been spawned.
"""

import logging
import shlex
import signal
import subprocess
import threading
from dataclasses import dataclass
from enum import Enum
from typing import IO, Optional, Sequence

from rich.console import Console

from .__util__ import ProcessExecutionError

logger = logging.getLogger(__name__)


class StderrPolicy(Enum):
    """What to do with the standard error of a stage."""

    DISCARD = "discard"
    FORWARD = "forward"
    LOG = "log"


@dataclass(frozen=True)
class Stage:
    """One command of a pipeline.

    Attributes:
        argv: Command and arguments
        stderr: Handling of the command's standard error
        echo_stdout: Print the output to the operator console as it arrives
            (only meaningful for the last stage)
    """

    argv: tuple[str, ...]
    stderr: StderrPolicy = StderrPolicy.LOG
    echo_stdout: bool = False

    def __post_init__(self):
        if not self.argv:
            raise ValueError("A pipeline stage needs a command")
        object.__setattr__(self, "argv", tuple(str(arg) for arg in self.argv))

    def __str__(self) -> str:
        return shlex.join(self.argv)


def describe(stages: Sequence[Stage]) -> str:
    """Shell-like rendering of a pipeline for log messages."""
    return " | ".join(str(stage) for stage in stages)


class Executor:
    """Runs pipelines. Subclasses decide whether anything is really spawned."""

    dry_run = False

    def run(self, stages: Sequence[Stage], stdin: Optional[IO[bytes]] = None) -> str:
        """Run the stages chained by pipes and return the last stage's stdout."""
        raise NotImplementedError


_STDERR_TARGETS = {
    StderrPolicy.DISCARD: subprocess.DEVNULL,
    StderrPolicy.FORWARD: None,
    StderrPolicy.LOG: subprocess.PIPE,
}


def _log_stderr(stream: IO[bytes], stage: Stage, lines: list[str]) -> None:
    """Log a stage's standard error line by line, keeping a copy."""
    with stream:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            lines.append(line)
            logger.error("%s: %s", stage.argv[0], line)


class SubprocessExecutor(Executor):
    """Spawn the stages as real OS processes."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def run(self, stages: Sequence[Stage], stdin: Optional[IO[bytes]] = None) -> str:
        stages = list(stages)
        if not stages:
            raise ValueError("Cannot run an empty pipeline")

        logger.debug("Spawn CMD: %s", describe(stages))
        processes: list[subprocess.Popen] = []
        readers: list[threading.Thread] = []
        stderr_lines: list[list[str]] = []
        output = ""
        try:
            upstream = stdin if stdin is not None else subprocess.DEVNULL
            for stage in stages:
                try:
                    process = subprocess.Popen(
                        stage.argv,
                        stdin=upstream,
                        stdout=subprocess.PIPE,
                        stderr=_STDERR_TARGETS[stage.stderr],
                    )
                except OSError as e:
                    raise ProcessExecutionError(stage.argv, reason=str(e)) from e
                if processes:
                    # the successor owns the read end now
                    processes[-1].stdout.close()
                processes.append(process)
                upstream = process.stdout

                lines: list[str] = []
                stderr_lines.append(lines)
                if stage.stderr is StderrPolicy.LOG:
                    reader = threading.Thread(
                        target=_log_stderr,
                        args=(process.stderr, stage, lines),
                        daemon=True,
                    )
                    reader.start()
                    readers.append(reader)

            output = self._collect(processes[-1], stages[-1])
        except BaseException:
            for process in processes:
                if process.poll() is None:
                    process.kill()
            if processes:
                # no successor took over the last read end
                processes[-1].stdout.close()
            raise
        finally:
            for process in processes:
                process.wait()
            for reader in readers:
                reader.join()

        self._check(stages, processes, stderr_lines)
        return output

    def _collect(self, process: subprocess.Popen, stage: Stage) -> str:
        chunks: list[str] = []
        with process.stdout:
            for raw in iter(process.stdout.readline, b""):
                text = raw.decode("utf-8", errors="replace")
                chunks.append(text)
                if stage.echo_stdout:
                    self.console.print(text.rstrip("\n"), markup=False, highlight=False)
        return "".join(chunks).rstrip("\n")

    @staticmethod
    def _check(
        stages: list[Stage],
        processes: list[subprocess.Popen],
        stderr_lines: list[list[str]],
    ) -> None:
        failures = [
            (stage, process, lines)
            for stage, process, lines in zip(stages, processes, stderr_lines)
            if process.returncode != 0
        ]
        if not failures:
            return

        for stage, process, _ in failures:
            logger.debug("%s close with code: %s", stage, process.returncode)

        # a stage killed by a broken pipe is a consequence, not the cause
        genuine = [
            failure
            for failure in failures
            if failure[1].returncode != -signal.SIGPIPE
        ] or failures
        stage, process, lines = genuine[0]
        error = ProcessExecutionError(stage.argv, process.returncode, "\n".join(lines))
        logger.error("%s", error)
        raise error


class DryRunExecutor(Executor):
    """Spawn nothing; log and record the pipelines that would have run."""

    dry_run = True

    def __init__(self) -> None:
        self.calls: list[tuple[Stage, ...]] = []

    def run(self, stages: Sequence[Stage], stdin: Optional[IO[bytes]] = None) -> str:
        stages = tuple(stages)
        if not stages:
            raise ValueError("Cannot run an empty pipeline")
        self.calls.append(stages)
        for position, stage in enumerate(stages):
            prefix = "Dry run" if position == 0 else "  piped into"
            logger.info("%s: %s", prefix, stage)
        return ""
