# pyright: standard

"""elephant-backup: elephant_backup/__util__.py
Common errors and helpers shared across modules.
"""

import os
import shlex
import signal
from dataclasses import dataclass
from typing import Optional, Sequence


class ElephantBackupError(Exception):
    """Base class of all errors raised by elephant-backup."""


class ValidationError(ElephantBackupError):
    """A value (snapshot name, target list, ...) failed validation."""


class NotFoundError(ElephantBackupError):
    """A named filesystem is not known to the storage engine."""


class ParseError(ElephantBackupError):
    """Output of an external command does not have the expected shape."""


class ProcessExecutionError(ElephantBackupError):
    """An external command exited with a nonzero status or was killed."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        reason: Optional[str] = None,
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.reason = reason
        super().__init__(self._describe())

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    @property
    def signal(self) -> Optional[int]:
        """Number of the signal that killed the process, if any."""
        if self.returncode is not None and self.returncode < 0:
            return -self.returncode
        return None

    def _describe(self) -> str:
        if self.reason:
            message = f'CMD: "{self.command}" could not be run: {self.reason}'
        elif self.signal is not None:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            message = f'CMD: "{self.command}" was terminated by signal {name}'
        else:
            message = f'CMD: "{self.command}" failed with exit code {self.returncode}'
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


@dataclass(frozen=True)
class PrivilegeCheck:
    """Outcome of the privilege precondition of mutating commands."""

    granted: bool
    reason: str = ""


def check_privileges() -> PrivilegeCheck:
    """Check that the process may mutate the storage engine (super user)."""
    geteuid = getattr(os, "geteuid", None)
    getuid = getattr(os, "getuid", None)
    if geteuid is None or getuid is None:
        return PrivilegeCheck(False, "user ids are not available on this platform")
    if geteuid() != 0 or getuid() != 0:
        return PrivilegeCheck(False, "must be run by the super user (root)")
    return PrivilegeCheck(True)


def log_heading(caption: str) -> str:
    """Formatted heading for logging output."""
    return f"--[ {caption} ]--"
