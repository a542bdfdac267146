# pyright: standard

"""elephant-backup: elephant_backup/zfs/commands.py
Argument templates of the zfs commands and parsers of their output.
"""

from typing import Optional

from ..__util__ import ParseError

# value of a property that does not apply, e.g. 'mounted' on a snapshot
NOT_APPLICABLE = "-"


class ZfsCommands:
    """Build argument vectors for the zfs command line tool."""

    def __init__(self, binary: str = "zfs") -> None:
        self.binary = binary

    def list_filesystems(self, name: Optional[str] = None, recursive: bool = False) -> list[str]:
        cmd = [self.binary, "list", "-H", "-o", "name", "-t", "filesystem"]
        if recursive:
            cmd += ["-r"]
        if name:
            cmd += [name]
        return cmd

    def list_snapshots(self, name: str) -> list[str]:
        return [
            self.binary, "list", "-H", "-s", "creation", "-o", "name",
            "-t", "snapshot", "-d", "1", name,
        ]

    def create(self, name: str) -> list[str]:
        return [self.binary, "create", "-p", name]

    def snapshot(self, name: str, snapshot: str) -> list[str]:
        return [self.binary, "snapshot", "-r", f"{name}@{snapshot}"]

    def destroy(self, name: str, snapshot: str) -> list[str]:
        return [self.binary, "destroy", "-r", f"{name}@{snapshot}"]

    def estimate_send(self, name: str, first: str, last: Optional[str] = None) -> list[str]:
        cmd = [self.binary, "send", "-Rw", "-n", "-v"]
        return cmd + self._snapshot_range(name, first, last)

    def send(
        self,
        name: str,
        first: str,
        last: Optional[str] = None,
        verbose: bool = False,
    ) -> list[str]:
        cmd = [self.binary, "send", "-Rw"]
        if verbose:
            cmd += ["-v"]
        return cmd + self._snapshot_range(name, first, last)

    def receive(self, target: str) -> list[str]:
        return [self.binary, "recv", "-F", "-d", "-x", "mountpoint", target]

    def get(self, name: str, prop: str, recursive: bool = False) -> list[str]:
        cmd = [self.binary, "get", "-H", "-o", "value"]
        if recursive:
            cmd += ["-r"]
        return cmd + [prop, name]

    @staticmethod
    def _snapshot_range(name: str, first: str, last: Optional[str]) -> list[str]:
        if last:
            return ["-I", f"{name}@{first}", f"{name}@{last}"]
        return [f"{name}@{first}"]


def parse_lines(output: str) -> list[str]:
    """One entry per non-empty line; empty output is an empty list."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_size_token(output: str) -> str:
    """Human-readable size from the last token of a send estimate.

    The estimate ends with a line like 'total estimated size is 1.22K'.
    """
    tokens = output.split()
    if not tokens:
        raise ParseError("The transfer size estimate printed nothing")
    return tokens[-1]
