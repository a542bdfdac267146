"""Run context shared by the backup, diff and snapshot operations.

Built once at the entry point and passed down by parameter.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console

from .config import Config
from .pipeline import DryRunExecutor, Executor, SubprocessExecutor
from .zfs.commands import ZfsCommands
from .zfs.filesystem import FilesystemRegistry, ZfsFilesystem


@dataclass
class RunContext:
    """Everything one invocation needs to talk to the storage engine.

    Attributes:
        config: Effective configuration
        executor: Executor for read-only queries (always really run)
        dry_run: Route mutating commands to a recording no-op executor
        verbose: Forward transfer progress to the operator
        console: Operator console for results
        clock: Source of the current local time
    """

    config: Config = field(default_factory=Config)
    executor: Optional[Executor] = None
    dry_run: bool = False
    verbose: bool = False
    console: Console = field(default_factory=Console)
    clock: Callable[[], datetime] = datetime.now
    dry_run_executor: DryRunExecutor = field(default_factory=DryRunExecutor, init=False)

    def __post_init__(self):
        if self.executor is None:
            self.executor = SubprocessExecutor(self.console)
        self.zfs = ZfsCommands(self.config.global_config.zfs_command)
        self.registry = FilesystemRegistry(self)

    @property
    def mutator(self) -> Executor:
        """Executor for commands that change the storage engine's state."""
        return self.dry_run_executor if self.dry_run else self.executor

    @property
    def prefix(self) -> str:
        return self.config.global_config.snapshot_prefix

    def filesystem(self, name: str) -> ZfsFilesystem:
        return ZfsFilesystem(name, self)
