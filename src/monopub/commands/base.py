"""Command layer shared by publish, audit, status and recover."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from monopub.config import PublishConfig
from monopub.errors import ConfigurationError
from monopub.state.store import StateStore
from monopub.workspace import Workspace

TResult = TypeVar("TResult")


@dataclass
class CommandContext:
    """What every command runs against.

    Attributes:
        workspace: Loaded workspace.
        dry_run: Report what would happen without publishing.
        verbose: Emit detailed output.
        env: Extra variables for package build and upload commands,
            such as registry tokens.
    """

    workspace: Workspace
    dry_run: bool = False
    verbose: bool = False
    env: dict[str, str] = field(default_factory=dict)

    @property
    def publish_config(self) -> PublishConfig:
        return self.workspace.config.publish

    @property
    def store(self) -> StateStore:
        """State record of the workspace."""
        return StateStore(self.workspace.state_path)


class _CommandBase:
    def __init__(self, context: CommandContext) -> None:
        self.context = context
        self.workspace = context.workspace

    def validate(self) -> list[str]:
        """Problems that prevent the command from running.

        Returns:
            List of validation errors (empty if valid).
        """
        return []

    def check(self) -> None:
        """Raise ConfigurationError if ``validate`` found problems."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors), path=self.workspace.root)


class Command(_CommandBase, ABC, Generic[TResult]):
    """Asynchronous command.

    Commands return a result dataclass; rendering is left to the
    ``handle_*`` functions.
    """

    @abstractmethod
    async def execute(self) -> TResult: ...


class SyncCommand(_CommandBase, ABC, Generic[TResult]):
    """Command that only touches local files."""

    @abstractmethod
    def execute(self) -> TResult: ...
