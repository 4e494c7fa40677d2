"""Status command implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from monopub.commands.base import CommandContext, SyncCommand
from monopub.errors import MonopubError
from monopub.output import recovery_table, state_table
from monopub.state import PublishState, RecoverySummary, summarize

if TYPE_CHECKING:
    from monopub.workspace import Workspace


@dataclass
class StatusResult:
    """Result of status command."""

    state: PublishState | None
    summary: RecoverySummary = field(default_factory=RecoverySummary)

    @property
    def has_run(self) -> bool:
        return self.state is not None


class StatusCommand(SyncCommand[StatusResult]):
    """Show the persisted state of the last publish run."""

    def execute(self) -> StatusResult:
        state = self.context.store.load()
        if state is None:
            return StatusResult(state=None)
        return StatusResult(state=state, summary=summarize(state))


def status(workspace: Workspace) -> StatusResult:
    """Convenience function to read the publish status of a workspace."""
    return StatusCommand(CommandContext(workspace=workspace)).execute()


def handle_status_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
) -> int:
    try:
        result = status(workspace)
    except MonopubError as e:
        error_console.print(f"[red]Cannot read publish state:[/red] {escape(e.message)}")
        return 1

    if result.state is None:
        console.print("[yellow]No publish run recorded[/yellow]")
        return 0

    console.print(state_table(result.state))
    if result.summary.needs_attention:
        console.print(recovery_table(result.summary))
    return 0
