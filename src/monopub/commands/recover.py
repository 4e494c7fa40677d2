"""Recover command implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from monopub.commands.base import CommandContext, SyncCommand
from monopub.errors import MonopubError, StateError
from monopub.output import recovery_table, state_table
from monopub.state import PublishState, RecoveryController, RecoverySummary, StateValidation

if TYPE_CHECKING:
    from monopub.workspace import Workspace


@dataclass
class RecoverOptions:
    """Repairs to apply to the persisted run.

    Operations are applied in field order. Package identifiers may be
    package names or directory names.

    Attributes:
        mark_completed: Packages published outside of monopub.
        mark_failed: Packages to fail (their dependents are skipped).
        skip: Packages to leave out of the next resume.
        skip_failed: Skip every failed package and its dependents.
        reset: Packages to return to pending.
        retry_failed: Return every failed package to pending.
        failure_reason: Message recorded by ``mark_failed``.
    """

    mark_completed: list[str] = field(default_factory=list)
    mark_failed: list[str] = field(default_factory=list)
    skip: list[str] = field(default_factory=list)
    skip_failed: bool = False
    reset: list[str] = field(default_factory=list)
    retry_failed: bool = False
    failure_reason: str = "Manually marked as failed"

    @property
    def is_empty(self) -> bool:
        return not (
            self.mark_completed
            or self.mark_failed
            or self.skip
            or self.skip_failed
            or self.reset
            or self.retry_failed
        )


@dataclass
class RecoverResult:
    """Result of recover command."""

    state: PublishState
    summary: RecoverySummary
    validation: StateValidation = field(default_factory=StateValidation)
    changed: bool = False


class RecoverCommand(SyncCommand[RecoverResult]):
    """Adjust the persisted state before resuming a run."""

    def __init__(self, context: CommandContext, options: RecoverOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or RecoverOptions()

    def execute(self) -> RecoverResult:
        store = self.context.store
        state = store.load()
        if state is None:
            raise StateError(f"No publish state to recover at {store.path}")

        controller = RecoveryController(store, self.workspace.build_graph())
        opts = self.options

        if opts.mark_completed:
            controller.mark_completed(state, opts.mark_completed)
        if opts.mark_failed:
            controller.mark_failed(state, opts.mark_failed, opts.failure_reason)
        if opts.skip:
            controller.skip_packages(state, opts.skip)
        if opts.skip_failed:
            controller.skip_failed(state)
        for package in opts.reset:
            controller.reset_package(state, package)
        if opts.retry_failed:
            controller.retry_failed(state)

        return RecoverResult(
            state=state,
            summary=controller.summarize(state),
            validation=controller.validate(state),
            changed=not opts.is_empty,
        )


def recover(workspace: Workspace, options: RecoverOptions | None = None) -> RecoverResult:
    """Convenience function to repair the persisted publish state.

    Args:
        workspace: Workspace whose state is repaired.
        options: Repairs to apply; with none, only the summary is returned.

    Returns:
        Recover result.
    """
    return RecoverCommand(CommandContext(workspace=workspace), options).execute()


def handle_recover_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    options: RecoverOptions | None = None,
) -> int:
    try:
        result = recover(workspace, options)
    except MonopubError as e:
        error_console.print(f"[red]Recovery failed:[/red] {escape(e.message)}")
        return 1

    for issue in result.validation.issues:
        error_console.print(f"[yellow]Warning:[/yellow] {escape(issue)}")
    for warning in result.validation.warnings:
        error_console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    if result.changed:
        console.print(state_table(result.state, title="Updated publish state"))
    if result.summary.needs_attention:
        console.print(recovery_table(result.summary))
    else:
        console.print("[green]Nothing needs recovery[/green]")
    return 0
