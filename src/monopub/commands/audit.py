"""Audit command implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from monopub.commands.base import Command, CommandContext
from monopub.errors import MonopubError, PackageNotFoundError
from monopub.git import GitClient, VersionControl
from monopub.output import audit_table
from monopub.safety import AuditReport, BranchAuditor

if TYPE_CHECKING:
    from monopub.graph import Package
    from monopub.workspace import Workspace


@dataclass
class AuditOptions:
    """Options for audit command.

    Attributes:
        packages: Package or directory names to audit (all if empty).
        expected_branch: Branch packages must be on. Defaults to the
            configured working branch, then to the most common branch.
        fetch: Fetch the remote before comparing.
    """

    packages: list[str] | None = None
    expected_branch: str | None = None
    fetch: bool = True


class AuditCommand(Command[AuditReport]):
    """Audit the branch state of workspace packages."""

    def __init__(
        self,
        context: CommandContext,
        options: AuditOptions | None = None,
        *,
        vcs: VersionControl | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options or AuditOptions()
        self.vcs = vcs or GitClient()

    def get_packages(self) -> list[Package]:
        if not self.options.packages:
            return [self.workspace.packages[name] for name in sorted(self.workspace.packages)]

        graph = self.workspace.build_graph()
        selected: list[Package] = []
        for identifier in self.options.packages:
            name = graph.resolve(identifier)
            if name is None:
                raise PackageNotFoundError(identifier, graph.names)
            selected.append(graph.packages[name])
        return selected

    async def execute(self) -> AuditReport:
        """Execute the audit command."""
        config = self.context.publish_config
        auditor = BranchAuditor(
            self.vcs,
            self.options.expected_branch or config.working_branch,
            remote=config.remote,
            fetch=self.options.fetch,
        )
        return await auditor.audit_packages(self.get_packages())


async def audit(
    workspace: Workspace,
    *,
    packages: list[str] | None = None,
    expected_branch: str | None = None,
    fetch: bool = True,
    vcs: VersionControl | None = None,
) -> AuditReport:
    """Convenience function to audit package branches.

    Args:
        workspace: Workspace to audit.
        packages: Package or directory names (all if omitted).
        expected_branch: Branch packages must be on.
        fetch: Fetch the remote before comparing.
        vcs: Version control interface (git by default).

    Returns:
        Audit report.
    """
    context = CommandContext(workspace=workspace)
    options = AuditOptions(packages=packages, expected_branch=expected_branch, fetch=fetch)
    cmd = AuditCommand(context, options, vcs=vcs)
    return await cmd.execute()


async def handle_audit_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    packages: list[str] | None = None,
    expected_branch: str | None = None,
    fetch: bool = True,
) -> int:
    """Audit package branches and print the report.

    Returns:
        Exit code: 0 when every branch is good, 1 otherwise.
    """
    try:
        report = await audit(
            workspace, packages=packages, expected_branch=expected_branch, fetch=fetch
        )
    except MonopubError as e:
        error_console.print(f"[red]Audit failed:[/red] {escape(e.message)}")
        return 1

    console.print(audit_table(report))
    if report.all_good:
        console.print(f"\n[green]All {len(report.audits)} packages are ready[/green]")
        return 0

    console.print(f"\n[yellow]{len(report.with_issues)} package(s) need attention[/yellow]")
    return 1
