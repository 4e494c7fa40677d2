"""Rich tables for run state, branch audits and recovery summaries."""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from monopub.safety.branch_state import AuditReport, BranchStatus
from monopub.state.models import PackageStatus, PublishState
from monopub.state.recovery import RecoverySummary

STATUS_STYLES = {
    PackageStatus.PENDING: "dim",
    PackageStatus.READY: "cyan",
    PackageStatus.PUBLISHING: "yellow",
    PackageStatus.PUBLISHED: "green",
    PackageStatus.FAILED: "red",
    PackageStatus.SKIPPED: "magenta",
}

BRANCH_STYLES = {
    BranchStatus.GOOD: "green",
    BranchStatus.NO_REMOTE_BRANCH: "yellow",
    BranchStatus.AHEAD_OF_REMOTE: "yellow",
    BranchStatus.BEHIND_REMOTE: "yellow",
    BranchStatus.DIRTY: "red",
    BranchStatus.WRONG_BRANCH: "red",
}


def state_table(state: PublishState, title: str = "Publish state") -> Table:
    """Table with one row per package of a run."""
    table = Table(title=title)
    table.add_column("Package", style="bold")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("PR")
    table.add_column("Attempts", justify="right")
    table.add_column("Details")

    for name in sorted(state.packages):
        pkg = state.packages[name]
        style = STATUS_STYLES[pkg.status]
        details = ""
        if pkg.error:
            details = escape(f"{pkg.error.kind.value}: {pkg.error.message}")
        elif pkg.reason:
            details = escape(pkg.reason)
        if pkg.needs_recovery:
            details = f"[red]needs recovery[/red] {details}".strip()
        table.add_row(
            name,
            f"[{style}]{pkg.status.value}[/{style}]",
            pkg.version or "-",
            f"#{pkg.pull_request_id}" if pkg.pull_request_id else "-",
            str(pkg.attempts),
            details or "-",
        )
    return table


def plan_table(batches: list[list[str]]) -> Table:
    """Table of the batches a run would publish, in order."""
    table = Table(title="Publish plan")
    table.add_column("Batch", justify="right", style="dim")
    table.add_column("Packages", style="cyan")
    for index, batch in enumerate(batches, start=1):
        table.add_row(str(index), ", ".join(batch))
    return table


def audit_table(report: AuditReport) -> Table:
    """Table of a branch audit, with the suggested fixes."""
    expected = report.expected_branch or "-"
    table = Table(title=f"Branch audit (expected: {expected})")
    table.add_column("Package", style="bold")
    table.add_column("Branch")
    table.add_column("Status")
    table.add_column("Ahead", justify="right")
    table.add_column("Behind", justify="right")
    table.add_column("Fix", style="dim")

    for audit in sorted(report.audits, key=lambda a: a.package_name):
        status = audit.status
        style = BRANCH_STYLES[status]
        table.add_row(
            audit.package_name,
            audit.branch,
            f"[{style}]{status.value}[/{style}]",
            str(audit.ahead_count),
            str(audit.behind_count),
            escape("\n".join(audit.fixes)) or "-",
        )
    return table


def recovery_table(summary: RecoverySummary) -> Table:
    """Table of packages that need attention after a run."""
    table = Table(title=f"Recovery ({summary.published}/{summary.total} published)")
    table.add_column("Package", style="bold")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Next step", style="dim")

    for entry in summary.entries:
        style = STATUS_STYLES[entry.status]
        table.add_row(
            entry.name,
            f"[{style}]{entry.status.value}[/{style}]",
            escape(entry.reason),
            entry.suggestion,
        )
    return table
