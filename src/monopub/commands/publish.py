"""Publish command implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from monopub.commands.base import Command, CommandContext
from monopub.errors import (
    CircularDependencyError,
    MissingDependencyError,
    MonopubError,
)
from monopub.execution import (
    BuildTask,
    PublishPipeline,
    PublishScheduler,
    PublishTask,
    PullRequestService,
    PullRequestTask,
    RegistryPublishTask,
    SchedulerOptions,
)
from monopub.git import GitClient
from monopub.graph import parallel_batches, validate_graph
from monopub.output import plan_table, recovery_table, state_table
from monopub.safety import BranchAuditor
from monopub.state import PublishState, RecoverySummary, RunMetrics, summarize

if TYPE_CHECKING:
    from monopub.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Result of publish command.

    Attributes:
        state: Final run state (None for dry runs).
        summary: Recovery summary of the run.
        plan: Batches of package names in publish order.
        success: Every package was published.
    """

    state: PublishState | None
    summary: RecoverySummary = field(default_factory=RecoverySummary)
    plan: list[list[str]] = field(default_factory=list)
    success: bool = True

    @property
    def metrics(self) -> RunMetrics | None:
        """Timing of the run (None for dry runs)."""
        return self.state.metrics if self.state else None


@dataclass
class PublishOptions:
    """Options for publish command."""

    resume: bool = False
    dry_run: bool = False
    fail_fast: bool | None = None
    concurrency: int | None = None
    audit: bool = True
    task: PublishTask | None = None
    pull_requests: PullRequestService | None = None


class PublishCommand(Command[PublishResult]):
    """Publish every workspace package in dependency order."""

    def __init__(self, context: CommandContext, options: PublishOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or PublishOptions()
        self.scheduler: PublishScheduler | None = None

    @property
    def is_dry_run(self) -> bool:
        return self.options.dry_run or self.context.dry_run

    def validate(self) -> list[str]:
        config = self.context.publish_config
        errors: list[str] = []
        if not self.workspace.packages:
            errors.append("No packages found in workspace")
        if self.options.task is None and not (
            config.build_command or config.publish_command or self.options.pull_requests
        ):
            errors.append("Nothing to run: no build or publish command configured")
        return errors

    def build_task(self) -> PublishTask:
        """Task run for each package, from options or configuration."""
        if self.options.task is not None:
            return self.options.task

        config = self.context.publish_config
        tasks: list[PublishTask] = []
        if config.build_command:
            tasks.append(BuildTask(config.build_command, timeout=config.task_timeout))
        if config.publish_command:
            tasks.append(RegistryPublishTask(config.publish_command, timeout=config.task_timeout))
        if self.options.pull_requests is not None:
            head = config.working_branch or config.target_branch
            tasks.append(PullRequestTask(self.options.pull_requests, head, config.target_branch))
        return tasks[0] if len(tasks) == 1 else PublishPipeline(tasks)

    def build_options(self) -> SchedulerOptions:
        overrides: dict[str, object] = {"resume": self.options.resume, "env": dict(self.context.env)}
        if self.options.fail_fast is not None:
            overrides["fail_fast"] = self.options.fail_fast
        if self.options.concurrency is not None:
            overrides["concurrency_limit"] = self.options.concurrency
        return SchedulerOptions.from_config(self.context.publish_config, **overrides)

    def build_auditor(self) -> BranchAuditor | None:
        if not self.options.audit:
            return None
        config = self.context.publish_config
        return BranchAuditor(GitClient(), config.working_branch, remote=config.remote)

    async def execute(self) -> PublishResult:
        """Execute the publish command."""
        self.check()

        graph = self.workspace.build_graph()
        validation = validate_graph(graph)
        plan = parallel_batches(graph) if validation.valid else []

        if self.is_dry_run:
            if validation.cycle:
                raise CircularDependencyError(validation.cycle)
            if not validation.valid:
                raise MissingDependencyError(validation.errors)
            logger.info("Dry run: %d package(s) in %d batch(es)", len(graph), len(plan))
            return PublishResult(state=None, plan=plan, success=True)

        self.scheduler = PublishScheduler(
            self.context.store,
            self.build_options(),
            auditor=self.build_auditor(),
        )
        state = await self.scheduler.run(graph, self.build_task())
        summary = summarize(state)
        return PublishResult(
            state=state,
            summary=summary,
            plan=plan,
            success=state.all_published,
        )


async def publish(
    workspace: Workspace,
    *,
    resume: bool = False,
    dry_run: bool = False,
    fail_fast: bool | None = None,
    concurrency: int | None = None,
    audit: bool = True,
    task: PublishTask | None = None,
    pull_requests: PullRequestService | None = None,
) -> PublishResult:
    """Convenience function to publish a workspace.

    Args:
        workspace: Workspace to publish.
        resume: Continue the persisted run.
        dry_run: Only compute the publish plan.
        fail_fast: Override the configured fail-fast setting.
        concurrency: Override the configured concurrency.
        audit: Check each package's branch before publishing it.
        task: Task to run instead of the configured commands.
        pull_requests: Service used to open release pull requests.

    Returns:
        Publish result.
    """
    context = CommandContext(workspace=workspace, dry_run=dry_run)
    options = PublishOptions(
        resume=resume,
        dry_run=dry_run,
        fail_fast=fail_fast,
        concurrency=concurrency,
        audit=audit,
        task=task,
        pull_requests=pull_requests,
    )
    cmd = PublishCommand(context, options)
    return await cmd.execute()


async def handle_publish_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    resume: bool = False,
    dry_run: bool = False,
    fail_fast: bool | None = None,
    concurrency: int | None = None,
    audit: bool = True,
) -> int:
    """Run a publish and render the outcome.

    Returns:
        Exit code: 0 when every package was published, 1 otherwise.
    """
    try:
        result = await publish(
            workspace,
            resume=resume,
            dry_run=dry_run,
            fail_fast=fail_fast,
            concurrency=concurrency,
            audit=audit,
        )
    except MonopubError as e:
        error_console.print(f"[red]Publish failed:[/red] {escape(e.message)}")
        return 1

    if result.state is None:
        console.print("[yellow]Dry run - nothing will be published[/yellow]\n")
        console.print(plan_table(result.plan))
        return 0

    console.print(state_table(result.state))

    metrics = result.metrics
    if metrics is not None:
        console.print(
            f"\nFinished in {metrics.total_duration:.1f}s "
            f"(peak concurrency {metrics.peak_concurrency})"
        )

    if result.success:
        console.print(f"\n[green]Published {result.summary.published} packages[/green]")
        return 0

    console.print(recovery_table(result.summary))
    error_console.print(
        "\n[red]Some packages were not published.[/red] Fix them, retry them and resume."
    )
    return 1
