"""Dependency-aware publish scheduler with a bounded worker pool."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any

from monopub.config import PublishConfig
from monopub.errors import (
    CircularDependencyError,
    ErrorKind,
    ForcePushRejectedError,
    GitError,
    MissingDependencyError,
    MonopubError,
    TaskCancelledError,
    TaskTimeoutError,
)
from monopub.execution.retry import RetryPolicy
from monopub.execution.tasks import Outcome, PublishTask, TaskContext
from monopub.graph import DependencyGraph, find_all_dependents, topological_sort, validate_graph
from monopub.safety.branch_state import BranchAuditor, BranchStatus
from monopub.safety.sync import force_push_with_lease, safe_sync
from monopub.state.models import (
    ErrorInfo,
    PackagePublishState,
    PackageStatus,
    PublishState,
    RunMetrics,
)
from monopub.state.recovery import validate_state
from monopub.state.store import StateStore

logger = logging.getLogger(__name__)

_PROCEED_STATUSES = (BranchStatus.GOOD, BranchStatus.NO_REMOTE_BRANCH)
_SYNCABLE_STATUSES = (BranchStatus.BEHIND_REMOTE, BranchStatus.AHEAD_OF_REMOTE)
_UNFINISHED_STATUSES = (PackageStatus.PENDING, PackageStatus.READY, PackageStatus.PUBLISHING)


def _resumable(pkg: PackagePublishState) -> bool:
    """Whether a resumed run picks the package up again.

    Failed and skipped packages stay as they are, except packages cancelled
    mid-publish and packages a stopped run never reached.
    """
    if pkg.status in _UNFINISHED_STATUSES:
        return True
    if pkg.status == PackageStatus.SKIPPED:
        return pkg.deferred
    if pkg.status == PackageStatus.FAILED:
        return pkg.error is not None and pkg.error.kind == ErrorKind.CANCELLED
    return False


@dataclass
class SchedulerOptions:
    """Run options.

    Attributes:
        concurrency_limit: Number of worker units.
        fail_fast: Stop dequeuing after the first failure.
        relaxed_dependencies: Treat a dependency as satisfied once it is
            terminal and neither failed nor skipped.
        task_timeout: Per-package timeout in seconds.
        auto_sync: Remediate ahead/behind branches before publishing.
        push_enabled: Allow auto_sync to push.
        auto_force_with_lease: Allow the ancestor-checked force push when a
            regular push is rejected.
        retry: Retry policy for recoverable error kinds.
        working_branch: Recorded in the run state.
        target_branch: Recorded in the run state.
        resume: Continue the persisted run instead of starting fresh.
        env: Extra environment variables handed to tasks.
    """

    concurrency_limit: int = 4
    fail_fast: bool = False
    relaxed_dependencies: bool = False
    task_timeout: float | None = None
    auto_sync: bool = False
    push_enabled: bool = False
    auto_force_with_lease: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    working_branch: str | None = None
    target_branch: str | None = None
    resume: bool = False
    env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: PublishConfig, **overrides: Any) -> SchedulerOptions:
        options = cls(
            concurrency_limit=config.max_concurrency,
            fail_fast=config.fail_fast,
            task_timeout=config.task_timeout,
            auto_sync=config.auto_sync,
            push_enabled=config.push_enabled,
            auto_force_with_lease=config.auto_force_with_lease,
            retry=RetryPolicy.from_config(config.retry),
            working_branch=config.working_branch,
            target_branch=config.target_branch,
        )
        return replace(options, **overrides)


class PublishScheduler:
    """Coordinates one publish run.

    Owns the in-memory PublishState and is its only writer. Ready package
    names flow through one asyncio queue to ``concurrency_limit`` worker
    tasks. Every transition happens under one asyncio lock and is persisted
    before the next scheduling decision. A scheduler instance drives a
    single run.

    Attributes:
        store: Durable state record.
        options: Run options.
        auditor: Branch auditor consulted before each package, if any.
    """

    def __init__(
        self,
        store: StateStore,
        options: SchedulerOptions | None = None,
        *,
        auditor: BranchAuditor | None = None,
    ) -> None:
        self.store = store
        self.options = options or SchedulerOptions()
        self.auditor = auditor

        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._in_flight: set[str] = set()
        self._stopping = False
        self._halted_by: str | None = None
        self._done = False
        self._graph = DependencyGraph()
        self._state = PublishState()
        self._started = 0.0
        self._durations: dict[str, float] = {}
        self._peak = 0

    @property
    def state(self) -> PublishState:
        return self._state

    @property
    def concurrency_limit(self) -> int:
        return max(1, self.options.concurrency_limit)

    def stop(self) -> None:
        """Stop dequeuing new packages.

        Packages already publishing run to completion (or their timeout);
        everything not yet started ends up skipped.
        """
        if not self._stopping:
            logger.warning("Stop requested; waiting for %d running package(s)", len(self._in_flight))
        self._halt(None)

    async def run(self, graph: DependencyGraph, task: PublishTask) -> PublishState:
        """Publish every package of ``graph`` in dependency order.

        Args:
            graph: Validated or unvalidated dependency graph.
            task: Task executed for each package.

        Returns:
            Final state; every package is published, failed or skipped.

        Raises:
            MissingDependencyError: If an edge points outside the graph.
            CircularDependencyError: If the graph has a cycle.
            StateError: If the state record cannot be read or written.
        """
        validation = validate_graph(graph)
        if not validation.valid:
            if validation.cycle:
                raise CircularDependencyError(validation.cycle)
            raise MissingDependencyError(validation.errors)

        self._graph = graph
        self._started = time.monotonic()
        self._state = self._prepare_state(graph)

        logger.info(
            "Publishing %d package(s) with concurrency %d",
            len(graph),
            self.concurrency_limit,
        )

        async with self._lock:
            self._seed()
            self._check_done()

        workers = [
            asyncio.create_task(self._worker(task), name=f"monopub-worker-{i}")
            for i in range(self.concurrency_limit)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException as e:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if isinstance(e, asyncio.CancelledError):
                async with self._lock:
                    self._record_cancelled()
            raise

        async with self._lock:
            self._finalize()
        return self._state

    # State preparation

    def _prepare_state(self, graph: DependencyGraph) -> PublishState:
        prior = self.store.load() if self.options.resume else None

        if prior is None:
            state = PublishState(
                working_branch=self.options.working_branch,
                target_branch=self.options.target_branch,
                packages={
                    name: PackagePublishState(version=pkg.version)
                    for name, pkg in graph.packages.items()
                },
            )
            return self.store.reset(state)

        state = prior
        state.working_branch = state.working_branch or self.options.working_branch
        state.target_branch = state.target_branch or self.options.target_branch
        state.metrics = None

        validation = validate_state(state, graph)
        for message in [*validation.issues, *validation.warnings]:
            logger.warning("Resumed publish state: %s", message)

        # Packages removed from the workspace can never finish
        for name in sorted(set(state.packages) - set(graph.packages)):
            del state.packages[name]

        for name, pkg in graph.packages.items():
            current = state.packages.get(name)
            if current is None:
                state.packages[name] = PackagePublishState(version=pkg.version)
                continue
            if not _resumable(current):
                logger.info("%s is %s, keeping it", name, current.status.value)
                continue
            interrupted = current.needs_recovery or current.status in (
                PackageStatus.PUBLISHING,
                PackageStatus.FAILED,
            )
            if interrupted:
                logger.warning("%s was interrupted while publishing; republishing", name)
            state.packages[name] = PackagePublishState(
                version=current.version or pkg.version,
                pull_request_id=current.pull_request_id,
                needs_recovery=interrupted,
            )

        self.store.save(state)
        return state

    # Scheduling (coordinator side, no awaits between read and write)

    def _status(self, name: str) -> PackageStatus:
        return self._state.packages[name].status

    def _is_ready(self, name: str) -> bool:
        statuses = [self._status(dep) for dep in self._graph.dependencies_of(name)]
        if self.options.relaxed_dependencies:
            return all(
                s.is_terminal and s not in (PackageStatus.FAILED, PackageStatus.SKIPPED)
                for s in statuses
            )
        return all(s == PackageStatus.PUBLISHED for s in statuses)

    def _transition(self, name: str, status: PackageStatus, **changes: Any) -> None:
        self.store.update(self._state, name, status=status, **changes)

    def _enqueue(self, name: str) -> None:
        self._transition(name, PackageStatus.READY)
        self._queue.put_nowait(name)
        logger.debug("%s is ready", name)

    def _seed(self) -> None:
        for name in topological_sort(self._graph):
            if self._status(name) == PackageStatus.PENDING and self._is_ready(name):
                self._enqueue(name)

    def _enqueue_ready_dependents(self, name: str) -> None:
        if self._stopping:
            return
        for dependent in sorted(self._graph.dependents_of(name)):
            if self._status(dependent) == PackageStatus.PENDING and self._is_ready(dependent):
                self._enqueue(dependent)

    def _skip_dependents(self, name: str) -> None:
        reason = f"blocked by failed dependency {name}"
        for dependent in sorted(find_all_dependents(name, self._graph)):
            if self._status(dependent).is_terminal:
                continue
            self._transition(dependent, PackageStatus.SKIPPED, reason=reason)
            logger.warning("Skipping %s (%s)", dependent, reason)

    def _halt(self, failed: str | None) -> None:
        if self._stopping:
            return
        self._stopping = True
        self._halted_by = failed
        while not self._queue.empty():
            name = self._queue.get_nowait()
            self._queue.task_done()
            logger.debug("Dropped %s from the ready queue", name)
        self._check_done()

    def _check_done(self) -> None:
        """Release the workers once nothing is queued or running."""
        if self._done or self._in_flight or not self._queue.empty():
            return
        self._done = True
        for _ in range(self.concurrency_limit):
            self._queue.put_nowait(None)

    def _finalize(self) -> None:
        for name in self._graph.names:
            if self._status(name).is_terminal:
                continue
            deferred = self._stopping
            if self._halted_by is not None:
                reason = f"run halted after failure of {self._halted_by}"
            elif self._stopping:
                reason = f"run stopped before {name} started"
            else:
                reason = "dependencies were not published"
            self._transition(name, PackageStatus.SKIPPED, reason=reason, deferred=deferred)
            logger.warning("Skipping %s (%s)", name, reason)

        durations = dict(self._durations)
        self._state.metrics = RunMetrics(
            total_duration=time.monotonic() - self._started,
            package_durations=durations,
            average_package_duration=(
                sum(durations.values()) / len(durations) if durations else None
            ),
            peak_concurrency=self._peak,
        )
        self.store.save(self._state)

        published = len(self._state.names_with_status(PackageStatus.PUBLISHED))
        failed = len(self._state.names_with_status(PackageStatus.FAILED))
        skipped = len(self._state.names_with_status(PackageStatus.SKIPPED))
        logger.info(
            "Run finished in %.1fs: %d published, %d failed, %d skipped",
            self._state.metrics.total_duration,
            published,
            failed,
            skipped,
        )

    def _record_cancelled(self) -> None:
        for name in sorted(self._in_flight):
            self._transition(
                name,
                PackageStatus.FAILED,
                error=ErrorInfo.from_exception(TaskCancelledError(name)),
                needs_recovery=True,
            )
            logger.error("%s cancelled while publishing", name)
        self._in_flight.clear()

    # Worker side

    async def _worker(self, task: PublishTask) -> None:
        while True:
            name = await self._queue.get()
            try:
                if name is None:
                    return
                if self._stopping:
                    continue
                self._in_flight.add(name)
                self._peak = max(self._peak, len(self._in_flight))
                started = time.monotonic()
                outcome = await self._process(name, task)
                await self._complete(name, outcome, time.monotonic() - started)
            finally:
                self._queue.task_done()

    async def _complete(self, name: str, outcome: Outcome, duration: float) -> None:
        async with self._lock:
            self._in_flight.discard(name)
            self._durations[name] = duration
            package = self._graph.packages[name]

            if outcome.success:
                self._transition(
                    name,
                    PackageStatus.PUBLISHED,
                    version=outcome.version or package.version,
                    pull_request_id=outcome.pull_request_id,
                    commit_ref=outcome.commit_ref,
                    error=None,
                    needs_recovery=False,
                    duration=duration,
                )
                suffix = " (no changes)" if outcome.no_changes else ""
                logger.info("Published %s%s", name, suffix)
                self._enqueue_ready_dependents(name)
            else:
                error = outcome.error or ErrorInfo.from_exception(RuntimeError("task failed"))
                self._transition(name, PackageStatus.FAILED, error=error, duration=duration)
                logger.error("%s failed: %s", name, error.message)
                self._skip_dependents(name)
                if self.options.fail_fast:
                    self._halt(name)

            self._check_done()

    async def _process(self, name: str, task: PublishTask) -> Outcome:
        package = self._graph.packages[name]

        if self.auditor is not None:
            blocked = await self._check_branch(self.auditor, name)
            if blocked is not None:
                return Outcome(success=False, error=blocked)

        retry = self.options.retry
        attempt = 1
        while True:
            async with self._lock:
                self._transition(name, PackageStatus.PUBLISHING, attempts=attempt)
            logger.info("Publishing %s (attempt %d)", name, attempt)
            context = TaskContext(
                package=package,
                graph=self._graph,
                attempt=attempt,
                published_versions=self._published_versions(),
                git_locks=self.auditor.locks if self.auditor else None,
                env=dict(self.options.env),
            )
            outcome = await self._execute_once(name, task, context)
            if outcome.success or outcome.error is None:
                return outcome
            if self._stopping or not retry.should_retry(outcome.error.kind, attempt):
                return outcome

            delay = retry.delay_for(attempt)
            logger.warning(
                "%s failed with %s (attempt %d/%d), retrying in %.1fs",
                name,
                outcome.error.kind.value,
                attempt,
                retry.max_attempts,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def _execute_once(self, name: str, task: PublishTask, context: TaskContext) -> Outcome:
        timeout = self.options.task_timeout
        try:
            return await asyncio.wait_for(task.execute(context), timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            if timeout is None:
                return Outcome.from_exception(e)
            return Outcome.from_exception(TaskTimeoutError(name, timeout))
        except MonopubError as e:
            return Outcome.from_exception(e)
        except Exception as e:
            logger.exception("Unexpected error while publishing %s", name)
            return Outcome.from_exception(e)

    def _published_versions(self) -> dict[str, str]:
        return {
            name: pkg.version
            for name, pkg in self._state.packages.items()
            if pkg.status == PackageStatus.PUBLISHED and pkg.version
        }

    async def _check_branch(self, auditor: BranchAuditor, name: str) -> ErrorInfo | None:
        """Audit and optionally sync the package branch.

        Returns:
            The blocking error, or None if publishing may proceed.
        """
        package = self._graph.packages[name]
        vcs = auditor.vcs

        try:
            audit = await auditor.audit(package)
        except GitError as e:
            return ErrorInfo.from_exception(e)

        status = audit.status
        if status in _PROCEED_STATUSES:
            if status == BranchStatus.NO_REMOTE_BRANCH:
                logger.warning("%s: no remote branch %s/%s", name, audit.remote, audit.branch)
            return None

        if not (self.options.auto_sync and status in _SYNCABLE_STATUSES):
            return ErrorInfo.from_exception(audit.to_error())

        try:
            async with auditor.locks.hold(package.path):
                result = await safe_sync(vcs, audit, allow_push=self.options.push_enabled)
                if result.push_rejected and self.options.auto_force_with_lease:
                    await force_push_with_lease(vcs, package.path, audit.branch, audit.remote)
                    return None
        except (ForcePushRejectedError, GitError) as e:
            return ErrorInfo.from_exception(e)

        if result.success:
            for action in result.actions:
                logger.info("%s: %s", name, action)
            return None

        kind = ErrorKind.DIVERGED if result.conflict_resolution_required else ErrorKind.GIT_FAILED
        return ErrorInfo(kind=kind, message=f"{name}: {result.error}")


async def run_publish(
    graph: DependencyGraph,
    concurrency_limit: int,
    task: PublishTask,
    *,
    store: StateStore,
    options: SchedulerOptions | None = None,
    auditor: BranchAuditor | None = None,
) -> PublishState:
    """Convenience function to publish a graph.

    Args:
        graph: Dependency graph.
        concurrency_limit: Number of worker units.
        task: Task executed for each package.
        store: State record.
        options: Further run options.
        auditor: Branch auditor to consult before each package.

    Returns:
        Final publish state.
    """
    options = replace(options or SchedulerOptions(), concurrency_limit=concurrency_limit)
    scheduler = PublishScheduler(store, options, auditor=auditor)
    return await scheduler.run(graph, task)
