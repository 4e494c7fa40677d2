"""Publish tasks and the collaborator interfaces they call."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from monopub.errors import ErrorKind, PullRequestError, PullRequestErrorKind
from monopub.execution.runner import run_in_package
from monopub.git.locks import RepositoryLocks
from monopub.graph import DependencyGraph, Package
from monopub.state.models import ErrorInfo

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Result of publishing one package.

    Attributes:
        success: Whether the task succeeded.
        version: Version that was published.
        pull_request_id: Pull request created or reused.
        commit_ref: Commit the package was published from.
        error: Classified error on failure.
        no_changes: The task found nothing to publish.
    """

    success: bool
    version: str | None = None
    pull_request_id: int | None = None
    commit_ref: str | None = None
    error: ErrorInfo | None = None
    no_changes: bool = False

    @classmethod
    def ok(
        cls,
        version: str | None = None,
        *,
        pull_request_id: int | None = None,
        commit_ref: str | None = None,
        no_changes: bool = False,
    ) -> Outcome:
        return cls(
            success=True,
            version=version,
            pull_request_id=pull_request_id,
            commit_ref=commit_ref,
            no_changes=no_changes,
        )

    @classmethod
    def failed(cls, kind: ErrorKind, message: str) -> Outcome:
        return cls(success=False, error=ErrorInfo(kind=kind, message=message))

    @classmethod
    def from_exception(cls, exc: BaseException) -> Outcome:
        return cls(success=False, error=ErrorInfo.from_exception(exc))

    def merge(self, later: Outcome) -> Outcome:
        """Combine with the outcome of a later step; later values win."""
        return Outcome(
            success=self.success and later.success,
            version=later.version or self.version,
            pull_request_id=later.pull_request_id or self.pull_request_id,
            commit_ref=later.commit_ref or self.commit_ref,
            error=later.error or self.error,
            no_changes=self.no_changes and later.no_changes,
        )


@dataclass
class TaskContext:
    """What a publish task gets to see about its package.

    Attributes:
        package: Package being published.
        graph: The run's dependency graph (read-only).
        attempt: Attempt number, starting at 1.
        published_versions: Versions already published in this run, by name.
        git_locks: Per-repository locks for git commands.
        env: Extra environment variables for commands.
    """

    package: Package
    graph: DependencyGraph
    attempt: int = 1
    published_versions: dict[str, str] = field(default_factory=dict)
    git_locks: RepositoryLocks | None = None
    env: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def dependency_versions(self) -> dict[str, str]:
        """Published versions of this package's direct dependencies."""
        return {
            dep: self.published_versions[dep]
            for dep in sorted(self.graph.dependencies_of(self.package.name))
            if dep in self.published_versions
        }


class PublishTask(ABC):
    """One kind of publish operation, executed once per package."""

    name: str = "task"

    @abstractmethod
    async def execute(self, context: TaskContext) -> Outcome:
        """Run the operation for ``context.package``.

        Expected failures are returned as a failed Outcome. Raised
        exceptions are recorded as failures by the scheduler.
        """
        ...


class CommandTask(PublishTask):
    """Run a shell command in the package directory.

    Attributes:
        command: Shell command line.
        error_kind: Kind recorded when the command fails.
        timeout: Command timeout in seconds.
    """

    name = "command"
    error_kind = ErrorKind.UNKNOWN

    def __init__(self, command: str, *, timeout: float | None = None) -> None:
        self.command = command
        self.timeout = timeout

    async def execute(self, context: TaskContext) -> Outcome:
        result = await run_in_package(
            context.package,
            self.command,
            env=context.env,
            timeout=self.timeout,
        )
        if result.timed_out:
            return Outcome.failed(ErrorKind.TIMEOUT, result.stderr)
        if not result.success:
            message = f"`{self.command}` exited with {result.exit_code}"
            if result.output_tail:
                message += f": {result.output_tail}"
            return Outcome.failed(self.error_kind, message)
        return Outcome.ok(context.package.version)


class BuildTask(CommandTask):
    """Build the package (e.g. ``uv build``)."""

    name = "build"
    error_kind = ErrorKind.BUILD_FAILED


class RegistryPublishTask(CommandTask):
    """Upload the built package to its registry (e.g. ``uv publish``)."""

    name = "registry-publish"
    error_kind = ErrorKind.REGISTRY_PUBLISH_FAILED


@dataclass
class PullRequest:
    """A pull request on the hosting service."""

    number: int
    url: str | None = None
    head_sha: str | None = None


class PullRequestService(Protocol):
    """Creates or finds release pull requests.

    Failures are raised as PullRequestError with a classified subkind.
    """

    async def create(self, package: Package, head: str, base: str, title: str) -> PullRequest: ...

    async def find_existing(self, package: Package, head: str, base: str) -> PullRequest | None: ...


class PullRequestTask(PublishTask):
    """Open (or reuse) the release pull request for a package.

    An existing pull request for the same head is reused, and a head with
    no new commits is not an error. Validation failures and diverged
    branches fail the package.
    """

    name = "pull-request"

    def __init__(self, service: PullRequestService, head: str, base: str) -> None:
        self.service = service
        self.head = head
        self.base = base

    def title_for(self, package: Package) -> str:
        return f"Release {package.name}@{package.version}"

    async def execute(self, context: TaskContext) -> Outcome:
        package = context.package
        try:
            pr = await self.service.create(package, self.head, self.base, self.title_for(package))
        except PullRequestError as e:
            if e.subkind == PullRequestErrorKind.EXISTING_PR:
                existing = await self.service.find_existing(package, self.head, self.base)
                if existing is None:
                    return Outcome.failed(
                        ErrorKind.PULL_REQUEST_FAILED,
                        f"{e.subkind.value}: pull request reported but not found ({e.message})",
                    )
                logger.info("%s: reusing pull request #%d", package.name, existing.number)
                return Outcome.ok(pull_request_id=existing.number, commit_ref=existing.head_sha)
            if e.subkind == PullRequestErrorKind.NO_COMMITS:
                logger.info("%s: no commits between %s and %s", package.name, self.base, self.head)
                return Outcome.ok(no_changes=True)
            return Outcome.failed(ErrorKind.PULL_REQUEST_FAILED, f"{e.subkind.value}: {e.message}")

        logger.info("%s: opened pull request #%d", package.name, pr.number)
        return Outcome.ok(pull_request_id=pr.number, commit_ref=pr.head_sha)


class PublishPipeline(PublishTask):
    """Run several tasks in order, stopping at the first failure."""

    name = "publish"

    def __init__(self, tasks: Sequence[PublishTask]) -> None:
        if not tasks:
            raise ValueError("A pipeline needs at least one task")
        self.tasks = list(tasks)

    async def execute(self, context: TaskContext) -> Outcome:
        outcome = Outcome.ok(no_changes=True)
        for task in self.tasks:
            logger.debug("%s: running %s", context.name, task.name)
            step = await task.execute(context)
            outcome = outcome.merge(step)
            if not step.success:
                break
        return outcome
