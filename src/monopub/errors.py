"""Exception hierarchy for monopub.

Every exception carries a ``kind`` that is written to the persisted
publish state, so a failed package can be inspected after the run.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Classified error kinds recorded in package state."""

    # Graph
    MISSING_DEPENDENCY = "missing_dependency"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    # Scheduler
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    # Publish
    BUILD_FAILED = "build_failed"
    REGISTRY_PUBLISH_FAILED = "registry_publish_failed"
    PULL_REQUEST_FAILED = "pull_request_failed"
    FORCE_PUSH_REJECTED = "force_push_rejected"
    # Branch state
    DIRTY = "dirty"
    WRONG_BRANCH = "wrong_branch"
    DIVERGED = "diverged"
    # Supporting
    GIT_FAILED = "git_failed"
    UNKNOWN = "unknown"


class MonopubError(Exception):
    """Base exception for all monopub errors.

    Attributes:
        message: Human readable description.
        kind: Classified error kind.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(MonopubError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message} ({path})"
        super().__init__(message)


class PackageNotFoundError(MonopubError):
    """A package name is not part of the graph."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = available or []
        message = f"Package not found: {name}"
        if self.available:
            message += f". Available packages: {', '.join(self.available)}"
        super().__init__(message)


class StateError(MonopubError):
    """The persisted publish state cannot be read or written."""


class GitError(MonopubError):
    """A git command failed."""

    kind = ErrorKind.GIT_FAILED

    def __init__(self, message: str, command: str | None = None) -> None:
        self.command = command
        super().__init__(message)


# Graph errors


class GraphError(MonopubError):
    """The dependency graph is not well-formed. Always fatal for a run."""


class MissingDependencyError(GraphError):
    """One or more edges point at packages outside the graph."""

    kind = ErrorKind.MISSING_DEPENDENCY

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class CircularDependencyError(GraphError):
    """The graph contains a cycle.

    Attributes:
        path: Package names on the cycle, first name repeated at the end.
    """

    kind = ErrorKind.CIRCULAR_DEPENDENCY

    def __init__(self, path: list[str]) -> None:
        self.path = path
        super().__init__(f"Circular dependency: {' -> '.join(path)}")


# Scheduler errors


class SchedulerError(MonopubError):
    """A single task was interrupted by the scheduler."""


class TaskTimeoutError(SchedulerError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, package: str, timeout: float) -> None:
        self.package = package
        self.timeout = timeout
        super().__init__(f"{package} timed out after {timeout}s")


class TaskCancelledError(SchedulerError):
    kind = ErrorKind.CANCELLED

    def __init__(self, package: str) -> None:
        self.package = package
        super().__init__(f"{package} was cancelled while publishing")


# Publish errors


class PublishError(MonopubError):
    """Publishing one package failed."""


class BuildFailedError(PublishError):
    kind = ErrorKind.BUILD_FAILED


class RegistryPublishError(PublishError):
    kind = ErrorKind.REGISTRY_PUBLISH_FAILED


class PullRequestErrorKind(str, Enum):
    """Classified failures reported by the pull-request service."""

    EXISTING_PR = "existing_pr"
    NO_COMMITS = "no_commits"
    VALIDATION_FAILED = "validation_failed"
    BRANCH_DIVERGED = "branch_diverged"


class PullRequestError(PublishError):
    """The pull-request service rejected a request."""

    kind = ErrorKind.PULL_REQUEST_FAILED

    def __init__(self, subkind: PullRequestErrorKind, message: str) -> None:
        self.subkind = subkind
        super().__init__(message)


class ForcePushRejectedError(PublishError):
    """A force push was refused because the ancestor check failed."""

    kind = ErrorKind.FORCE_PUSH_REJECTED

    def __init__(
        self,
        branch: str,
        local_sha: str,
        remote_sha: str,
        remote: str = "origin",
    ) -> None:
        self.branch = branch
        self.local_sha = local_sha
        self.remote_sha = remote_sha
        super().__init__(
            f"Refusing to force push '{branch}': local tip {local_sha[:8]} does not "
            f"contain {remote}/{branch} tip {remote_sha[:8]}. Resolve manually: "
            f"git fetch {remote} && git rebase {remote}/{branch}, then push again."
        )


# Branch state errors


class BranchStateError(MonopubError):
    """The package's branch is not safe to publish from."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        if kind not in (ErrorKind.DIRTY, ErrorKind.WRONG_BRANCH, ErrorKind.DIVERGED):
            raise ValueError(f"Not a branch state error kind: {kind}")
        self.kind = kind
        super().__init__(message)
