"""Persisted publish state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from monopub.errors import ErrorKind, MonopubError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PackageStatus(str, Enum):
    """Lifecycle of one package within a run.

    pending -> ready -> publishing -> published | failed, and any
    non-terminal status -> skipped.
    """

    PENDING = "pending"
    READY = "ready"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {PackageStatus.PUBLISHED, PackageStatus.FAILED, PackageStatus.SKIPPED}
)


class ErrorInfo(BaseModel):
    """Classified error recorded for a package."""

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        if isinstance(exc, MonopubError):
            return cls(kind=exc.kind, message=exc.message)
        return cls(kind=ErrorKind.UNKNOWN, message=str(exc) or type(exc).__name__)


class PackagePublishState(BaseModel):
    """Last known state of one package.

    Attributes:
        status: Current status.
        version: Version being (or that was) published.
        pull_request_id: Pull request opened for the release, if any.
        commit_ref: Commit the package was published from, if known.
        error: Error that failed the package.
        reason: Why the package was skipped.
        attempts: Publish attempts made in the current run.
        timestamp: Time of the last transition.
        needs_recovery: A previous run was interrupted mid-publish.
        deferred: Skipped only because the run stopped before reaching the
            package; a resumed run publishes it.
        duration: Seconds spent publishing in the last run that processed
            the package.
    """

    status: PackageStatus = PackageStatus.PENDING
    version: str | None = None
    pull_request_id: int | None = None
    commit_ref: str | None = None
    error: ErrorInfo | None = None
    reason: str | None = None
    attempts: int = 0
    timestamp: str = Field(default_factory=utc_now_iso)
    needs_recovery: bool = False
    deferred: bool = False
    duration: float | None = None


class RunMetrics(BaseModel):
    """Timing of the last run.

    Attributes:
        total_duration: Wall-clock seconds from start to finish.
        package_durations: Seconds per package processed in the run.
        average_package_duration: Mean of ``package_durations``.
        peak_concurrency: Most packages publishing at the same time.
    """

    total_duration: float = 0.0
    package_durations: dict[str, float] = Field(default_factory=dict)
    average_package_duration: float | None = None
    peak_concurrency: int = 0


class PublishState(BaseModel):
    """State of one publish run.

    Attributes:
        working_branch: Branch packages are published from.
        target_branch: Branch releases are merged into.
        started_at: When the run was first started.
        last_updated: Time of the last saved transition.
        packages: Package name to state.
        metrics: Timing of the last run, once it finished.
    """

    working_branch: str | None = None
    target_branch: str | None = None
    started_at: str = Field(default_factory=utc_now_iso)
    last_updated: str = Field(default_factory=utc_now_iso)
    packages: dict[str, PackagePublishState] = Field(default_factory=dict)
    metrics: RunMetrics | None = None

    def status_of(self, name: str) -> PackageStatus | None:
        pkg = self.packages.get(name)
        return pkg.status if pkg else None

    def names_with_status(self, *statuses: PackageStatus) -> list[str]:
        return sorted(name for name, pkg in self.packages.items() if pkg.status in statuses)

    @property
    def is_complete(self) -> bool:
        """Every tracked package reached a terminal status."""
        return all(pkg.status.is_terminal for pkg in self.packages.values())

    @property
    def all_published(self) -> bool:
        return all(pkg.status == PackageStatus.PUBLISHED for pkg in self.packages.values())
