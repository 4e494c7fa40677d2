"""Recovery summary and manual state repair between runs."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from monopub.errors import ErrorKind, PackageNotFoundError
from monopub.graph import DependencyGraph, find_all_dependents
from monopub.state.models import ErrorInfo, PackagePublishState, PackageStatus, PublishState
from monopub.state.store import StateStore

logger = logging.getLogger(__name__)

BLOCKED_REASON_PREFIX = "blocked by failed dependency"


@dataclass
class RecoveryEntry:
    """One package that needs attention after a run."""

    name: str
    status: PackageStatus
    reason: str
    error_kind: ErrorKind | None = None
    suggestion: str = ""


@dataclass
class RecoverySummary:
    """Which packages need attention and why."""

    entries: list[RecoveryEntry] = field(default_factory=list)
    published: int = 0
    total: int = 0

    @property
    def needs_attention(self) -> bool:
        return bool(self.entries)

    @property
    def failed(self) -> list[RecoveryEntry]:
        return [e for e in self.entries if e.status == PackageStatus.FAILED]

    @property
    def skipped(self) -> list[RecoveryEntry]:
        return [e for e in self.entries if e.status == PackageStatus.SKIPPED]

    def names(self) -> list[str]:
        return [e.name for e in self.entries]


def _suggestion(kind: ErrorKind | None) -> str:
    if kind in (ErrorKind.DIRTY, ErrorKind.WRONG_BRANCH, ErrorKind.DIVERGED):
        return "Fix the branch state, then retry failed packages"
    if kind == ErrorKind.FORCE_PUSH_REJECTED:
        return "Rebase onto the remote branch manually, then retry failed packages"
    if kind == ErrorKind.CANCELLED:
        return "Check whether the package was published, then resume or mark completed"
    if kind == ErrorKind.TIMEOUT:
        return "Check whether the package was published, then retry or mark completed"
    return "Fix the error, then retry failed packages"


def _skip_suggestion(pkg: PackagePublishState) -> str:
    if pkg.deferred:
        return "Resume to publish it"
    if pkg.reason and pkg.reason.startswith(BLOCKED_REASON_PREFIX):
        return "Retry failed packages, then resume"
    return "Reset it, then resume"


def summarize(state: PublishState) -> RecoverySummary:
    """Build the recovery summary of a finished or interrupted run."""
    entries: list[RecoveryEntry] = []

    for name in sorted(state.packages):
        pkg = state.packages[name]
        if pkg.status == PackageStatus.FAILED:
            kind = pkg.error.kind if pkg.error else None
            message = pkg.error.message if pkg.error else "failed"
            entries.append(
                RecoveryEntry(name, pkg.status, message, kind, _suggestion(kind))
            )
        elif pkg.status == PackageStatus.SKIPPED:
            entries.append(
                RecoveryEntry(
                    name,
                    pkg.status,
                    pkg.reason or "skipped",
                    suggestion=_skip_suggestion(pkg),
                )
            )
        elif pkg.needs_recovery:
            entries.append(
                RecoveryEntry(
                    name,
                    pkg.status,
                    "interrupted while publishing",
                    suggestion="Verify the registry, then mark completed or reset",
                )
            )

    return RecoverySummary(
        entries=entries,
        published=len(state.names_with_status(PackageStatus.PUBLISHED)),
        total=len(state.packages),
    )


@dataclass
class StateValidation:
    """Consistency of a persisted run with the current workspace.

    Attributes:
        issues: Problems that make the record disagree with the graph.
        warnings: Suspicious but resumable states.
    """

    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


def validate_state(state: PublishState, graph: DependencyGraph) -> StateValidation:
    """Check a persisted run against the dependency graph."""
    result = StateValidation()

    unknown = sorted(set(state.packages) - set(graph.packages))
    if unknown:
        result.issues.append(f"Packages not in the workspace: {', '.join(unknown)}")
    missing = sorted(set(graph.packages) - set(state.packages))
    if missing:
        result.issues.append(f"Missing packages: {', '.join(missing)}")

    for name in sorted(state.packages):
        pkg = state.packages[name]
        if pkg.status == PackageStatus.PUBLISHING:
            result.warnings.append(f"{name} was left publishing by an interrupted run")
        if pkg.status != PackageStatus.PUBLISHED or name not in graph.packages:
            continue
        for dep in sorted(graph.dependencies_of(name)):
            if dep in state.packages and state.status_of(dep) != PackageStatus.PUBLISHED:
                result.warnings.append(f"{name} is published but its dependency {dep} is not")

    return result


class RecoveryController:
    """Manual adjustments of a persisted run before resuming it.

    Package identifiers may be package names or directory names.
    """

    def __init__(self, store: StateStore, graph: DependencyGraph) -> None:
        self.store = store
        self.graph = graph

    def _resolve(self, identifiers: Iterable[str]) -> list[str]:
        names: list[str] = []
        for identifier in identifiers:
            name = self.graph.resolve(identifier)
            if name is None:
                available = [f"{p.dir_name} ({n})" for n, p in sorted(self.graph.packages.items())]
                raise PackageNotFoundError(identifier, available)
            names.append(name)
        return names

    def summarize(self, state: PublishState) -> RecoverySummary:
        return summarize(state)

    def validate(self, state: PublishState) -> StateValidation:
        return validate_state(state, self.graph)

    def mark_completed(self, state: PublishState, packages: Iterable[str]) -> None:
        """Record packages as published (e.g. published by hand)."""
        for name in self._resolve(packages):
            if state.status_of(name) == PackageStatus.PUBLISHED:
                logger.warning("Package %s already published", name)
                continue
            self.store.update(
                state,
                name,
                status=PackageStatus.PUBLISHED,
                error=None,
                reason=None,
                needs_recovery=False,
                deferred=False,
            )
            logger.info("Marked %s as published", name)

    def mark_failed(
        self,
        state: PublishState,
        packages: Iterable[str],
        reason: str = "Manually marked as failed",
    ) -> None:
        """Record packages as failed and skip their dependents."""
        for name in self._resolve(packages):
            self.store.update(
                state,
                name,
                status=PackageStatus.FAILED,
                error=ErrorInfo(kind=ErrorKind.UNKNOWN, message=reason),
                reason=None,
                needs_recovery=False,
                deferred=False,
            )
            logger.info("Marked %s as failed", name)
            self._skip_dependents(state, name, f"{BLOCKED_REASON_PREFIX} {name}")

    def skip_packages(self, state: PublishState, packages: Iterable[str]) -> None:
        """Skip packages and everything depending on them."""
        for name in self._resolve(packages):
            if state.status_of(name) != PackageStatus.PUBLISHED:
                self.store.update(
                    state,
                    name,
                    status=PackageStatus.SKIPPED,
                    reason="skipped manually",
                    deferred=False,
                )
                logger.info("Skipped %s", name)
            self._skip_dependents(state, name, f"blocked by skipped dependency {name}")

    def skip_failed(self, state: PublishState) -> list[str]:
        """Give up on failed packages: skip them and their dependents.

        Returns:
            Names of the packages that had failed.
        """
        failed = state.names_with_status(PackageStatus.FAILED)
        for name in failed:
            error = state.packages[name].error
            reason = "skipped after failing"
            if error is not None:
                reason = f"{reason} ({error.kind.value})"
            self.store.update(
                state,
                name,
                status=PackageStatus.SKIPPED,
                error=None,
                reason=reason,
                needs_recovery=False,
                deferred=False,
            )
            logger.info("Skipped failed package %s", name)
            self._skip_dependents(state, name, f"blocked by skipped dependency {name}")
        if not failed:
            logger.info("No failed packages to skip")
        return failed

    def reset_package(self, state: PublishState, package: str) -> None:
        """Return a package and its skipped dependents to pending."""
        (name,) = self._resolve([package])
        self._reset(state, name)
        for dependent in sorted(find_all_dependents(name, self.graph)):
            if state.status_of(dependent) == PackageStatus.SKIPPED:
                self._reset(state, dependent)

    def retry_failed(self, state: PublishState) -> list[str]:
        """Return failed packages and the packages they blocked to pending.

        Returns:
            Names that were reset.
        """
        reset: list[str] = []
        for name in state.names_with_status(PackageStatus.FAILED):
            self._reset(state, name)
            reset.append(name)
        for name in state.names_with_status(PackageStatus.SKIPPED):
            pkg = state.packages[name]
            if pkg.reason and pkg.reason.startswith(BLOCKED_REASON_PREFIX):
                self._reset(state, name)
                reset.append(name)
        if not reset:
            logger.info("No failed packages to retry")
        return reset

    def _reset(self, state: PublishState, name: str) -> None:
        self.store.update(
            state,
            name,
            status=PackageStatus.PENDING,
            error=None,
            reason=None,
            attempts=0,
            needs_recovery=False,
            deferred=False,
        )
        logger.info("Reset %s to pending", name)

    def _skip_dependents(self, state: PublishState, name: str, reason: str) -> None:
        for dependent in sorted(find_all_dependents(name, self.graph)):
            if state.status_of(dependent) == PackageStatus.PUBLISHED:
                continue
            self.store.update(
                state, dependent, status=PackageStatus.SKIPPED, reason=reason, deferred=False
            )
            logger.warning("Skipping %s (%s)", dependent, reason)
