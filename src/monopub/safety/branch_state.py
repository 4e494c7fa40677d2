"""Branch state audit for packages about to be published."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from monopub.errors import BranchStateError, ErrorKind
from monopub.git.client import VersionControl
from monopub.git.locks import RepositoryLocks
from monopub.graph import Package

logger = logging.getLogger(__name__)


class BranchStatus(str, Enum):
    """Classification of a package's branch."""

    GOOD = "good"
    WRONG_BRANCH = "wrong_branch"
    DIRTY = "dirty"
    AHEAD_OF_REMOTE = "ahead_of_remote"
    BEHIND_REMOTE = "behind_remote"
    NO_REMOTE_BRANCH = "no_remote_branch"


@dataclass
class BranchAuditResult:
    """Branch state of one package.

    Attributes:
        package_name: Audited package.
        path: Package directory.
        branch: Current branch name.
        expected_branch: Branch the package should be on, if known.
        staged_count: Number of staged changes.
        unstaged_count: Number of unstaged or untracked changes.
        ahead_count: Commits not on the remote-tracking branch.
        behind_count: Remote commits missing locally.
        remote_branch_exists: Whether the remote-tracking branch exists.
    """

    package_name: str
    path: Path
    branch: str
    expected_branch: str | None
    staged_count: int = 0
    unstaged_count: int = 0
    ahead_count: int = 0
    behind_count: int = 0
    remote_branch_exists: bool = True
    remote: str = "origin"

    @property
    def on_expected_branch(self) -> bool:
        return self.expected_branch is None or self.branch == self.expected_branch

    @property
    def has_uncommitted_changes(self) -> bool:
        return self.staged_count + self.unstaged_count > 0

    @property
    def status(self) -> BranchStatus:
        """Exactly one classification, in priority order."""
        return classify(self)

    @property
    def is_good(self) -> bool:
        return self.status == BranchStatus.GOOD

    @property
    def issues(self) -> list[str]:
        """Human readable problems found."""
        found: list[str] = []
        if not self.on_expected_branch:
            found.append(f"On branch '{self.branch}' (expected '{self.expected_branch}')")
        if self.has_uncommitted_changes:
            found.append(
                f"Uncommitted changes ({self.staged_count} staged, "
                f"{self.unstaged_count} unstaged)"
            )
        if not self.remote_branch_exists:
            found.append("Remote branch does not exist")
        if self.ahead_count:
            found.append(f"Ahead of remote by {self.ahead_count} commit(s)")
        if self.behind_count:
            found.append(f"Behind remote by {self.behind_count} commit(s)")
        return found

    @property
    def fixes(self) -> list[str]:
        """Suggested shell commands for each issue."""
        cd = f"cd {self.path} &&"
        suggestions: list[str] = []
        if not self.on_expected_branch:
            suggestions.append(f"{cd} git checkout {self.expected_branch}")
        if self.has_uncommitted_changes:
            suggestions.append(f"{cd} git stash  # or commit the changes")
        if not self.remote_branch_exists:
            suggestions.append(f"{cd} git push -u {self.remote} {self.branch}")
        if self.behind_count:
            suggestions.append(f"{cd} git pull --ff-only {self.remote} {self.branch}")
        if self.ahead_count:
            suggestions.append(f"{cd} git push {self.remote} {self.branch}")
        return suggestions

    def to_error(self) -> BranchStateError:
        """Describe a non-good state as a BranchStateError."""
        status = self.status
        if status == BranchStatus.WRONG_BRANCH:
            kind = ErrorKind.WRONG_BRANCH
        elif status == BranchStatus.DIRTY:
            kind = ErrorKind.DIRTY
        else:
            kind = ErrorKind.DIVERGED
        detail = "; ".join(self.issues) or status.value
        return BranchStateError(kind, f"{self.package_name}: {detail}")


def classify(audit: BranchAuditResult) -> BranchStatus:
    """Classify an audit result.

    Wrong branch wins over everything, uncommitted changes win over
    ahead/behind counts, and a branch that is both ahead and behind is
    reported as behind so syncing surfaces the divergence.
    """
    if not audit.on_expected_branch:
        return BranchStatus.WRONG_BRANCH
    if audit.has_uncommitted_changes:
        return BranchStatus.DIRTY
    if not audit.remote_branch_exists:
        return BranchStatus.NO_REMOTE_BRANCH
    if audit.behind_count > 0:
        return BranchStatus.BEHIND_REMOTE
    if audit.ahead_count > 0:
        return BranchStatus.AHEAD_OF_REMOTE
    return BranchStatus.GOOD


class BranchAuditor:
    """Reads branch state of package directories.

    Attributes:
        vcs: Version control interface.
        expected_branch: Working branch packages must be on.
        remote: Remote to compare against.
        fetch: Fetch the remote before counting ahead/behind.
    """

    def __init__(
        self,
        vcs: VersionControl,
        expected_branch: str | None = None,
        *,
        remote: str = "origin",
        fetch: bool = True,
        locks: RepositoryLocks | None = None,
    ) -> None:
        self.vcs = vcs
        self.expected_branch = expected_branch
        self.remote = remote
        self.fetch = fetch
        self.locks = locks or RepositoryLocks(vcs)

    async def audit(self, package: Package, expected_branch: str | None = None) -> BranchAuditResult:
        """Audit one package's branch.

        Args:
            package: Package to audit.
            expected_branch: Override for the auditor's expected branch.

        Returns:
            Audit result.

        Raises:
            GitError: If a git command fails.
        """
        path = package.path
        expected = expected_branch if expected_branch is not None else self.expected_branch

        async with self.locks.hold(path):
            branch = await self.vcs.current_branch(path)
            staged, unstaged = await self.vcs.status_counts(path)
            if self.fetch:
                await self.vcs.fetch(path, self.remote)
            remote_exists = await self.vcs.remote_branch_exists(path, branch, self.remote)
            ahead = behind = 0
            if remote_exists:
                ahead, behind = await self.vcs.ahead_behind(path, branch, self.remote)

        result = BranchAuditResult(
            package_name=package.name,
            path=path,
            branch=branch,
            expected_branch=expected,
            staged_count=staged,
            unstaged_count=unstaged,
            ahead_count=ahead,
            behind_count=behind,
            remote_branch_exists=remote_exists,
            remote=self.remote,
        )
        logger.debug("%s: branch %s is %s", package.name, branch, result.status.value)
        return result

    async def audit_packages(self, packages: Sequence[Package]) -> AuditReport:
        """Audit several packages.

        Without an expected branch, the branch most packages are on is used.
        """
        expected = self.expected_branch
        if expected is None and packages:
            counts: Counter[str] = Counter()
            for pkg in packages:
                async with self.locks.hold(pkg.path):
                    counts[await self.vcs.current_branch(pkg.path)] += 1
            expected = counts.most_common(1)[0][0]
            logger.debug("Most common branch: %s", expected)

        logger.info("Auditing branch state for %d package(s)", len(packages))
        audits = [await self.audit(pkg, expected_branch=expected) for pkg in packages]
        return AuditReport(expected_branch=expected, audits=audits)


@dataclass
class AuditReport:
    """Branch audit across packages."""

    expected_branch: str | None
    audits: list[BranchAuditResult] = field(default_factory=list)

    @property
    def good(self) -> list[BranchAuditResult]:
        return [a for a in self.audits if a.is_good]

    @property
    def with_issues(self) -> list[BranchAuditResult]:
        return [a for a in self.audits if not a.is_good]

    @property
    def all_good(self) -> bool:
        return not self.with_issues
