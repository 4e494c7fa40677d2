"""Safe branch synchronization and the guarded force push."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from monopub.errors import ForcePushRejectedError, GitError
from monopub.git.client import VersionControl
from monopub.safety.branch_state import BranchAuditResult, BranchStatus

logger = logging.getLogger(__name__)

_DIVERGED_MARKERS = (
    "diverged",
    "not possible to fast-forward",
    "non-fast-forward",
    "conflict",
)


@dataclass
class SyncResult:
    """Outcome of a sync attempt.

    Attributes:
        success: Branch is now in sync (or nothing had to be done).
        actions: Actions that were performed.
        error: Why syncing failed.
        conflict_resolution_required: History diverged; a person must
            merge or rebase.
        push_rejected: The remote refused a regular push.
    """

    success: bool
    actions: list[str] = field(default_factory=list)
    error: str | None = None
    conflict_resolution_required: bool = False
    push_rejected: bool = False


async def safe_sync(
    vcs: VersionControl,
    audit: BranchAuditResult,
    *,
    allow_push: bool = False,
) -> SyncResult:
    """Bring a package branch in line with its remote without merging.

    Behind and clean: fast-forward only; a branch that cannot fast-forward
    is reported with ``conflict_resolution_required`` and left untouched.
    Ahead: push only when ``allow_push`` is set. Other states are not
    remediated here.

    Args:
        vcs: Version control interface.
        audit: Fresh audit of the package.
        allow_push: Permit pushing local commits.

    Returns:
        Sync result.
    """
    status = audit.status
    path, branch, remote = audit.path, audit.branch, audit.remote

    if status == BranchStatus.GOOD:
        return SyncResult(success=True)

    if status == BranchStatus.BEHIND_REMOTE:
        try:
            await vcs.pull_ff_only(path, branch, remote)
        except GitError as e:
            if any(marker in e.message.lower() for marker in _DIVERGED_MARKERS):
                logger.warning("%s: cannot fast-forward %s", audit.package_name, branch)
                return SyncResult(
                    success=False,
                    conflict_resolution_required=True,
                    error=(
                        f"Branch '{branch}' has diverged from '{remote}/{branch}' "
                        "and requires manual conflict resolution"
                    ),
                )
            return SyncResult(success=False, error=f"Failed to sync '{branch}': {e.message}")
        logger.info("%s: fast-forwarded %s", audit.package_name, branch)
        return SyncResult(success=True, actions=[f"Fast-forwarded {branch} to {remote}/{branch}"])

    if status == BranchStatus.AHEAD_OF_REMOTE:
        if not allow_push:
            return SyncResult(
                success=False,
                error=f"Ahead of {remote}/{branch} by {audit.ahead_count} commit(s); pushing is disabled",
            )
        try:
            await vcs.push(path, branch, remote)
        except GitError as e:
            return SyncResult(
                success=False,
                push_rejected=True,
                error=f"Push of '{branch}' rejected: {e.message}",
            )
        logger.info("%s: pushed %d commit(s) to %s", audit.package_name, audit.ahead_count, remote)
        return SyncResult(success=True, actions=[f"Pushed {branch} to {remote}"])

    return SyncResult(success=False, error=f"Cannot auto-sync a branch in state '{status.value}'")


async def verify_force_push_allowed(
    vcs: VersionControl,
    path: Path,
    branch: str,
    remote: str = "origin",
) -> tuple[str, str]:
    """Check that the local branch tip contains the remote tip.

    Args:
        vcs: Version control interface.
        path: Repository path.
        branch: Branch to push.
        remote: Remote name.

    Returns:
        Tuple of (local_sha, remote_sha).

    Raises:
        ForcePushRejectedError: If the local tip is neither equal to nor a
            descendant of the remote tip.
    """
    await vcs.fetch(path, remote)
    local_sha = await vcs.rev_parse(path, f"refs/heads/{branch}")
    remote_sha = await vcs.rev_parse(path, f"refs/remotes/{remote}/{branch}")

    if local_sha != remote_sha and not await vcs.is_ancestor(path, remote_sha, local_sha):
        raise ForcePushRejectedError(branch, local_sha, remote_sha, remote)

    return local_sha, remote_sha


async def force_push_with_lease(
    vcs: VersionControl,
    path: Path,
    branch: str,
    remote: str = "origin",
) -> str:
    """Force push a branch, but only over history it already contains.

    The lease is pinned to the remote tip that passed the ancestor check,
    so a concurrent remote update also makes the push fail.

    Returns:
        The pushed local SHA.

    Raises:
        ForcePushRejectedError: If the ancestor check fails.
        GitError: If git rejects the push.
    """
    local_sha, remote_sha = await verify_force_push_allowed(vcs, path, branch, remote)
    await vcs.push_force_with_lease(path, branch, remote, remote_sha)
    logger.info("Force pushed %s (%s) with lease on %s", branch, local_sha[:8], remote_sha[:8])
    return local_sha
