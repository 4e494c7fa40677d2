"""Integration tests for branch auditing and syncing.

Runs against a real bare remote and clone to check that ahead/behind
counts, dirty detection and the guarded force push behave as git does.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from monopub.errors import ForcePushRejectedError
from monopub.git import GitClient
from monopub.graph import Package
from monopub.safety import BranchAuditor, BranchStatus, force_push_with_lease, safe_sync

pytestmark = pytest.mark.integration


def run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run a git command."""
    return subprocess.run(
        ["git"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )


def commit(repo: Path, filename: str, content: str = "change\n") -> str:
    (repo / filename).write_text(content)
    run_git(["add", filename], repo)
    run_git(["commit", "-m", f"add {filename}"], repo)
    return run_git(["rev-parse", "HEAD"], repo).stdout.strip()


@pytest.fixture
def clone(git_remote_clone: tuple[Path, Path]) -> Path:
    return git_remote_clone[1]


@pytest.fixture
def seed(git_remote_clone: tuple[Path, Path]) -> Path:
    """The repository that created the remote, used as 'someone else'."""
    return git_remote_clone[0].parent / "seed"


@pytest.fixture
def package(clone: Path) -> Package:
    return Package(name="pkg", version="1.0.0", path=clone)


@pytest.fixture
def auditor() -> BranchAuditor:
    return BranchAuditor(GitClient(), "main")


class TestAudit:
    @pytest.mark.asyncio
    async def test_fresh_clone_is_good(self, auditor, package):
        audit = await auditor.audit(package)

        assert audit.branch == "main"
        assert audit.status == BranchStatus.GOOD

    @pytest.mark.asyncio
    async def test_ahead_by_two(self, auditor, package, clone):
        commit(clone, "one.txt")
        commit(clone, "two.txt")

        audit = await auditor.audit(package)

        assert audit.status == BranchStatus.AHEAD_OF_REMOTE
        assert audit.ahead_count == 2
        assert audit.behind_count == 0

    @pytest.mark.asyncio
    async def test_behind(self, auditor, package, seed):
        commit(seed, "upstream.txt")
        run_git(["push", "origin", "main"], seed)

        audit = await auditor.audit(package)

        assert audit.status == BranchStatus.BEHIND_REMOTE
        assert audit.behind_count == 1

    @pytest.mark.asyncio
    async def test_dirty(self, auditor, package, clone):
        commit(clone, "one.txt")
        (clone / "README.md").write_text("edited\n")
        (clone / "untracked.txt").write_text("new\n")

        audit = await auditor.audit(package)

        assert audit.status == BranchStatus.DIRTY
        assert audit.unstaged_count == 2
        assert audit.ahead_count == 1

    @pytest.mark.asyncio
    async def test_wrong_branch(self, auditor, package, clone):
        run_git(["checkout", "-b", "feature"], clone)

        audit = await auditor.audit(package)

        assert audit.status == BranchStatus.WRONG_BRANCH

    @pytest.mark.asyncio
    async def test_unpushed_branch_has_no_remote(self, package, clone):
        run_git(["checkout", "-b", "feature"], clone)

        audit = await BranchAuditor(GitClient(), "feature").audit(package)

        assert audit.status == BranchStatus.NO_REMOTE_BRANCH


class TestSync:
    @pytest.mark.asyncio
    async def test_fast_forward(self, auditor, package, clone, seed):
        upstream = commit(seed, "upstream.txt")
        run_git(["push", "origin", "main"], seed)

        result = await safe_sync(GitClient(), await auditor.audit(package))

        assert result.success
        assert run_git(["rev-parse", "HEAD"], clone).stdout.strip() == upstream

    @pytest.mark.asyncio
    async def test_diverged_is_left_alone(self, auditor, package, clone, seed):
        commit(seed, "upstream.txt")
        run_git(["push", "origin", "main"], seed)
        local = commit(clone, "local.txt")

        result = await safe_sync(GitClient(), await auditor.audit(package))

        assert not result.success
        assert result.conflict_resolution_required
        assert run_git(["rev-parse", "HEAD"], clone).stdout.strip() == local

    @pytest.mark.asyncio
    async def test_push_when_ahead(self, auditor, package, clone, git_remote_clone):
        remote = git_remote_clone[0]
        local = commit(clone, "local.txt")

        result = await safe_sync(GitClient(), await auditor.audit(package), allow_push=True)

        assert result.success
        assert run_git(["rev-parse", "main"], remote).stdout.strip() == local


class TestForcePush:
    @pytest.mark.asyncio
    async def test_rejected_when_remote_has_other_commits(self, clone, seed):
        commit(seed, "upstream.txt")
        run_git(["push", "origin", "main"], seed)
        commit(clone, "local.txt")

        with pytest.raises(ForcePushRejectedError) as exc_info:
            await force_push_with_lease(GitClient(), clone, "main")

        assert "Resolve manually" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_allowed_when_local_contains_remote(self, clone, git_remote_clone):
        remote = git_remote_clone[0]
        commit(clone, "one.txt")
        local = commit(clone, "two.txt")

        pushed = await force_push_with_lease(GitClient(), clone, "main")

        assert pushed == local
        assert run_git(["rev-parse", "main"], remote).stdout.strip() == local
