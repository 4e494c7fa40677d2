"""Version control interface used by the branch auditor."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from monopub.errors import GitError
from monopub.git.repo import parse_porcelain_status, run_git_command_async


class VersionControl(Protocol):
    """The narrow set of git operations the orchestrator issues."""

    async def repo_root(self, path: Path) -> Path: ...

    async def current_branch(self, path: Path) -> str: ...

    async def status_counts(self, path: Path) -> tuple[int, int]: ...

    async def fetch(self, path: Path, remote: str) -> None: ...

    async def remote_branch_exists(self, path: Path, branch: str, remote: str) -> bool: ...

    async def ahead_behind(self, path: Path, branch: str, remote: str) -> tuple[int, int]: ...

    async def rev_parse(self, path: Path, ref: str) -> str: ...

    async def is_ancestor(self, path: Path, ancestor: str, descendant: str) -> bool: ...

    async def pull_ff_only(self, path: Path, branch: str, remote: str) -> None: ...

    async def push(
        self, path: Path, branch: str, remote: str, *, set_upstream: bool = False
    ) -> None: ...

    async def push_force_with_lease(
        self, path: Path, branch: str, remote: str, expected_sha: str
    ) -> None: ...


class GitClient:
    """VersionControl implementation backed by the git executable."""

    async def repo_root(self, path: Path) -> Path:
        _, stdout, _ = await run_git_command_async(["rev-parse", "--show-toplevel"], cwd=path)
        return Path(stdout.strip())

    async def current_branch(self, path: Path) -> str:
        _, stdout, _ = await run_git_command_async(
            ["rev-parse", "--abbrev-ref", "HEAD"], cwd=path
        )
        return stdout.strip()

    async def status_counts(self, path: Path) -> tuple[int, int]:
        _, stdout, _ = await run_git_command_async(["status", "--porcelain"], cwd=path)
        return parse_porcelain_status(stdout)

    async def fetch(self, path: Path, remote: str) -> None:
        await run_git_command_async(["fetch", remote, "--quiet"], cwd=path)

    async def remote_branch_exists(self, path: Path, branch: str, remote: str) -> bool:
        code, _, _ = await run_git_command_async(
            ["rev-parse", "--verify", "--quiet", f"refs/remotes/{remote}/{branch}"],
            cwd=path,
            check=False,
        )
        return code == 0

    async def ahead_behind(self, path: Path, branch: str, remote: str) -> tuple[int, int]:
        """Count commits ahead of and behind the remote-tracking branch."""
        _, stdout, _ = await run_git_command_async(
            ["rev-list", "--left-right", "--count", f"{remote}/{branch}...HEAD"],
            cwd=path,
        )
        parts = stdout.split()
        if len(parts) != 2:
            raise GitError(f"Unexpected rev-list output: {stdout.strip()!r}")
        behind, ahead = int(parts[0]), int(parts[1])
        return ahead, behind

    async def rev_parse(self, path: Path, ref: str) -> str:
        _, stdout, _ = await run_git_command_async(["rev-parse", ref], cwd=path)
        return stdout.strip()

    async def is_ancestor(self, path: Path, ancestor: str, descendant: str) -> bool:
        """Return True if ``ancestor`` is reachable from ``descendant``."""
        code, _, stderr = await run_git_command_async(
            ["merge-base", "--is-ancestor", ancestor, descendant],
            cwd=path,
            check=False,
        )
        if code == 0:
            return True
        if code == 1:
            return False
        raise GitError(
            stderr.strip() or f"merge-base failed with exit code {code}",
            command=f"git merge-base --is-ancestor {ancestor} {descendant}",
        )

    async def pull_ff_only(self, path: Path, branch: str, remote: str) -> None:
        await run_git_command_async(["pull", "--ff-only", remote, branch], cwd=path)

    async def push(
        self, path: Path, branch: str, remote: str, *, set_upstream: bool = False
    ) -> None:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        await run_git_command_async([*args, remote, branch], cwd=path)

    async def push_force_with_lease(
        self, path: Path, branch: str, remote: str, expected_sha: str
    ) -> None:
        await run_git_command_async(
            ["push", f"--force-with-lease={branch}:{expected_sha}", remote, branch],
            cwd=path,
        )
