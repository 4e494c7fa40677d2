"""Shared test fixtures for monopub tests."""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Generator, Iterable
from pathlib import Path

import pytest
from dotenv import load_dotenv

from monopub.errors import GitError
from monopub.graph import DependencyGraph, Package, invert_edges

# Load .env from project root (doesn't override existing env vars)
load_dotenv(Path(__file__).parent.parent / ".env")


def make_graph(
    edges: dict[str, Iterable[str]],
    root: Path = Path("/repo/packages"),
) -> DependencyGraph:
    """Build a graph straight from an edge map.

    Unlike ``build_graph`` nothing is filtered, so edges may point at
    packages that do not exist.
    """
    packages = {
        name: Package(name=name, version="1.0.0", path=root / name, dependencies=frozenset(deps))
        for name, deps in edges.items()
    }
    edge_sets = {name: set(deps) for name, deps in edges.items()}
    return DependencyGraph(
        packages=packages,
        edges=edge_sets,
        reverse_edges=invert_edges(edge_sets, packages),
    )


def run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run a git command."""
    return subprocess.run(
        ["git"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def graph_factory():
    """The make_graph helper, for building graphs inline."""
    return make_graph


@pytest.fixture
def diamond_graph() -> DependencyGraph:
    """a <- {b, c} <- d"""
    return make_graph({"a": [], "b": ["a"], "c": ["a"], "d": ["b", "c"]})


@pytest.fixture
def sample_monopub_yaml() -> str:
    """Sample monopub.yaml content."""
    return """\
name: test-workspace
packages:
  - packages/*

publish:
  max_concurrency: 2
  fail_fast: false
  working_branch: main
  target_branch: main
  build_command: "true"
  publish_command: "true"
  retry:
    max_attempts: 2
    delay: 0
"""


@pytest.fixture
def workspace_dir(temp_dir: Path, sample_monopub_yaml: str) -> Path:
    """Create a sample workspace: pkg-a <- pkg-b <- pkg-c."""
    (temp_dir / "monopub.yaml").write_text(sample_monopub_yaml)

    packages_dir = temp_dir / "packages"
    packages_dir.mkdir()

    pkg_a = packages_dir / "pkg-a"
    pkg_a.mkdir()
    (pkg_a / "pyproject.toml").write_text("""\
[project]
name = "pkg-a"
version = "1.0.0"
dependencies = ["requests>=2.0.0"]
""")

    pkg_b = packages_dir / "pkg-b"
    pkg_b.mkdir()
    (pkg_b / "pyproject.toml").write_text("""\
[project]
name = "pkg-b"
version = "2.0.0"
dependencies = ["pkg-a>=1.0"]
""")

    pkg_c = packages_dir / "pkg-c"
    pkg_c.mkdir()
    (pkg_c / "pyproject.toml").write_text("""\
[project]
name = "pkg_c"
version = "0.1.0"
dependencies = ["pkg-b", "Pkg_A"]
""")

    return temp_dir


@pytest.fixture
def git_remote_clone(tmp_path: Path) -> tuple[Path, Path]:
    """A bare remote with one commit on main and a clone tracking it.

    Returns:
        Tuple of (bare remote path, clone path).
    """
    remote = tmp_path / "remote.git"
    seed = tmp_path / "seed"
    clone = tmp_path / "clone"

    run_git(["init", "--bare", "-b", "main", str(remote)], tmp_path)
    run_git(["init", "-b", "main", str(seed)], tmp_path)
    run_git(["config", "user.email", "test@example.com"], seed)
    run_git(["config", "user.name", "Test User"], seed)
    (seed / "README.md").write_text("# Test Repo\n")
    run_git(["add", "README.md"], seed)
    run_git(["commit", "-m", "initial commit"], seed)
    run_git(["remote", "add", "origin", str(remote)], seed)
    run_git(["push", "-u", "origin", "main"], seed)

    run_git(["clone", str(remote), str(clone)], tmp_path)
    run_git(["config", "user.email", "test@example.com"], clone)
    run_git(["config", "user.name", "Test User"], clone)
    return remote, clone


class FakeVCS:
    """In-memory VersionControl. Repositories are configured per path."""

    def __init__(self) -> None:
        self.repos: dict[Path, dict] = {}
        self.calls: list[tuple[str, Path]] = []

    def set(self, path: Path, **state) -> None:
        repo = {
            "branch": "main",
            "staged": 0,
            "unstaged": 0,
            "remote_exists": True,
            "ahead": 0,
            "behind": 0,
            "local_sha": "1" * 40,
            "remote_sha": "1" * 40,
            "ancestor": True,
            "pull_error": None,
            "push_error": None,
        }
        repo.update(state)
        self.repos[path] = repo

    def _repo(self, name: str, path: Path) -> dict:
        self.calls.append((name, path))
        if path not in self.repos:
            self.set(path)
        return self.repos[path]

    def called(self, name: str) -> list[Path]:
        return [path for call, path in self.calls if call == name]

    async def repo_root(self, path: Path) -> Path:
        return path

    async def current_branch(self, path: Path) -> str:
        return self._repo("current_branch", path)["branch"]

    async def status_counts(self, path: Path) -> tuple[int, int]:
        repo = self._repo("status_counts", path)
        return repo["staged"], repo["unstaged"]

    async def fetch(self, path: Path, remote: str) -> None:
        self._repo("fetch", path)

    async def remote_branch_exists(self, path: Path, branch: str, remote: str) -> bool:
        return self._repo("remote_branch_exists", path)["remote_exists"]

    async def ahead_behind(self, path: Path, branch: str, remote: str) -> tuple[int, int]:
        repo = self._repo("ahead_behind", path)
        return repo["ahead"], repo["behind"]

    async def rev_parse(self, path: Path, ref: str) -> str:
        repo = self._repo("rev_parse", path)
        return repo["remote_sha"] if ref.startswith("refs/remotes/") else repo["local_sha"]

    async def is_ancestor(self, path: Path, ancestor: str, descendant: str) -> bool:
        return self._repo("is_ancestor", path)["ancestor"]

    async def pull_ff_only(self, path: Path, branch: str, remote: str) -> None:
        repo = self._repo("pull_ff_only", path)
        if repo["pull_error"]:
            raise GitError(repo["pull_error"], command="git pull --ff-only")
        repo["behind"] = 0

    async def push(self, path: Path, branch: str, remote: str, *, set_upstream: bool = False) -> None:
        repo = self._repo("push", path)
        if repo["push_error"]:
            raise GitError(repo["push_error"], command="git push")
        repo["ahead"] = 0

    async def push_force_with_lease(
        self, path: Path, branch: str, remote: str, expected_sha: str
    ) -> None:
        repo = self._repo("push_force_with_lease", path)
        repo["remote_sha"] = repo["local_sha"]
        repo["ahead"] = 0


@pytest.fixture
def fake_vcs() -> FakeVCS:
    return FakeVCS()
