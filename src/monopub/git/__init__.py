"""Git integration."""

from monopub.git.client import GitClient, VersionControl
from monopub.git.locks import RepositoryLocks
from monopub.git.repo import GIT_ENV, parse_porcelain_status, run_git_command_async

__all__ = [
    "GIT_ENV",
    "GitClient",
    "RepositoryLocks",
    "VersionControl",
    "parse_porcelain_status",
    "run_git_command_async",
]
