"""Per-repository locks for git operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from monopub.errors import GitError
from monopub.git.client import VersionControl

logger = logging.getLogger(__name__)


class RepositoryLocks:
    """Serialize git operations within one repository.

    Packages of a monorepo usually share a single ``.git`` directory, and
    concurrent commands there collide on ``index.lock``. Packages in
    different repositories still run in parallel.
    """

    def __init__(self, vcs: VersionControl) -> None:
        self._vcs = vcs
        self._locks: dict[Path, asyncio.Lock] = {}
        self._roots: dict[Path, Path] = {}

    async def _root_for(self, path: Path) -> Path:
        resolved = path.resolve()
        if resolved not in self._roots:
            try:
                self._roots[resolved] = (await self._vcs.repo_root(resolved)).resolve()
            except GitError:
                # Not a repository: lock on the directory itself
                self._roots[resolved] = resolved
        return self._roots[resolved]

    async def lock_for(self, path: Path) -> asyncio.Lock:
        root = await self._root_for(path)
        if root not in self._locks:
            logger.debug("Creating git lock for %s", root)
            self._locks[root] = asyncio.Lock()
        return self._locks[root]

    @asynccontextmanager
    async def hold(self, path: Path) -> AsyncIterator[None]:
        """Hold the lock of the repository containing ``path``."""
        lock = await self.lock_for(path)
        if lock.locked():
            logger.debug("Waiting for git lock on %s", path)
        async with lock:
            yield
