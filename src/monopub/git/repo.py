"""Low-level git process helpers."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from monopub.errors import GitError

logger = logging.getLogger(__name__)

# Never block on a credential prompt, and keep messages in English so
# fast-forward failures can be recognised.
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "LC_ALL": "C",
}


async def run_git_command_async(
    args: list[str],
    cwd: Path | None = None,
    *,
    check: bool = True,
) -> tuple[int, str, str]:
    """Run a git command.

    Args:
        args: Git command arguments (without 'git').
        cwd: Working directory.
        check: Raise on non-zero exit code.

    Returns:
        Tuple of (exit_code, stdout, stderr).

    Raises:
        GitError: If git is missing, cwd does not exist, or the command
            fails and check is True.
    """
    cmd = ["git", *args]
    logger.debug("%s (cwd=%s)", " ".join(cmd), cwd)

    if cwd is not None and not Path(cwd).is_dir():
        raise GitError(f"Directory not found: {cwd}", command=" ".join(cmd))

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **GIT_ENV},
        )
    except FileNotFoundError as e:
        raise GitError("Git is not installed") from e

    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    returncode = process.returncode or 0

    if check and returncode != 0:
        raise GitError(
            stderr.strip() or f"Command failed with exit code {returncode}",
            command=" ".join(cmd),
        )
    return returncode, stdout, stderr


def parse_porcelain_status(output: str) -> tuple[int, int]:
    """Count staged and unstaged entries in ``git status --porcelain`` output.

    Untracked files count as unstaged. A file modified both in the index
    and in the working tree counts once in each column.

    Returns:
        Tuple of (staged, unstaged).
    """
    staged = 0
    unstaged = 0
    for line in output.splitlines():
        if len(line) < 2:
            continue
        index_status, tree_status = line[0], line[1]
        if index_status == "?" or tree_status == "?":
            unstaged += 1
            continue
        if index_status not in (" ", "!"):
            staged += 1
        if tree_status not in (" ", "!"):
            unstaged += 1
    return staged, unstaged
