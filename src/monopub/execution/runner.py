"""Shell commands run on behalf of a package (build, upload)."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from monopub.graph import Package

logger = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 10


@dataclass
class CommandResult:
    """Outcome of one package command.

    Attributes:
        package_name: Package the command ran for.
        command: The command line.
        exit_code: Process exit code, -1 if it never finished.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock seconds.
        timed_out: The command was killed after its timeout.
    """

    package_name: str
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def output_tail(self) -> str:
        """Last lines of output, for error messages."""
        text = (self.stderr or self.stdout).strip()
        return "\n".join(text.splitlines()[-OUTPUT_TAIL_LINES:])


def package_env(package: Package, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Variables describing ``package`` for its commands.

    ``extra`` entries are applied last, except that they cannot replace
    the ``MONOPUB_PACKAGE_*`` values.
    """
    env = dict(extra or {})
    env.update(
        MONOPUB_PACKAGE_NAME=package.name,
        MONOPUB_PACKAGE_PATH=str(package.path),
        MONOPUB_PACKAGE_VERSION=package.version,
    )
    return env


async def run_command(
    command: str,
    cwd: Path,
    *,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    package_name: str = "",
) -> CommandResult:
    """Run a shell command and capture its output.

    A command that cannot be launched, or that outlives ``timeout``, is
    returned as a failed result rather than raised.

    Args:
        command: Shell command line.
        cwd: Working directory.
        env: Variables added to the current environment.
        timeout: Seconds before the process is killed.
        package_name: Package recorded on the result.

    Returns:
        Command result.
    """
    started = time.monotonic()
    result = CommandResult(package_name=package_name, command=command, exit_code=-1)
    logger.debug("%s: running %s", package_name or cwd, command)

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **(env or {})},
        )
    except OSError as e:
        result.stderr = f"Cannot run `{command}`: {e}"
        result.duration = time.monotonic() - started
        return result

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        result.timed_out = True
        result.stderr = f"`{command}` timed out after {timeout}s"
    else:
        result.exit_code = process.returncode if process.returncode is not None else -1
        result.stdout = stdout.decode("utf-8", errors="replace")
        result.stderr = stderr.decode("utf-8", errors="replace")

    result.duration = time.monotonic() - started
    logger.debug(
        "%s: `%s` exited with %d in %.2fs",
        package_name or cwd,
        command,
        result.exit_code,
        result.duration,
    )
    return result


async def run_in_package(
    package: Package,
    command: str,
    *,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``command`` in the package directory.

    The package name, path and version are exported as
    ``MONOPUB_PACKAGE_NAME``, ``MONOPUB_PACKAGE_PATH`` and
    ``MONOPUB_PACKAGE_VERSION``.
    """
    return await run_command(
        command,
        package.path,
        env=package_env(package, env),
        timeout=timeout,
        package_name=package.name,
    )
