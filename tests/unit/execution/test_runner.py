"""Test package command execution."""

from pathlib import Path
from unittest.mock import patch

import pytest

from monopub.execution.runner import CommandResult, package_env, run_command, run_in_package
from monopub.graph import Package


@pytest.fixture
def package(tmp_path: Path) -> Package:
    return Package(name="pkg-a", version="1.0.0", path=tmp_path)


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_captures_both_streams(self, tmp_path: Path):
        result = await run_command("echo out; echo err 1>&2", cwd=tmp_path, timeout=10)

        assert result.success
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_exit_code(self, tmp_path: Path):
        result = await run_command("exit 3", cwd=tmp_path)

        assert result.exit_code == 3
        assert not result.success
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path: Path):
        result = await run_command("sleep 5", cwd=tmp_path, timeout=0.1)

        assert result.timed_out
        assert not result.success
        assert "timed out after 0.1s" in result.stderr

    @pytest.mark.asyncio
    async def test_launch_failure_is_a_result(self):
        with patch("asyncio.create_subprocess_shell", side_effect=OSError("no shell")):
            result = await run_command("build", cwd=Path("."))

        assert result.exit_code == -1
        assert "no shell" in result.stderr

    @pytest.mark.asyncio
    async def test_env_is_added_to_environment(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("FROM_PARENT", "parent")

        result = await run_command(
            'echo "$FROM_PARENT $EXTRA"', cwd=tmp_path, env={"EXTRA": "extra"}
        )

        assert result.stdout.strip() == "parent extra"


class TestRunInPackage:
    @pytest.mark.asyncio
    async def test_exports_package_env(self, package: Package):
        result = await run_in_package(
            package,
            'echo "$MONOPUB_PACKAGE_NAME $MONOPUB_PACKAGE_VERSION $EXTRA"',
            env={"EXTRA": "yes"},
        )

        assert result.success
        assert result.package_name == "pkg-a"
        assert result.stdout.strip() == "pkg-a 1.0.0 yes"

    @pytest.mark.asyncio
    async def test_runs_in_package_dir(self, package: Package, tmp_path: Path):
        result = await run_in_package(package, "pwd")

        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_package_values_win_over_extra(self, package: Package):
        env = package_env(package, {"MONOPUB_PACKAGE_NAME": "other", "TOKEN": "t"})

        assert env["MONOPUB_PACKAGE_NAME"] == "pkg-a"
        assert env["TOKEN"] == "t"


class TestCommandResult:
    def test_output_tail_prefers_stderr(self):
        result = CommandResult(
            "pkg", "cmd", 1, stdout="ignored", stderr="\n".join(str(i) for i in range(20))
        )

        assert result.output_tail.splitlines() == [str(i) for i in range(10, 20)]

    def test_timed_out_is_not_success(self):
        assert not CommandResult("pkg", "cmd", 0, timed_out=True).success
