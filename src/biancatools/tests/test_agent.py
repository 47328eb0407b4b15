"""Tests for coding-agent CLI resolution and execution."""

from __future__ import annotations

import asyncio
import os
import stat
import sys
from pathlib import Path

import pytest

from biancatools.config import AgentSettings
from biancatools.errors import ErrorKind, ToolException
from biancatools.tools.agent import resolve_cli, resolve_work_folder, run_agent

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as the CLI")


def test_absolute_cli_path_is_used_as_is(tmp_path: Path) -> None:
    assert resolve_cli("/opt/tools/claude", home=tmp_path) == "/opt/tools/claude"


@pytest.mark.parametrize("name", ["./claude", "bin/claude", "../claude"])
def test_relative_cli_path_is_rejected(name: str, tmp_path: Path) -> None:
    with pytest.raises(ToolException) as exc_info:
        resolve_cli(name, home=tmp_path)
    assert exc_info.value.kind is ErrorKind.INVALID_PARAMS


def test_local_install_is_preferred(tmp_path: Path) -> None:
    local = tmp_path / ".claude" / "local" / "claude"
    local.parent.mkdir(parents=True)
    local.touch()
    assert resolve_cli(None, home=tmp_path) == str(local)
    assert resolve_cli("my-agent", home=tmp_path) == str(local)


def test_falls_back_to_name_on_path(tmp_path: Path) -> None:
    assert resolve_cli(None, home=tmp_path) == "claude"
    assert resolve_cli("my-agent", home=tmp_path) == "my-agent"


def test_work_folder_defaults_to_home() -> None:
    assert resolve_work_folder(None) == str(Path.home())


def test_work_folder_must_exist(tmp_path: Path) -> None:
    assert resolve_work_folder(str(tmp_path)) == str(tmp_path.resolve())
    with pytest.raises(ToolException) as exc_info:
        resolve_work_folder(str(tmp_path / "missing"))
    assert exc_info.value.kind is ErrorKind.INVALID_PARAMS


def fake_cli(tmp_path: Path, body: str) -> str:
    script = tmp_path / "agent"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


@posix_only
@pytest.mark.asyncio
async def test_run_agent_passes_prompt(tmp_path: Path) -> None:
    cli = fake_cli(tmp_path, 'echo "$@"; pwd')
    out = await run_agent(cli, "fix the bug", str(tmp_path), AgentSettings(timeout=10))
    args, cwd = out.strip().splitlines()
    assert args == "--dangerously-skip-permissions -p fix the bug"
    assert Path(cwd).resolve() == tmp_path.resolve()


@posix_only
@pytest.mark.asyncio
async def test_run_agent_nonzero_exit_is_internal(tmp_path: Path) -> None:
    cli = fake_cli(tmp_path, "echo oops >&2; exit 3")
    with pytest.raises(ToolException) as exc_info:
        await run_agent(cli, "p", str(tmp_path), AgentSettings(timeout=10))
    assert exc_info.value.kind is ErrorKind.INTERNAL
    assert "exited with code 3" in exc_info.value.error.message
    assert "oops" in exc_info.value.error.message


@posix_only
@pytest.mark.asyncio
async def test_run_agent_timeout_kills_process(tmp_path: Path) -> None:
    cli = fake_cli(tmp_path, "exec sleep 5")
    with pytest.raises(ToolException) as exc_info:
        await run_agent(cli, "p", str(tmp_path), AgentSettings(timeout=0.2))
    assert exc_info.value.kind is ErrorKind.TIMEOUT


@posix_only
@pytest.mark.asyncio
async def test_cancelled_run_agent_kills_process(tmp_path: Path) -> None:
    pid_file = tmp_path / "agent.pid"
    cli = fake_cli(tmp_path, f"echo $$ > {pid_file}\nexec sleep 30")
    task = asyncio.create_task(run_agent(cli, "p", str(tmp_path), AgentSettings(timeout=60)))

    for _ in range(200):
        if pid_file.exists() and pid_file.read_text().strip():
            break
        await asyncio.sleep(0.01)
    pid = int(pid_file.read_text())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.asyncio
async def test_missing_cli_is_internal(tmp_path: Path) -> None:
    with pytest.raises(ToolException) as exc_info:
        await run_agent(str(tmp_path / "absent"), "p", str(tmp_path), AgentSettings())
    assert exc_info.value.kind is ErrorKind.INTERNAL
