"""Delegation to an external coding-agent CLI.

The prompt runs as ``<cli> --dangerously-skip-permissions -p <prompt>`` in the
requested work folder, under a hard timeout after which the process is killed.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, Field, StrictStr

from ..core import ToolCategory, ToolDescriptor, ToolMetadata, ToolName, ToolResult, success_response
from ..errors import ErrorKind, ToolException

if TYPE_CHECKING:
    from ..config import AgentSettings
    from ..core import ServerState

logger = logging.getLogger("biancatools.tools.agent")

DEFAULT_CLI = "claude"


def resolve_cli(cli_name: str | None, home: Path | None = None) -> str:
    """Locate the agent CLI.

    An absolute configured path is used as is; relative paths are rejected.
    Otherwise prefer ``~/.claude/local/claude``, then the name on PATH.

    Raises:
        ToolException: INVALID_PARAMS for a relative configured path
    """
    if cli_name:
        if os.path.isabs(cli_name):
            return cli_name
        if "/" in cli_name or cli_name.startswith("."):
            raise ToolException.create(
                ErrorKind.INVALID_PARAMS,
                f"Invalid agent CLI name '{cli_name}': relative paths are not allowed. "
                "Use a simple command name or an absolute path.",
            )

    local = (home or Path.home()) / ".claude" / "local" / "claude"
    if local.exists():
        return str(local)

    name = cli_name or DEFAULT_CLI
    logger.warning(f"Agent CLI not found at {local}, using '{name}' from PATH")
    return name


def resolve_work_folder(work_folder: str | None) -> str:
    """Absolute working directory for the agent (default: home directory)."""
    if not work_folder:
        return str(Path.home())
    resolved = Path(work_folder).expanduser().resolve()
    if not resolved.is_dir():
        raise ToolException.create(
            ErrorKind.INVALID_PARAMS, f"Work folder does not exist: {resolved}", {"work_folder": str(resolved)},
        )
    return str(resolved)


async def run_agent(cli: str, prompt: str, cwd: str, settings: AgentSettings) -> str:
    """Run the CLI to completion and return its stdout.

    Raises:
        ToolException: TIMEOUT after settings.timeout seconds (process killed),
            INTERNAL on spawn failure or non-zero exit
    """
    log_level = logging.INFO if settings.debug else logging.DEBUG
    logger.log(log_level, f"Executing {cli} in {cwd}: {prompt[:80]!r}")
    try:
        proc = await asyncio.create_subprocess_exec(
            cli, "--dangerously-skip-permissions", "-p", prompt,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolException.create(ErrorKind.INTERNAL, f"Failed to start agent CLI '{cli}': {e}") from e

    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=settings.timeout)
    except TimeoutError:
        await _kill(proc)
        raise ToolException.create(
            ErrorKind.TIMEOUT, f"Agent CLI timed out after {settings.timeout:.0f}s", {"timeout": settings.timeout},
        ) from None
    except asyncio.CancelledError:
        logger.debug(f"Agent call cancelled, killing {cli} (pid {proc.pid})")
        await _kill(proc)
        raise

    stdout, stderr = out.decode(errors="replace"), err.decode(errors="replace")
    if stderr:
        logger.log(log_level, f"Agent stderr: {stderr.strip()}")
    if proc.returncode != 0:
        raise ToolException.create(
            ErrorKind.INTERNAL,
            f"Agent CLI exited with code {proc.returncode}\nStderr: {stderr.strip()}\nStdout: {stdout.strip()}",
            {"returncode": proc.returncode},
        )
    return stdout


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


class AgentExecuteParams(BaseModel):
    prompt: Annotated[StrictStr, Field(min_length=1, description="Prompt for the coding agent")]
    work_folder: StrictStr | None = Field(default=None, description="Working directory (default: home)")


async def agent_execute(params: AgentExecuteParams, state: ServerState) -> ToolResult:
    settings = state.settings.agent
    cli = resolve_cli(settings.cli_name)
    cwd = resolve_work_folder(params.work_folder)
    return success_response(await run_agent(cli, params.prompt, cwd, settings))


DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ToolName.AGENT_EXECUTE,
        description=(
            "Delegate a task to the external coding-agent CLI and return its output. "
            "Runs with permissions skipped in the given work folder."
        ),
        params_schema=AgentExecuteParams,
        handler=agent_execute,
        metadata=ToolMetadata(category=ToolCategory.AGENT),
    ),
)
