"""Local git tools, run as `git` subprocesses in the configured working tree.

Arguments go to the binary as an argv list, never through a shell.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, Field, StrictBool, StrictStr

from ..core import ToolCategory, ToolDescriptor, ToolMetadata, ToolName, ToolResult, success_response
from ..errors import ErrorKind, ToolException

if TYPE_CHECKING:
    from ..config import GitSettings
    from ..core import ServerState

logger = logging.getLogger("biancatools.tools.git")

_COMMIT_HEAD = re.compile(r"^\[(?P<branch>[^\s\]]+)(?: \([^)]*\))? (?P<sha>[0-9a-f]+)\]", re.MULTILINE)
_FILES_CHANGED = re.compile(r"(\d+) files? changed")


class GitRunner:
    """Runs git commands and maps failures onto INTERNAL errors."""

    __slots__ = ("binary", "cwd")

    def __init__(self, binary: str = "git", cwd: str | None = None) -> None:
        self.binary = binary
        self.cwd = cwd

    @classmethod
    def from_settings(cls, settings: GitSettings) -> GitRunner:
        return cls(settings.binary, settings.cwd)

    async def run(self, *args: str) -> tuple[str, str]:
        """Run ``git <args>`` and return (stdout, stderr).

        Raises:
            ToolException: INTERNAL if git is missing or exits non-zero
        """
        logger.debug(f"Running: {self.binary} {' '.join(args)} (cwd={self.cwd or '.'})")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, *args,
                cwd=self.cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ToolException.create(
                ErrorKind.INTERNAL, f"Failed to run {self.binary}: {e}", {"command": list(args)},
            ) from e

        out, err = await proc.communicate()
        stdout, stderr = out.decode(errors="replace"), err.decode(errors="replace")
        if proc.returncode != 0:
            raise ToolException.create(
                ErrorKind.INTERNAL,
                f"git {args[0] if args else ''} failed: {(stderr or stdout).strip()}",
                {"command": list(args), "returncode": proc.returncode, "stderr": stderr.strip()},
            )
        return stdout, stderr


def parse_status(porcelain: str) -> list[dict[str, str]]:
    """Parse `git status --porcelain` lines into {status, path} records."""
    return [
        {"status": line[:2].strip(), "path": line[3:]}
        for line in porcelain.splitlines()
        if line.strip()
    ]


def parse_commit_output(output: str) -> dict[str, Any]:
    """Extract branch, short sha and changed-file count from `git commit` output."""
    head = _COMMIT_HEAD.search(output)
    files = _FILES_CHANGED.search(output)
    return {
        "branch": head.group("branch") if head else "unknown",
        "sha": head.group("sha") if head else "unknown",
        "files_changed": int(files.group(1)) if files else 0,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Params
# ─────────────────────────────────────────────────────────────────────────────


class GitStatusParams(BaseModel):
    detailed: StrictBool = Field(default=False, description="Include raw porcelain output")


class GitCommitParams(BaseModel):
    message: Annotated[StrictStr, Field(min_length=1, description="Commit message")]
    add_all: StrictBool = Field(default=True, description="Stage all changes before committing")
    files: list[StrictStr] | None = Field(default=None, description="Files to stage when add_all is false")


class GitPushParams(BaseModel):
    branch: StrictStr | None = Field(default=None, description="Branch to push (default: current)")
    force: StrictBool = False
    upstream: StrictBool = Field(default=False, description="Set upstream (-u) for the branch")


class GitPullParams(BaseModel):
    branch: StrictStr | None = Field(default=None, description="Branch to pull (default: current)")
    rebase: StrictBool = Field(default=False, description="Rebase instead of merge")


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def git_status(params: GitStatusParams, state: ServerState) -> ToolResult:
    git = GitRunner.from_settings(state.settings.git)
    stdout, _ = await git.run("status", "--porcelain")
    branch, _ = await git.run("branch", "--show-current")
    files = parse_status(stdout)
    data: dict[str, Any] = {"branch": branch.strip(), "files": files, "total_changes": len(files)}
    if params.detailed:
        data["raw"] = stdout
    return success_response(data, f"{len(files)} changes on branch {branch.strip()}")


async def git_commit(params: GitCommitParams, state: ServerState) -> ToolResult:
    git = GitRunner.from_settings(state.settings.git)
    if params.add_all:
        await git.run("add", "-A")
    elif params.files:
        await git.run("add", "--", *params.files)

    stdout, _ = await git.run("commit", "-m", params.message)
    info = parse_commit_output(stdout)
    return success_response({**info, "output": stdout}, f"Committed {info['sha']} on {info['branch']}")


async def git_push(params: GitPushParams, state: ServerState) -> ToolResult:
    args = ["push"]
    if params.branch:
        args += ["-u", "origin", params.branch] if params.upstream else ["origin", params.branch]
    if params.force:
        args.append("--force")

    stdout, stderr = await GitRunner.from_settings(state.settings.git).run(*args)
    # git reports push progress on stderr even on success
    return success_response(
        {"output": stdout or stderr, "branch": params.branch or "current", "forced": params.force},
        "Push completed",
    )


async def git_pull(params: GitPullParams, state: ServerState) -> ToolResult:
    args = ["pull"]
    if params.branch:
        args += ["origin", params.branch]
    if params.rebase:
        args.append("--rebase")

    stdout, stderr = await GitRunner.from_settings(state.settings.git).run(*args)
    return success_response(
        {"output": stdout or stderr, "branch": params.branch or "current", "rebase": params.rebase},
        "Pull completed",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────────────────────────

_WRITE = ToolMetadata(category=ToolCategory.GIT)

DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ToolName.GIT_STATUS,
        description="Check git status of the current repository",
        params_schema=GitStatusParams,
        handler=git_status,
        metadata=ToolMetadata(category=ToolCategory.GIT, read_only=True, cacheable=False),
    ),
    ToolDescriptor(
        name=ToolName.GIT_COMMIT,
        description="Create a git commit with the specified message",
        params_schema=GitCommitParams,
        handler=git_commit,
        metadata=_WRITE,
    ),
    ToolDescriptor(
        name=ToolName.GIT_PUSH,
        description="Push commits to the remote repository",
        params_schema=GitPushParams,
        handler=git_push,
        metadata=_WRITE,
    ),
    ToolDescriptor(
        name=ToolName.GIT_PULL,
        description="Pull changes from the remote repository",
        params_schema=GitPullParams,
        handler=git_pull,
        metadata=_WRITE,
    ),
)
