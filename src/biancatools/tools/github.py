"""Hosted source-control tools over the GitHub REST API.

Requires GITHUB_TOKEN. Missing or rejected credentials surface as
AUTH_FAILURE; HTTP failures are mapped in tools.http.
"""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING, Annotated, Any, Literal

import httpx
from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

from ..core import ToolCategory, ToolDescriptor, ToolMetadata, ToolName, ToolResult, success_response
from ..errors import ErrorKind, ToolException
from ..retry import RetryPolicy
from .http import RestClient

if TYPE_CHECKING:
    from ..config import GitHubSettings
    from ..core import ServerState

Name = Annotated[StrictStr, Field(min_length=1)]
Owner = Annotated[StrictStr, Field(min_length=1, description="Repository owner")]
Repo = Annotated[StrictStr, Field(min_length=1, description="Repository name")]


class GitHubClient(RestClient):
    """Thin async GitHub REST client (bearer token, versioned API)."""

    service = "GitHub"

    def __init__(
        self,
        settings: GitHubSettings,
        *,
        user_agent: str = "BiancaTools",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings.api_url, timeout=settings.request_timeout, user_agent=user_agent, transport=transport)
        self._settings = settings

    def auth_headers(self) -> dict[str, str]:
        if self._settings.token is None or not self._settings.token.get_secret_value():
            raise ToolException.create(
                ErrorKind.AUTH_FAILURE, "GitHub is not configured. Set GITHUB_TOKEN.", {"service": self.service},
            )
        return {
            "Authorization": f"Bearer {self._settings.token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self._settings.api_version,
        }

    # Issues & pulls
    async def create_issue(self, owner: str, repo: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.post(f"/repos/{owner}/{repo}/issues", json=payload)

    async def list_issues(self, owner: str, repo: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.get(f"/repos/{owner}/{repo}/issues", params=query)

    async def create_pull(self, owner: str, repo: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.post(f"/repos/{owner}/{repo}/pulls", json=payload)

    async def create_repo(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.post("/user/repos", json=payload)

    # Git data API
    async def get_ref(self, owner: str, repo: str, ref: str) -> dict[str, Any]:
        return await self.get(f"/repos/{owner}/{repo}/git/ref/{ref}")

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        return await self.get(f"/repos/{owner}/{repo}/git/commits/{sha}")

    async def create_blob(self, owner: str, repo: str, content_b64: str) -> dict[str, Any]:
        return await self.post(f"/repos/{owner}/{repo}/git/blobs", json={"content": content_b64, "encoding": "base64"})

    async def create_tree(self, owner: str, repo: str, tree: list[dict[str, Any]], base_tree: str) -> dict[str, Any]:
        return await self.post(f"/repos/{owner}/{repo}/git/trees", json={"tree": tree, "base_tree": base_tree})

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> dict[str, Any]:
        return await self.post(
            f"/repos/{owner}/{repo}/git/commits", json={"message": message, "tree": tree, "parents": parents},
        )

    async def update_ref(self, owner: str, repo: str, ref: str, sha: str) -> dict[str, Any]:
        return await self.patch(f"/repos/{owner}/{repo}/git/refs/{ref}", json={"sha": sha})

    # Contents API
    async def get_content(self, owner: str, repo: str, path: str, ref: str) -> Any:
        return await self.get(f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref})

    async def put_content(self, owner: str, repo: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.put(f"/repos/{owner}/{repo}/contents/{path}", json=payload)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# ─────────────────────────────────────────────────────────────────────────────
# Params
# ─────────────────────────────────────────────────────────────────────────────


class CreateIssueParams(BaseModel):
    owner: Owner
    repo: Repo
    title: Annotated[StrictStr, Field(min_length=1, description="Issue title")]
    body: StrictStr | None = Field(default=None, description="Issue body (markdown)")
    labels: list[StrictStr] | None = Field(default=None, description="Labels to apply")
    assignees: list[StrictStr] | None = Field(default=None, description="Users to assign")


class ListIssuesParams(BaseModel):
    owner: Owner
    repo: Repo
    state: Literal["open", "closed", "all"] = Field(default="open", description="Issue state filter")
    labels: list[StrictStr] | None = Field(default=None, description="Only issues with all these labels")
    sort: Literal["created", "updated", "comments"] | None = None
    direction: Literal["asc", "desc"] | None = None
    per_page: Annotated[StrictInt, Field(ge=1, le=100)] = 30
    page: Annotated[StrictInt, Field(ge=1)] = 1


class CreatePRParams(BaseModel):
    owner: Owner
    repo: Repo
    title: Annotated[StrictStr, Field(min_length=1, description="Pull request title")]
    head: Annotated[StrictStr, Field(min_length=1, description="Branch with the changes")]
    base: Name = Field(default="main", description="Branch to merge into")
    body: StrictStr | None = None
    draft: StrictBool = False


class CreateRepoParams(BaseModel):
    name: Annotated[StrictStr, Field(min_length=1, description="Repository name")]
    description: StrictStr | None = None
    private: StrictBool = False
    auto_init: StrictBool = Field(default=True, description="Create an initial commit with README")
    gitignore_template: StrictStr | None = None
    license_template: StrictStr | None = None


class PushFile(BaseModel):
    path: Annotated[StrictStr, Field(min_length=1)]
    content: StrictStr
    encoding: Literal["utf-8", "base64"] = "utf-8"


class PushFilesParams(BaseModel):
    owner: Owner
    repo: Repo
    files: Annotated[list[PushFile], Field(min_length=1, description="Files to write in one commit")]
    message: Annotated[StrictStr, Field(min_length=1, description="Commit message")]
    branch: Name = "main"


class CommitFile(BaseModel):
    path: Annotated[StrictStr, Field(min_length=1)]
    content: StrictStr


class CommitAuthor(BaseModel):
    name: StrictStr
    email: Annotated[StrictStr, Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]


class CommitParams(BaseModel):
    owner: Owner
    repo: Repo
    message: Annotated[StrictStr, Field(min_length=1, description="Commit message")]
    files: Annotated[list[CommitFile], Field(min_length=1, description="Files to create or update")]
    branch: Name = "main"
    author: CommitAuthor | None = None


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def create_issue(params: CreateIssueParams, state: ServerState) -> ToolResult:
    data = await state.github.create_issue(params.owner, params.repo, _compact({
        "title": params.title, "body": params.body, "labels": params.labels, "assignees": params.assignees,
    }))
    return success_response(
        {"url": data["html_url"], "number": data["number"], "id": data["id"]},
        f"Issue #{data['number']} created",
    )


async def list_issues(params: ListIssuesParams, state: ServerState) -> ToolResult:
    raw = await state.github.list_issues(params.owner, params.repo, _compact({
        "state": params.state,
        "labels": ",".join(params.labels) if params.labels else None,
        "sort": params.sort,
        "direction": params.direction,
        "per_page": params.per_page,
        "page": params.page,
    }))
    issues = [
        {
            "number": issue["number"],
            "title": issue["title"],
            "state": issue["state"],
            "url": issue["html_url"],
            "created_at": issue.get("created_at"),
            "updated_at": issue.get("updated_at"),
            "user": (issue.get("user") or {}).get("login"),
            "labels": [lb if isinstance(lb, str) else lb.get("name") for lb in issue.get("labels", [])],
        }
        for issue in raw or []
    ]
    return success_response({"issues": issues, "total": len(issues)}, f"Found {len(issues)} issues")


async def create_pr(params: CreatePRParams, state: ServerState) -> ToolResult:
    data = await state.github.create_pull(params.owner, params.repo, _compact({
        "title": params.title, "head": params.head, "base": params.base, "body": params.body, "draft": params.draft,
    }))
    return success_response(
        {"url": data["html_url"], "number": data["number"], "id": data["id"]},
        f"PR #{data['number']} created",
    )


async def create_repo(params: CreateRepoParams, state: ServerState) -> ToolResult:
    data = await state.github.create_repo(_compact(params.model_dump()))
    return success_response(
        {"name": data["name"], "url": data["html_url"], "clone_url": data.get("clone_url"), "ssh_url": data.get("ssh_url")},
        f"Repository '{data['name']}' created",
    )


async def push_files(params: PushFilesParams, state: ServerState) -> ToolResult:
    """Write all files in a single commit via the git data API."""
    gh, owner, repo = state.github, params.owner, params.repo
    ref = f"heads/{params.branch}"

    head = await gh.get_ref(owner, repo, ref)
    head_sha = head["object"]["sha"]
    head_commit = await gh.get_commit(owner, repo, head_sha)

    blobs = await asyncio.gather(*(
        gh.create_blob(owner, repo, f.content if f.encoding == "base64" else _b64(f.content))
        for f in params.files
    ))
    tree = await gh.create_tree(
        owner, repo,
        [{"path": f.path, "mode": "100644", "type": "blob", "sha": b["sha"]} for f, b in zip(params.files, blobs)],
        base_tree=head_commit["tree"]["sha"],
    )
    commit = await gh.create_commit(owner, repo, params.message, tree["sha"], [head_sha])
    await gh.update_ref(owner, repo, ref, commit["sha"])

    return success_response(
        {"commit_sha": commit["sha"], "commit_url": commit.get("html_url"), "files_pushed": len(params.files)},
        f"{len(params.files)} file(s) pushed to {params.branch}",
    )


async def commit(params: CommitParams, state: ServerState) -> ToolResult:
    """Create or update each file through the contents API.

    Files are written one after another: concurrent writes to the same
    branch race on the branch head and fail with 409.
    """
    gh, owner, repo = state.github, params.owner, params.repo
    author = params.author.model_dump() if params.author else None
    results: list[dict[str, Any]] = []

    for f in params.files:
        try:
            existing = await gh.get_content(owner, repo, f.path, params.branch)
            sha = existing.get("sha") if isinstance(existing, dict) else None
        except ToolException as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            sha = None

        data = await gh.put_content(owner, repo, f.path, _compact({
            "message": params.message,
            "content": _b64(f.content),
            "branch": params.branch,
            "sha": sha,
            "author": author,
            "committer": author,
        }))
        results.append({
            "path": f.path,
            "action": "updated" if sha else "created",
            "sha": (data.get("content") or {}).get("sha"),
        })

    return success_response(
        {
            "message": params.message,
            "branch": params.branch,
            "files": results,
            "commit_url": f"https://github.com/{owner}/{repo}/commit/{params.branch}",
        },
        f"Committed {len(results)} file(s) to {params.branch}",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────────────────────────

_WRITE = ToolMetadata(category=ToolCategory.GITHUB, requires_auth=True)
_READ = ToolMetadata(category=ToolCategory.GITHUB, requires_auth=True, read_only=True)
_RETRY = RetryPolicy(retries=2, delay=1.0)

DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ToolName.GITHUB_CREATE_ISSUE,
        description="Create a new issue in a GitHub repository",
        params_schema=CreateIssueParams,
        handler=create_issue,
        metadata=_WRITE,
        retry=_RETRY,
    ),
    ToolDescriptor(
        name=ToolName.GITHUB_LIST_ISSUES,
        description="List issues from a GitHub repository",
        params_schema=ListIssuesParams,
        handler=list_issues,
        metadata=_READ,
    ),
    ToolDescriptor(
        name=ToolName.GITHUB_CREATE_PR,
        description="Create a pull request in a GitHub repository",
        params_schema=CreatePRParams,
        handler=create_pr,
        metadata=_WRITE,
        retry=_RETRY,
    ),
    ToolDescriptor(
        name=ToolName.GITHUB_CREATE_REPO,
        description="Create a new GitHub repository for the authenticated user",
        params_schema=CreateRepoParams,
        handler=create_repo,
        metadata=_WRITE,
    ),
    ToolDescriptor(
        name=ToolName.GITHUB_PUSH_FILES,
        description="Push multiple files to a GitHub branch in a single commit",
        params_schema=PushFilesParams,
        handler=push_files,
        metadata=_WRITE,
    ),
    ToolDescriptor(
        name=ToolName.GITHUB_COMMIT,
        description="Create or update files in a GitHub repository via the contents API",
        params_schema=CommitParams,
        handler=commit,
        metadata=_WRITE,
    ),
)
