"""Core tool abstractions: ToolName, ToolDescriptor, ToolResult.

A tool is a params schema plus an async handler that calls exactly one
external adapter. Descriptors are created once at startup and never mutated.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..errors import StructuredError
from ..retry import RetryPolicy


class ToolName(StrEnum):
    """Closed catalogue of tools served by BiancaTools."""
    # Browser automation
    BROWSER_NAVIGATE = "browser_navigate"
    BROWSER_SCREENSHOT = "browser_screenshot"
    BROWSER_CLICK = "browser_click"
    BROWSER_TYPE = "browser_type"
    BROWSER_GET_CONTENT = "browser_get_content"
    # Hosted source control
    GITHUB_CREATE_ISSUE = "github_create_issue"
    GITHUB_LIST_ISSUES = "github_list_issues"
    GITHUB_CREATE_PR = "github_create_pr"
    GITHUB_CREATE_REPO = "github_create_repo"
    GITHUB_PUSH_FILES = "github_push_files"
    GITHUB_COMMIT = "github_commit"
    # Local git
    GIT_STATUS = "git_status"
    GIT_COMMIT = "git_commit"
    GIT_PUSH = "git_push"
    GIT_PULL = "git_pull"
    # Memory store
    MEMORY_ADD = "memory_add"
    MEMORY_SEARCH = "memory_search"
    MEMORY_LIST = "memory_list"
    MEMORY_DELETE = "memory_delete"
    # External agent
    AGENT_EXECUTE = "agent_execute"


class ToolCategory(StrEnum):
    BROWSER = "browser"
    GITHUB = "github"
    GIT = "git"
    MEMORY = "memory"
    AGENT = "agent"
    GENERAL = "general"


class ToolMetadata(BaseModel):
    """Behavioural flags consulted by the middleware.

    Attributes:
        category: Grouping category (browser, github, git, memory, agent)
        read_only: Tool has no side effects on the external system
        requires_auth: Tool needs an external credential
        cacheable: Results may be served from cache (only honoured if read_only)
    """

    model_config = ConfigDict(frozen=True)

    category: str = Field(default=ToolCategory.GENERAL)
    read_only: bool = Field(default=False)
    requires_auth: bool = Field(default=False)
    cacheable: bool = Field(default=True)

    @property
    def use_cache(self) -> bool:
        return self.read_only and self.cacheable


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────


class ContentBlock(BaseModel):
    """Human-readable content block returned to protocol clients."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["text", "image", "resource"] = "text"
    text: str | None = None
    uri: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")

    @classmethod
    def of_text(cls, text: str) -> ContentBlock:
        return cls(type="text", text=text)


class ToolResult(BaseModel):
    """Tagged outcome of one tool call: success with data, or a structured error.

    Immutable once constructed. Build with success_response() / error_response().
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: StructuredError | None = None
    content: list[ContentBlock] = Field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return not self.success

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(b.text for b in self.content if b.text is not None)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the response shape: {success, data | error, content}."""
        wire: dict[str, Any] = {"success": self.success}
        if self.success:
            wire["data"] = self.data
        else:
            wire["error"] = self.error.model_dump(mode="json", exclude={"is_retryable"}) if self.error else None
        wire["content"] = [b.model_dump(mode="json", by_alias=True, exclude_none=True) for b in self.content]
        return wire


def success_response(data: Any = None, message: str | None = None) -> ToolResult:
    """Build a success result: optional message block, then data as JSON."""
    content: list[ContentBlock] = []
    if message:
        content.append(ContentBlock.of_text(message))
    if data is not None:
        text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str, ensure_ascii=False)
        content.append(ContentBlock.of_text(text))
    return ToolResult(success=True, data=data, content=content)


def error_response(error: StructuredError) -> ToolResult:
    """Build a failure result carrying the structured error."""
    return ToolResult(success=False, error=error, content=[ContentBlock.of_text(error.render())])


# ─────────────────────────────────────────────────────────────────────────────
# Descriptor
# ─────────────────────────────────────────────────────────────────────────────


# async (params, state: ServerState) -> ToolResult
Handler = Callable[..., Awaitable[ToolResult]]


class ToolDescriptor(BaseModel):
    """Registration record for one tool.

    Attributes:
        name: Unique identifier (snake_case)
        description: What the tool does (shown to clients for selection)
        params_schema: Pydantic model validating the argument bag
        handler: ``async (params, state) -> ToolResult``
        metadata: Flags consulted by middleware (read-only, auth, category)
        timeout: Optional deadline in seconds around each handler attempt
        retry: Optional retry policy around the (timed) handler

    Example:
        >>> ToolDescriptor(
        ...     name="echo",
        ...     description="Echo the given text back",
        ...     params_schema=EchoParams,
        ...     handler=echo,
        ...     metadata=ToolMetadata(read_only=True),
        ... )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., pattern=r"^[a-z][a-z0-9_]*$")
    description: str = Field(..., min_length=10)
    params_schema: type[BaseModel]
    handler: Handler
    metadata: ToolMetadata = Field(default_factory=ToolMetadata)
    timeout: float | None = Field(default=None, gt=0)
    retry: RetryPolicy | None = None

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema of the params model, shaped for capability discovery."""
        schema = self.params_schema.model_json_schema()
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return schema

    def public(self) -> dict[str, Any]:
        """Public-facing shape: {name, description, inputSchema}."""
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema()}
