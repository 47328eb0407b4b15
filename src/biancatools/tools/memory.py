"""Persistent memory tools over the mem0 REST API.

Requires MEM0_API_KEY. MEM0_ORG_ID / MEM0_PROJECT_ID scope every call when set.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated, Any

import httpx
from pydantic import BaseModel, Field, StrictInt, StrictStr

from ..core import ToolCategory, ToolDescriptor, ToolMetadata, ToolName, ToolResult, success_response
from ..errors import ErrorKind, ToolException
from .http import RestClient

if TYPE_CHECKING:
    from ..config import MemorySettings
    from ..core import ServerState

logger = logging.getLogger("biancatools.tools.memory")

UserId = Annotated[StrictStr, Field(min_length=1, description="Owner of the memories")]


class MemoryClient(RestClient):
    """Async client for the hosted mem0 memory store."""

    service = "Mem0"

    def __init__(
        self,
        settings: MemorySettings,
        *,
        user_agent: str = "BiancaTools",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings.base_url, timeout=settings.request_timeout, user_agent=user_agent, transport=transport)
        self._settings = settings

    def auth_headers(self) -> dict[str, str]:
        if self._settings.api_key is None or not self._settings.api_key.get_secret_value():
            raise ToolException.create(
                ErrorKind.AUTH_FAILURE, "Memory store is not configured. Set MEM0_API_KEY.", {"service": self.service},
            )
        return {"Authorization": f"Token {self._settings.api_key.get_secret_value()}"}

    def _scope(self) -> dict[str, str]:
        scope = {"org_id": self._settings.org_id, "project_id": self._settings.project_id}
        return {k: v for k, v in scope.items() if v}

    async def add(self, content: str, user_id: str, metadata: dict[str, Any], categories: list[str] | None) -> Any:
        payload: dict[str, Any] = {
            "messages": [{"role": "user", "content": content}],
            "user_id": user_id,
            "metadata": metadata,
            **self._scope(),
        }
        if categories:
            payload["categories"] = categories
        return await self.post("/v1/memories/", json=payload)

    async def search(self, query: str, user_id: str, limit: int, filters: dict[str, Any] | None) -> list[dict[str, Any]]:
        payload = {"query": query, "user_id": user_id, "limit": limit, **self._scope()}
        if filters:
            payload["filters"] = filters
        return await self.post("/v1/memories/search/", json=payload) or []

    async def get_all(self, user_id: str, limit: int | None = None) -> list[dict[str, Any]]:
        query: dict[str, Any] = {"user_id": user_id, **self._scope()}
        if limit is not None:
            query["limit"] = limit
        memories = await self.get("/v1/memories/", params=query) or []
        return memories[:limit] if limit is not None else memories

    async def remove(self, memory_id: str) -> None:
        await self.delete(f"/v1/memories/{memory_id}/", params=self._scope())


# ─────────────────────────────────────────────────────────────────────────────
# Params
# ─────────────────────────────────────────────────────────────────────────────


class AddMemoryParams(BaseModel):
    content: Annotated[StrictStr, Field(min_length=1, description="Memory content to store")]
    user_id: UserId
    metadata: dict[str, Any] | None = Field(default=None, description="Extra metadata")
    tags: list[StrictStr] | None = Field(default=None, description="Tags for the memory")
    category: StrictStr | None = Field(default=None, description="Memory category")


class SearchMemoryParams(BaseModel):
    query: Annotated[StrictStr, Field(min_length=1, description="Semantic search query")]
    user_id: UserId
    limit: Annotated[StrictInt, Field(ge=1, le=100)] = 10
    filters: dict[str, Any] | None = Field(default=None, description="Extra search filters")


class ListMemoriesParams(BaseModel):
    user_id: UserId
    limit: Annotated[StrictInt, Field(ge=1, le=100)] = 50


class DeleteMemoriesParams(BaseModel):
    user_id: UserId
    memory_id: StrictStr | None = Field(default=None, description="Memory to delete (omit to delete all of the user's)")


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def add_memory(params: AddMemoryParams, state: ServerState) -> ToolResult:
    metadata = dict(params.metadata or {})
    if params.tags:
        metadata["tags"] = params.tags
    result = await state.memory.add(
        params.content, params.user_id, metadata, [params.category] if params.category else None,
    )
    first = result[0] if isinstance(result, list) and result else result
    memory_id = first.get("id", "unknown") if isinstance(first, dict) else "unknown"
    return success_response(
        {
            "id": memory_id,
            "content": params.content,
            "user_id": params.user_id,
            "metadata": metadata,
            "tags": params.tags or [],
            "category": params.category,
            "created_at": datetime.now(UTC).isoformat(),
        },
        f"Memory added (ID: {memory_id})",
    )


async def search_memory(params: SearchMemoryParams, state: ServerState) -> ToolResult:
    results = await state.memory.search(params.query, params.user_id, params.limit, params.filters)
    return success_response(
        {"results": results, "total": len(results), "query": params.query, "user_id": params.user_id},
        f"Found {len(results)} memories for \"{params.query}\"",
    )


async def list_memories(params: ListMemoriesParams, state: ServerState) -> ToolResult:
    memories = await state.memory.get_all(params.user_id, params.limit)
    return success_response(
        {"memories": memories, "total": len(memories), "user_id": params.user_id},
        f"{len(memories)} memories found",
    )


async def delete_memories(params: DeleteMemoriesParams, state: ServerState) -> ToolResult:
    """Delete one memory by id, or every memory of the user.

    Bulk deletion is best effort: items that fail are logged and skipped.
    """
    client = state.memory
    if params.memory_id:
        await client.remove(params.memory_id)
        return success_response(
            {"deleted": True, "memory_id": params.memory_id, "user_id": params.user_id, "deleted_count": 1},
            f"Memory {params.memory_id} deleted",
        )

    deleted, failed = 0, []
    for memory in await client.get_all(params.user_id):
        try:
            await client.remove(memory["id"])
            deleted += 1
        except ToolException as e:
            logger.warning(f"Failed to delete memory {memory.get('id')}: {e}")
            failed.append(memory.get("id"))

    return success_response(
        {"deleted": True, "user_id": params.user_id, "deleted_count": deleted, "failed": failed},
        f"{deleted} memories of user {params.user_id} deleted",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────────────────────────

_WRITE = ToolMetadata(category=ToolCategory.MEMORY, requires_auth=True)
# Reads reflect memory_add and memory_delete immediately, so they bypass the cache
_READ = ToolMetadata(category=ToolCategory.MEMORY, requires_auth=True, read_only=True, cacheable=False)

DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ToolName.MEMORY_ADD,
        description="Add a memory to the persistent memory store",
        params_schema=AddMemoryParams,
        handler=add_memory,
        metadata=_WRITE,
    ),
    ToolDescriptor(
        name=ToolName.MEMORY_SEARCH,
        description="Search a user's memories with semantic search",
        params_schema=SearchMemoryParams,
        handler=search_memory,
        metadata=_READ,
    ),
    ToolDescriptor(
        name=ToolName.MEMORY_LIST,
        description="List the memories stored for a user",
        params_schema=ListMemoriesParams,
        handler=list_memories,
        metadata=_READ,
    ),
    ToolDescriptor(
        name=ToolName.MEMORY_DELETE,
        description="Delete one memory, or all memories of a user",
        params_schema=DeleteMemoriesParams,
        handler=delete_memories,
        metadata=_WRITE,
    ),
)
