"""Caching middleware for read-only tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ...cache import TTLCache, make_key
from ..middleware import MiddlewareContext, Next

if TYPE_CHECKING:
    from ...core import ToolResult


@dataclass(slots=True)
class CacheMiddleware:
    """Serve read-only, cacheable tools from a TTL cache.

    Keyed by tool name + serialized params. Only successful results are
    stored. Other tools bypass the cache entirely. Sets ctx["cache_hit"].

    Example:
        >>> registry.use(CacheMiddleware(TTLCache(ttl=60, max_entries=500)))
    """

    cache: TTLCache[ToolResult] = field(default_factory=TTLCache)

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        if not ctx.tool.metadata.use_cache:
            ctx["cache_hit"] = False
            return await next(ctx)

        computed = False

        async def compute() -> ToolResult:
            nonlocal computed
            computed = True
            return await next(ctx)

        result = await self.cache.get_or_compute(
            make_key(ctx.tool_name, ctx.params),
            compute,
            should_store=lambda r: r.success,
        )
        ctx["cache_hit"] = not computed
        return result
