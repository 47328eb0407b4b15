"""Rate limiting middleware for tool execution."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ...errors import ErrorKind, ToolException
from ..middleware import MiddlewareContext, Next

if TYPE_CHECKING:
    from ...core import ToolResult


@dataclass
class RateLimitMiddleware:
    """Sliding-window rate limiter per tool.

    Rejected calls raise ToolException with RATE_LIMITED kind without calling
    downstream, so they never reach the cache or the handler.

    Args:
        max_calls: Maximum calls per window
        window_seconds: Time window in seconds
        per_tool: Apply limits per-tool (True) or globally (False)

    Example:
        >>> registry.use(RateLimitMiddleware(max_calls=10, window_seconds=60))
    """

    max_calls: int = 60
    window_seconds: float = 60.0
    per_tool: bool = True
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _timestamps: dict[str, deque[float]] = field(default_factory=dict, repr=False)

    def _check_limit(self, key: str) -> bool:
        """Check and update rate limit. Returns True if allowed."""
        now = self.clock()
        bucket = self._timestamps.setdefault(key, deque())

        # Evict timestamps that slid out of the window
        cutoff = now - self.window_seconds
        while bucket and bucket[0] <= cutoff:
            bucket.popleft()

        if len(bucket) >= self.max_calls:
            return False

        bucket.append(now)
        return True

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        key = ctx.tool_name if self.per_tool else "_global_"

        if not self._check_limit(key):
            raise ToolException.create(
                ErrorKind.RATE_LIMITED,
                f"Rate limit exceeded for '{ctx.tool_name}': "
                f"{self.max_calls} calls per {self.window_seconds}s",
                {"max_calls": self.max_calls, "window_seconds": self.window_seconds},
            )

        return await next(ctx)
