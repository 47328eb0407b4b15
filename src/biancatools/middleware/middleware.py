"""Core middleware types and chain composition.

Middleware follows continuation-passing style: each middleware receives the
request context and a `next` function to call downstream. Each middleware
calls `next` at most once; calling it twice is undefined behaviour.
"""

from __future__ import annotations

from collections.abc import Coroutine, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from ..core import ServerState, ToolDescriptor, ToolResult


@dataclass(slots=True)
class MiddlewareContext:
    """Request-scoped state passed through the middleware chain.

    Attributes:
        tool: Descriptor of the tool being invoked
        params: Validated parameters
        state: Server state (adapter handles, request accounting)
        data: Mutable accumulator shared between middleware (timing, cache hits)

    Example:
        >>> ctx["duration_ms"] = 12.5
        >>> ctx.get("cache_hit", False)
        False
    """

    tool: ToolDescriptor
    params: BaseModel
    state: ServerState
    data: dict[str, object] = field(default_factory=dict)

    @property
    def tool_name(self) -> str:
        return self.tool.name

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: object = None) -> object:
        return self.data.get(key, default)


# Type alias for the continuation function
Next = Callable[[MiddlewareContext], "Coroutine[Any, Any, ToolResult]"]


@runtime_checkable
class Middleware(Protocol):
    """Protocol for tool middleware.

    Middleware may act before calling `next`, after it returns, short-circuit
    by returning without calling it, or catch what it raises.

    Example:
        >>> class TimingMiddleware:
        ...     async def __call__(self, ctx, next):
        ...         start = time.perf_counter()
        ...         result = await next(ctx)
        ...         ctx["duration"] = time.perf_counter() - start
        ...         return result
    """

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        """Execute middleware logic.

        Args:
            ctx: Request-scoped context
            next: Continuation to call downstream chain

        Returns:
            Tool result (possibly modified)
        """
        ...


def compose(middleware: Sequence[Middleware], terminal: Next) -> Next:
    """Compose middleware around a terminal handler invocation.

    Args:
        middleware: Ordered list of middleware (first = outermost)
        terminal: Innermost link, invokes the tool handler

    Returns:
        Composed async function: (ctx) -> ToolResult
    """
    # Build chain by wrapping from innermost to outermost
    chain: Next = terminal
    for mw in reversed(middleware):
        def make_wrapper(m: Middleware, nxt: Next) -> Next:
            async def wrapped(ctx: MiddlewareContext) -> ToolResult:
                return await m(ctx, nxt)
            return wrapped
        chain = make_wrapper(mw, chain)

    return chain
