"""Central registry for tool lookup and dispatch.

The registry provides:
- Tool registration and lookup by name
- Capability discovery (name, description, input schema)
- Middleware pipeline for cross-cutting concerns
- The dispatch lifecycle: lookup -> validate -> middleware -> handler -> result

dispatch() never raises: every failure comes back as a failure ToolResult.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

from ..core import ServerState, ToolDescriptor, ToolName, ToolResult, error_response, success_response
from ..errors import ErrorKind, StructuredError, ToolException
from ..middleware import Middleware, MiddlewareContext, Next, compose, default_middleware
from ..timeout import with_timeout
from ..validation import Validator

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("biancatools.registry")


class ToolRegistry:
    """Registry of tool descriptors plus the middleware chain around them.

    Example:
        >>> registry = ToolRegistry(ServerState())
        >>> registry.register(echo_descriptor)
        >>> registry.use(ErrorNormalizationMiddleware())
        >>> result = await registry.dispatch("echo", {"text": "hi"})
        >>> result.data
        'hi'
    """

    __slots__ = ("_tools", "_validator", "_middleware", "_chain", "_state")

    def __init__(self, state: ServerState | None = None, middleware: Sequence[Middleware] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._validator = Validator()
        self._middleware: list[Middleware] = list(middleware)
        self._chain: Next | None = None
        self._state = state or ServerState()

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def validator(self) -> Validator:
        return self._validator

    # ─────────────────────────────────────────────────────────────────
    # Registration (startup only)
    # ─────────────────────────────────────────────────────────────────

    def register(self, descriptor: ToolDescriptor) -> None:
        """Register a tool. Duplicate names are a startup error."""
        name = descriptor.name
        if name in self._tools:
            raise ValueError(f"Tool '{name}' already registered")
        self._validator.register(name, descriptor.params_schema)
        self._tools[name] = descriptor

    def register_all(self, *descriptors: ToolDescriptor) -> None:
        """Register multiple tools at once."""
        for descriptor in descriptors:
            self.register(descriptor)

    def get(self, name: str) -> ToolDescriptor | None:
        """Get descriptor by name."""
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def list_tools(self) -> list[dict[str, Any]]:
        """Public shape of every tool: {name, description, inputSchema}."""
        return [d.public() for d in self._tools.values()]

    # ─────────────────────────────────────────────────────────────────
    # Middleware
    # ─────────────────────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> None:
        """Add middleware to the execution pipeline.

        Middleware is applied in order: first added = outermost (runs first).
        Invalidates the compiled chain, forcing recompilation on next dispatch.
        """
        self._middleware.append(middleware)
        self._chain = None  # Invalidate cached chain

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        return tuple(self._middleware)

    def _get_chain(self) -> Next:
        """Get or compile the middleware chain."""
        if self._chain is None:
            self._chain = compose(self._middleware, self._invoke)
        return self._chain

    # ─────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _invoke(ctx: MiddlewareContext) -> ToolResult:
        """Terminal link: run the handler under its timeout, inside its retry policy."""
        tool = ctx.tool

        async def attempt() -> ToolResult:
            result = await tool.handler(ctx.params, ctx.state)
            return result if isinstance(result, ToolResult) else success_response(result)

        call: Callable[[], Awaitable[ToolResult]] = attempt
        if tool.timeout is not None:
            timeout = tool.timeout

            async def timed() -> ToolResult:
                return await with_timeout(attempt, timeout, f"Tool '{tool.name}' timed out after {timeout}s")
            call = timed

        if tool.retry is not None and not tool.retry.is_disabled:
            return await tool.retry.run(call)
        return await call()

    async def dispatch(self, name: str, raw_args: object = None) -> ToolResult:
        """Run one tool call end to end.

        Looks up the tool (NOT_FOUND if absent), validates the raw arguments
        (INVALID_PARAMS), then threads the validated params through the
        middleware chain to the handler. Always returns a ToolResult. The
        request is held in flight on the server state from the first line
        (so the idle sweep leaves the browser alone) and counted when it
        ends, whatever the outcome.

        Args:
            name: Tool name
            raw_args: Untyped argument mapping (None = no arguments)

        Returns:
            Success or failure ToolResult
        """
        self._state.begin_request()
        try:
            descriptor = self._tools.get(name)
            if descriptor is None:
                return error_response(StructuredError.create(
                    ErrorKind.NOT_FOUND, f"Tool '{name}' not found", {"tool": name},
                ))

            validated = self._validator.validate(name, raw_args)
            if validated.is_err():
                return error_response(validated.unwrap_err())

            ctx = MiddlewareContext(tool=descriptor, params=validated.unwrap(), state=self._state)
            return await self._get_chain()(ctx)
        except asyncio.CancelledError:
            raise
        except ToolException as e:
            return error_response(e.error)
        except Exception as e:
            logger.exception(f"[{name}] Dispatch failed: {e}")
            return error_response(StructuredError.from_exception(e))
        finally:
            self._state.end_request()


def build_registry(state: ServerState | None = None) -> ToolRegistry:
    """Registry with the full tool catalogue and the default middleware.

    Raises:
        RuntimeError: If the catalogue does not cover every ToolName
    """
    from ..tools import CATALOGUE

    state = state or ServerState()
    registry = ToolRegistry(state, default_middleware(state.settings))
    registry.register_all(*CATALOGUE)

    missing = {n.value for n in ToolName} - {d.name for d in registry}
    if missing:
        raise RuntimeError(f"Tools without a registered handler: {sorted(missing)}")
    logger.debug(f"Registered {len(registry)} tools")
    return registry
