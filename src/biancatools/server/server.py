"""MCP server over stdio.

Two layers:

1. **ToolServer** - transport-agnostic adapter: list tools, call a tool
2. **MCPServer** - low-level ``mcp`` server wired to the registry

Argument validation is left to the registry: the SDK's own input-schema
check is switched off so that malformed arguments come back as
INVALID_PARAMS results with the registry's messages.

Example:
    >>> registry = build_registry(ServerState())
    >>> server = MCPServer(registry)
    >>> await server.run_stdio()
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING, Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from ..config import Settings, configure_logging, get_settings
from ..core import ServerState
from ..registry import build_registry

if TYPE_CHECKING:
    from ..core import ToolResult
    from ..registry import ToolRegistry

logger = logging.getLogger("biancatools.server")


# ═══════════════════════════════════════════════════════════════════════════════
# Transport-agnostic adapter
# ═══════════════════════════════════════════════════════════════════════════════


class ToolServer:
    """Exposes a registry to a protocol layer."""

    __slots__ = ("_name", "_version", "_registry")

    def __init__(self, registry: ToolRegistry, name: str = "BiancaTools", version: str | None = None) -> None:
        self._name = name
        self._version = version
        self._registry = registry

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def list_tools(self) -> list[dict[str, Any]]:
        """Every registered tool as {name, description, inputSchema}."""
        return self._registry.list_tools()

    async def call(self, name: str, arguments: object = None) -> ToolResult:
        """Dispatch one call. Never raises for tool failures."""
        return await self._registry.dispatch(name, arguments)


# ═══════════════════════════════════════════════════════════════════════════════
# MCP adapter
# ═══════════════════════════════════════════════════════════════════════════════


class MCPServer(ToolServer):
    """Low-level MCP server advertising and dispatching registry tools."""

    __slots__ = ("_mcp",)

    def __init__(self, registry: ToolRegistry, name: str = "BiancaTools", version: str | None = None) -> None:
        super().__init__(registry, name, version)
        self._mcp = self._create_server()

    def _create_server(self) -> Server:
        server: Server = Server(self._name, version=self._version)

        @server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return [
                types.Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
                for t in self.list_tools()
            ]

        @server.call_tool(validate_input=False)
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
            return to_call_result(await self.call(name, arguments))

        return server

    @property
    def mcp(self) -> Server:
        """Access the underlying protocol server."""
        return self._mcp

    async def run_stdio(self) -> None:
        """Serve over stdin/stdout until the client disconnects."""
        async with stdio_server() as (read_stream, write_stream):
            await self._mcp.run(read_stream, write_stream, self._mcp.create_initialization_options())


def to_text_content(result: ToolResult) -> list[types.TextContent]:
    """Content blocks of a result as protocol text content."""
    return [
        types.TextContent(type="text", text=block.text if block.text is not None else (block.uri or ""))
        for block in result.content
    ]


def to_call_result(result: ToolResult) -> types.CallToolResult:
    """Protocol reply for a result: text content plus the wire shape as structured content.

    Failures carry ``isError`` and keep the error kind and detail in
    ``structuredContent`` so clients can branch on them.
    """
    return types.CallToolResult(
        content=to_text_content(result),
        structuredContent=result.to_wire(),
        isError=result.is_error,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Entry points
# ═══════════════════════════════════════════════════════════════════════════════


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Skipping signal handler for {sig.name}")


async def serve(settings: Settings | None = None) -> None:
    """Run the stdio server until the client disconnects or a signal arrives.

    Starts the browser idle sweep alongside the transport and always tears
    down adapter handles on the way out.
    """
    settings = settings or get_settings()
    configure_logging(settings.logging)

    state = ServerState(settings)
    registry = build_registry(state)
    server = MCPServer(registry, settings.server.name, settings.server.version)
    logger.info(f"{settings.server.name} {settings.server.version} serving {len(registry)} tools on stdio")

    stop = asyncio.Event()
    _install_signal_handlers(stop)

    sweeper = asyncio.create_task(state.sweep_idle(), name="browser-idle-sweep")
    transport = asyncio.create_task(server.run_stdio(), name="mcp-stdio")
    stopper = asyncio.create_task(stop.wait(), name="shutdown-signal")
    try:
        await asyncio.wait({transport, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if stop.is_set():
            logger.info("Shutdown signal received")
    finally:
        for task in (transport, stopper, sweeper):
            task.cancel()
        await asyncio.gather(transport, stopper, sweeper, return_exceptions=True)
        await state.close()
        logger.info(f"Server stopped after {state.request_count} requests")

    if not transport.cancelled() and (exc := transport.exception()) is not None:
        raise exc


def main() -> None:
    """Console entry point: ``biancatools``."""
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        pass
