"""MCP protocol server for the tool registry."""

from .server import MCPServer, ToolServer, main, serve, to_call_result, to_text_content

__all__ = ["MCPServer", "ToolServer", "main", "serve", "to_call_result", "to_text_content"]
