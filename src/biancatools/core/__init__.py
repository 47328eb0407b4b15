"""Core tool model: names, descriptors, results, and server state."""

from .base import (
    ContentBlock,
    Handler,
    ToolCategory,
    ToolDescriptor,
    ToolMetadata,
    ToolName,
    ToolResult,
    error_response,
    success_response,
)
from .state import ServerState

__all__ = [
    "ContentBlock",
    "Handler",
    "ServerState",
    "ToolCategory",
    "ToolDescriptor",
    "ToolMetadata",
    "ToolName",
    "ToolResult",
    "error_response",
    "success_response",
]
