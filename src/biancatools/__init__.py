"""BiancaTools - MCP tool server for browser, GitHub, git, memory and agent delegation.

Every tool call goes through one dispatch pipeline:

    lookup -> validate -> middleware chain -> (timeout/retry) -> handler -> ToolResult

Quick Start:
    >>> from biancatools import ServerState, build_registry
    >>> registry = build_registry(ServerState())
    >>> result = await registry.dispatch("github_list_issues", {"owner": "octo", "repo": "hello"})
    >>> result.success
    True

Custom Tools:
    >>> from pydantic import BaseModel
    >>> from biancatools import ToolDescriptor, ToolRegistry, ToolResult, success_response
    >>>
    >>> class EchoParams(BaseModel):
    ...     text: str
    >>>
    >>> async def echo(params: EchoParams, state) -> ToolResult:
    ...     return success_response(params.text)
    >>>
    >>> registry = ToolRegistry()
    >>> registry.register(ToolDescriptor(
    ...     name="echo", description="Echo the given text back",
    ...     params_schema=EchoParams, handler=echo,
    ... ))

Run as an MCP stdio server:
    $ biancatools
"""

__version__ = "1.0.0"

from .cache import CacheEntry, TTLCache, make_key
from .config import Settings, clear_settings_cache, get_settings
from .core import (
    ContentBlock,
    ServerState,
    ToolDescriptor,
    ToolMetadata,
    ToolName,
    ToolResult,
    error_response,
    success_response,
)
from .errors import Err, ErrorKind, Ok, Result, StructuredError, ToolException, to_result
from .middleware import (
    CacheMiddleware,
    ErrorNormalizationMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    Middleware,
    MiddlewareContext,
    Next,
    RateLimitMiddleware,
    compose,
    default_middleware,
)
from .registry import ToolRegistry, build_registry
from .retry import RetryPolicy, with_retry
from .timeout import with_timeout
from .validation import Validator

__all__ = [
    "__version__",
    # Errors
    "ErrorKind", "StructuredError", "ToolException",
    "Result", "Ok", "Err", "to_result",
    # Resilience
    "with_retry", "RetryPolicy", "with_timeout",
    "TTLCache", "CacheEntry", "make_key",
    # Core
    "ToolName", "ToolMetadata", "ToolDescriptor", "ToolResult", "ContentBlock",
    "success_response", "error_response", "ServerState",
    # Validation
    "Validator",
    # Middleware
    "Middleware", "MiddlewareContext", "Next", "compose", "default_middleware",
    "ErrorNormalizationMiddleware", "LoggingMiddleware", "MetricsMiddleware",
    "RateLimitMiddleware", "CacheMiddleware",
    # Registry
    "ToolRegistry", "build_registry",
    # Config
    "Settings", "get_settings", "clear_settings_cache",
]
