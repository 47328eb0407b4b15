"""Middleware system for tool execution hooks.

Provides composable pre/post execution hooks for cross-cutting concerns:
error normalization, logging, metrics, rate limiting, caching.

Example:
    >>> from biancatools.middleware import LoggingMiddleware, RateLimitMiddleware
    >>>
    >>> registry = ToolRegistry(state)
    >>> registry.use(ErrorNormalizationMiddleware())
    >>> registry.use(LoggingMiddleware())
    >>> registry.use(RateLimitMiddleware(max_calls=10, window_seconds=60))
    >>>
    >>> result = await registry.dispatch("git_status", {})
"""

from .defaults import default_middleware
from .middleware import Middleware, MiddlewareContext, Next, compose
from .plugins import (
    CacheMiddleware,
    ErrorNormalizationMiddleware,
    LoggingMiddleware,
    LogMetricsBackend,
    MetricsBackend,
    MetricsMiddleware,
    RateLimitMiddleware,
    ToolMetrics,
)

__all__ = [
    # Core
    "Middleware",
    "MiddlewareContext",
    "Next",
    "compose",
    "default_middleware",
    # Plugins
    "CacheMiddleware",
    "ErrorNormalizationMiddleware",
    "LoggingMiddleware",
    "LogMetricsBackend",
    "MetricsBackend",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "ToolMetrics",
]
