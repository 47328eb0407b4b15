"""Built-in middleware plugins for common cross-cutting concerns."""

from .cache import CacheMiddleware
from .errors import ErrorNormalizationMiddleware
from .logging import LoggingMiddleware
from .metrics import LogMetricsBackend, MetricsBackend, MetricsMiddleware, ToolMetrics
from .rate_limit import RateLimitMiddleware

__all__ = [
    "CacheMiddleware",
    "ErrorNormalizationMiddleware",
    "LoggingMiddleware",
    "LogMetricsBackend",
    "MetricsBackend",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "ToolMetrics",
]
