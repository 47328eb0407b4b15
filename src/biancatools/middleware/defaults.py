"""Default middleware stack.

Order (outermost first):
    error normalization -> logging -> metrics -> rate limit -> cache -> handler

Error normalization sees every downstream failure; logging and metrics bracket
the rest of the chain; rate limiting rejects before the cache or handler run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..cache import TTLCache
from .plugins import (
    CacheMiddleware,
    ErrorNormalizationMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
)

if TYPE_CHECKING:
    from ..config import Settings
    from .middleware import Middleware


def default_middleware(settings: Settings) -> list[Middleware]:
    """Build the standard chain from settings."""
    chain: list[Middleware] = [
        ErrorNormalizationMiddleware(),
        LoggingMiddleware(log_params=settings.debug),
        MetricsMiddleware(),
    ]
    if settings.rate_limit.enabled:
        chain.append(RateLimitMiddleware(
            max_calls=settings.rate_limit.max_calls,
            window_seconds=settings.rate_limit.window_seconds,
        ))
    if settings.cache.enabled:
        chain.append(CacheMiddleware(TTLCache(
            settings.cache.ttl,
            max_entries=settings.cache.max_entries or None,
        )))
    return chain
