"""Retry execution for tool handlers.

Retries are unconditional: every raised exception triggers another attempt
until the budget is spent, regardless of its error kind. The last error
is re-raised once attempts are exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .backoff import Backoff, ConstantBackoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger("biancatools.retry")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    delay: float = 1.0,
    backoff: Backoff | None = None,
) -> T:
    """Run operation up to ``retries + 1`` times, sleeping between attempts.
    
    Args:
        operation: Zero-arg async callable, invoked once per attempt
        retries: Extra attempts after the first (>= 0)
        delay: Fixed seconds between attempts, used when no backoff given
        backoff: Optional strategy overriding ``delay``
    
    Returns:
        Value of the first successful attempt
    
    Raises:
        ValueError: If retries or delay is negative
        Exception: The error of the final attempt
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")
    if delay < 0:
        raise ValueError(f"delay must be >= 0, got {delay}")
    strategy = backoff or ConstantBackoff(delay)
    
    for attempt in range(retries + 1):
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= retries:
                raise
            wait = strategy.delay(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{retries + 1} failed ({type(e).__name__}: {e}), "
                f"retrying in {wait:.2f}s"
            )
            if wait > 0:
                await asyncio.sleep(wait)
    
    raise AssertionError("unreachable")  # pragma: no cover


class RetryPolicy(BaseModel):
    """Declarative retry configuration attached to a tool descriptor.
    
    Attributes:
        retries: Extra attempts after the first (0 = no retries)
        delay: Fixed seconds between attempts
    
    Example:
        >>> policy = RetryPolicy(retries=2, delay=1.0)
        >>> await policy.run(lambda: client.create_issue(...))
    """
    
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "title": "Retry Policy",
            "examples": [{"retries": 2, "delay": 1.0}],
        },
    )
    
    retries: Annotated[int, Field(ge=0, le=10)] = 3
    delay: Annotated[float, Field(ge=0)] = 1.0
    
    @computed_field
    @property
    def is_disabled(self) -> bool:
        return self.retries == 0
    
    @property
    def backoff(self) -> Backoff:
        return ConstantBackoff(self.delay)
    
    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute operation under this policy."""
        return await with_retry(operation, retries=self.retries, backoff=self.backoff)


# Pre-built policy for tools that must not retry
NO_RETRY = RetryPolicy(retries=0, delay=0)
