"""Backoff strategies for retry policies.

Attempt numbers are 0-indexed (first retry = attempt 0).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Backoff(Protocol):
    """Protocol for backoff delay calculation."""
    
    def delay(self, attempt: int) -> float:
        """Calculate delay in seconds for given attempt number."""
        ...


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Fixed delay between attempts, no jitter.
    
    Attributes:
        delay_seconds: Seconds to wait before every retry (default: 1.0)
    """
    
    delay_seconds: float = 1.0
    
    def __post_init__(self) -> None:
        if self.delay_seconds < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay_seconds}")
    
    def delay(self, attempt: int) -> float:
        return self.delay_seconds
