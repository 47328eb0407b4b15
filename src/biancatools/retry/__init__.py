"""Retry policies for tool execution.

Example:
    >>> from biancatools.retry import RetryPolicy, with_retry
    >>> await with_retry(lambda: fetch(url), retries=2, delay=1.0)
    >>> policy = RetryPolicy(retries=2, delay=1.0)
    >>> await policy.run(lambda: fetch(url))
"""

from .backoff import Backoff, ConstantBackoff
from .policy import NO_RETRY, RetryPolicy, with_retry

__all__ = [
    "Backoff",
    "ConstantBackoff",
    "NO_RETRY",
    "RetryPolicy",
    "with_retry",
]
