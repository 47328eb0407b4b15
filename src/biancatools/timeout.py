"""Deadline wrapper for async operations.

Timeout here means "stop waiting", not "stop executing". External adapters
(browser, REST clients, subprocesses) expose no cancellation, so an operation
that overruns keeps running in the background and its outcome is dropped.
Only cancellation of the *caller* is forwarded to the operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from .errors import ErrorKind, ToolException

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger("biancatools.timeout")

# Strong refs to overrun operations so they are not garbage collected mid-flight
_orphans: set[asyncio.Future[object]] = set()


def _discard(task: asyncio.Future[object]) -> None:
    _orphans.discard(task)
    if task.cancelled():
        return
    if (exc := task.exception()) is not None:
        logger.debug(f"Discarded late failure after timeout: {type(exc).__name__}: {exc}")


async def with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout: float,
    message: str | None = None,
) -> T:
    """Race operation against a deadline of ``timeout`` seconds.

    Args:
        operation: Zero-arg async callable
        timeout: Deadline in seconds (> 0)
        message: Error message on expiry (default: "Operation timed out after <t>s")

    Returns:
        The operation's value if it settles first

    Raises:
        ToolException: TIMEOUT kind if the deadline elapses first
        Exception: Whatever the operation raised, unchanged

    Example:
        >>> await with_timeout(lambda: page.goto(url), 30.0, f"Navigation to {url} timed out")
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be > 0, got {timeout}")

    task = asyncio.ensure_future(operation())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    _orphans.add(task)
    task.add_done_callback(_discard)
    raise ToolException.create(
        ErrorKind.TIMEOUT,
        message or f"Operation timed out after {timeout}s",
        detail={"timeout": timeout},
    )
