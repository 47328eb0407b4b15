"""Tool result caching with TTL support.

Provides in-memory caching to prevent repeated API calls for identical queries.
Cache keys are generated from tool name + hashed parameters.

Expiry is lazy: an entry is only checked (and dropped) when it is read.
Concurrent misses for the same key share one in-flight computation.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from pydantic import BaseModel

DEFAULT_TTL: float = 300.0  # 5 minutes
V = TypeVar("V")

logger = logging.getLogger("biancatools.cache")


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """A cached value with its insertion time."""
    value: V
    inserted_at: float

    def is_stale(self, now: float, ttl: float) -> bool:
        return now - self.inserted_at >= ttl


def make_key(tool_name: str, params: BaseModel | dict[str, object]) -> str:
    """Generate cache key from tool name and parameters."""
    if hasattr(params, "model_dump"):
        params_dict = params.model_dump(mode="json")  # type: ignore[union-attr]
    else:
        params_dict = params

    # Sort keys for consistent hashing
    params_json = json.dumps(params_dict, sort_keys=True, default=str)
    params_hash = hashlib.md5(params_json.encode(), usedforsecurity=False).hexdigest()[:12]

    return f"{tool_name}:{params_hash}"


class TTLCache(Generic[V]):
    """In-memory async cache with TTL-based expiration.

    Single event loop only: there is no lock, coordination relies on the
    cooperative scheduler. At most one computation per key is in flight.

    Args:
        ttl: Entry lifetime in seconds
        max_entries: Optional LRU ceiling (None = unbounded)
        clock: Monotonic time source, injectable for tests

    Example:
        >>> cache = TTLCache(ttl=60)
        >>> await cache.get_or_compute("k", lambda: fetch())  # computes
        >>> await cache.get_or_compute("k", lambda: fetch())  # cached
    """

    __slots__ = ("_entries", "_inflight", "_ttl", "_max_entries", "_clock", "_hits", "_misses")

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1 or None, got {max_entries}")
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[V]] = {}
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def _lookup(self, key: str) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_stale(self._clock(), self._ttl):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str) -> V | None:
        """Get cached value if present and fresh."""
        entry = self._lookup(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: V) -> None:
        """Store value stamped with the current time, evicting LRU if full."""
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())
        self._entries.move_to_end(key)
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted {evicted} (max_entries={self._max_entries})")

    def invalidate(self, key: str) -> bool:
        """Remove specific entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[V]],
        *,
        should_store: Callable[[V], bool] | None = None,
    ) -> V:
        """Return the fresh cached value for key, computing it on a miss.

        Overlapping misses for the same key await the first computation
        instead of starting their own; all of them receive its value or its
        exception. The computation runs as its own task, so cancelling any
        one caller (the first included) leaves it running for the others.
        Failures are never stored.

        Args:
            key: Cache key (see make_key)
            compute: Zero-arg async callable producing the value
            should_store: Optional predicate; a computed value failing it is
                returned but not cached

        Returns:
            Cached or freshly computed value
        """
        if (entry := self._lookup(key)) is not None:
            self._hits += 1
            return entry.value

        if (pending := self._inflight.get(key)) is not None:
            self._hits += 1
            return await asyncio.shield(pending)

        self._misses += 1
        task = asyncio.ensure_future(self._compute(key, compute, should_store))
        task.add_done_callback(_retrieve_exception)
        self._inflight[key] = task
        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[V]],
        should_store: Callable[[V], bool] | None,
    ) -> V:
        try:
            value = await compute()
        finally:
            self._inflight.pop(key, None)
        if should_store is None or should_store(value):
            self.set(key, value)
        return value

    @property
    def size(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, object]:
        """Get cache statistics for monitoring."""
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if e.is_stale(now, self._ttl))
        return {
            "total_entries": len(self._entries),
            "expired_entries": expired,
            "active_entries": len(self._entries) - expired,
            "in_flight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
            "ttl": self._ttl,
            "max_entries": self._max_entries,
        }


def _retrieve_exception(task: asyncio.Future[object]) -> None:
    # A computation whose callers were all cancelled still finishes; its
    # failure is logged here instead of as "exception never retrieved".
    if not task.cancelled() and (exc := task.exception()) is not None:
        logger.debug(f"Cached computation failed: {type(exc).__name__}: {exc}")
