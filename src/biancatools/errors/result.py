"""Result/Either type for callers who prefer branching over propagation.

Implements a discriminated union for success/failure:
- Functor: map, map_err
- Monad: flat_map (bind)
- Pattern matching via match()
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable, Generic, TypeVar, cast

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterator

# Type variables for generic Result
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Mapped success type
F = TypeVar("F")  # Mapped error type


class Result(Generic[T, E]):
    """Discriminated union representing success (Ok) or failure (Err).

    Examples:
        >>> result: Result[int, str] = Ok(42)
        >>> result.map(lambda x: x * 2).unwrap()
        84

        >>> error: Result[int, str] = Err("failed")
        >>> error.map(lambda x: x * 2).unwrap_err()
        'failed'

    Notes:
        - Uses __slots__ for zero overhead
        - Immutable (all operations return new Result)
    """

    __slots__ = ("_value", "_is_ok")
    __match_args__ = ("_value",)

    def __init__(self, value: T | E, is_ok: bool) -> None:
        """Private constructor. Use Ok() or Err() instead."""
        self._value: T | E = value
        self._is_ok: bool = is_ok

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    # ─────────────────────────────────────────────────────────────────
    # Value Extraction
    # ─────────────────────────────────────────────────────────────────

    def unwrap(self) -> T:
        """Extract Ok value.

        Raises:
            RuntimeError: If Result is Err
        """
        if self._is_ok:
            return cast(T, self._value)
        raise RuntimeError(f"Called unwrap() on Err value: {self._value}")

    def unwrap_err(self) -> E:
        """Extract Err value.

        Raises:
            RuntimeError: If Result is Ok
        """
        if not self._is_ok:
            return cast(E, self._value)
        raise RuntimeError(f"Called unwrap_err() on Ok value: {self._value}")

    def unwrap_or(self, default: T) -> T:
        """Extract Ok value or return default."""
        return cast(T, self._value) if self._is_ok else default

    def ok(self) -> T | None:
        return cast(T, self._value) if self._is_ok else None

    def err(self) -> E | None:
        return cast(E, self._value) if not self._is_ok else None

    # ─────────────────────────────────────────────────────────────────
    # Functor / Monad Operations
    # ─────────────────────────────────────────────────────────────────

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        """Map function over Ok value, preserve Err unchanged."""
        if self._is_ok:
            return Ok(f(cast(T, self._value)))
        return Err(cast(E, self._value))

    def map_err(self, f: Callable[[E], F]) -> Result[T, F]:
        """Map function over Err value, preserve Ok unchanged."""
        if not self._is_ok:
            return Err(f(cast(E, self._value)))
        return Ok(cast(T, self._value))

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind - chain operations that can fail."""
        if self._is_ok:
            return f(cast(T, self._value))
        return Err(cast(E, self._value))

    def match(self, *, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        """Exhaustive case analysis over both variants.

        Example:
            >>> Ok(42).match(ok=lambda x: f"success: {x}", err=lambda e: f"failed: {e}")
            'success: 42'
        """
        if self._is_ok:
            return ok(cast(T, self._value))
        return err(cast(E, self._value))

    # ─────────────────────────────────────────────────────────────────
    # Dunder Methods
    # ─────────────────────────────────────────────────────────────────

    def __bool__(self) -> bool:
        return self._is_ok

    def __repr__(self) -> str:
        variant = "Ok" if self._is_ok else "Err"
        return f"{variant}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._is_ok == other._is_ok and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._is_ok, self._value))

    def __iter__(self) -> Iterator[T]:
        """Yield the Ok value (0 or 1 elements)."""
        if self._is_ok:
            yield cast(T, self._value)


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    """Construct Ok variant (success)."""
    return Result(value, is_ok=True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    """Construct Err variant (failure)."""
    return Result(error, is_ok=False)


async def to_result(operation: Callable[[], Awaitable[T]]) -> Result[T, Exception]:
    """Run an async operation, capturing failure as Err instead of raising.

    Cancellation is not captured and still propagates.

    Example:
        >>> result = await to_result(lambda: client.fetch())
        >>> if result.is_err():
        ...     log.warning("fetch failed: %s", result.unwrap_err())
    """
    try:
        return Ok(await operation())
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return Err(e)
