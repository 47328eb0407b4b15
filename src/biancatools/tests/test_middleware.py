"""Tests for middleware composition and the built-in plugins."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

import pytest

from biancatools.cache import TTLCache
from biancatools.config import CacheSettings, RateLimitSettings, Settings
from biancatools.core import ServerState, ToolMetadata, ToolResult, error_response, success_response
from biancatools.errors import ErrorKind, StructuredError, ToolException
from biancatools.middleware import (
    CacheMiddleware,
    ErrorNormalizationMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    MiddlewareContext,
    Next,
    RateLimitMiddleware,
    ToolMetrics,
    compose,
    default_middleware,
)

from .helpers import FakeClock, TextParams, make_descriptor


def make_ctx(state: ServerState, name: str = "sample", *, read_only: bool = False, text: str = "x") -> MiddlewareContext:
    async def unused(params: TextParams, state: ServerState) -> ToolResult:
        return success_response(params.text)

    tool = make_descriptor(name, unused, TextParams, metadata=ToolMetadata(read_only=read_only))
    return MiddlewareContext(tool=tool, params=TextParams(text=text), state=state)


class Recorder:
    """Middleware appending before/after markers to a shared log."""

    def __init__(self, label: str, log: list[str], *, short_circuit: bool = False) -> None:
        self.label = label
        self.log = log
        self.short_circuit = short_circuit

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        self.log.append(f"{self.label}-before")
        if self.short_circuit:
            result = success_response("short")
        else:
            result = await next(ctx)
        self.log.append(f"{self.label}-after")
        return result


# ═════════════════════════════════════════════════════════════════════════════
# Composition
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_chain_runs_outermost_first(state: ServerState) -> None:
    log: list[str] = []

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        log.append("H")
        return success_response("h")

    chain = compose([Recorder("A", log), Recorder("B", log), Recorder("C", log)], handler)
    result = await chain(make_ctx(state))

    assert result.data == "h"
    assert log == ["A-before", "B-before", "C-before", "H", "C-after", "B-after", "A-after"]


@pytest.mark.asyncio
async def test_short_circuit_skips_inner_links(state: ServerState) -> None:
    log: list[str] = []

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        log.append("H")
        return success_response("h")

    chain = compose([Recorder("A", log), Recorder("B", log, short_circuit=True), Recorder("C", log)], handler)
    result = await chain(make_ctx(state))

    assert result.data == "short"
    assert log == ["A-before", "B-before", "B-after", "A-after"]


@pytest.mark.asyncio
async def test_empty_chain_is_the_terminal(state: ServerState) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        return success_response(ctx.tool_name)

    assert (await compose([], handler)(make_ctx(state, "bare"))).data == "bare"


def test_context_data_access(state: ServerState) -> None:
    ctx = make_ctx(state)
    ctx["duration_ms"] = 1.5
    assert "duration_ms" in ctx
    assert ctx["duration_ms"] == 1.5
    assert ctx.get("cache_hit", False) is False


# ═════════════════════════════════════════════════════════════════════════════
# Error normalization
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_error_normalization_keeps_tool_exception_kind(state: ServerState) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        raise ToolException.create(ErrorKind.NOT_FOUND, "Element #go not found or not visible")

    result = await compose([ErrorNormalizationMiddleware()], handler)(make_ctx(state))
    assert result.is_error
    assert result.error.kind is ErrorKind.NOT_FOUND
    assert result.text == "Error: Element #go not found or not visible"


@pytest.mark.asyncio
async def test_error_normalization_wraps_unexpected_exceptions(state: ServerState) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        raise ZeroDivisionError("division by zero")

    result = await compose([ErrorNormalizationMiddleware()], handler)(make_ctx(state))
    assert result.error.kind is ErrorKind.INTERNAL
    assert result.error.message == "division by zero"


@pytest.mark.asyncio
async def test_error_normalization_propagates_cancellation(state: ServerState) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        raise asyncio.CancelledError

    with pytest.raises(asyncio.CancelledError):
        await compose([ErrorNormalizationMiddleware()], handler)(make_ctx(state))


# ═════════════════════════════════════════════════════════════════════════════
# Logging & metrics
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_logging_records_duration_and_status(state: ServerState, caplog: pytest.LogCaptureFixture) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        return success_response("ok")

    ctx = make_ctx(state, "logged")
    with caplog.at_level(logging.INFO, logger="biancatools.middleware"):
        await compose([LoggingMiddleware()], handler)(ctx)

    assert ctx["duration_ms"] >= 0
    assert "[logged] Starting" in caplog.text
    assert "[logged] OK" in caplog.text


@pytest.mark.asyncio
async def test_logging_warns_on_tool_exception(state: ServerState, caplog: pytest.LogCaptureFixture) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        raise ToolException.create(ErrorKind.TIMEOUT, "too slow")

    with caplog.at_level(logging.INFO, logger="biancatools.middleware"):
        with pytest.raises(ToolException):
            await compose([LoggingMiddleware()], handler)(make_ctx(state, "slow"))

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings and "TIMEOUT" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_metrics_count_success_and_failure(state: ServerState) -> None:
    metrics = MetricsMiddleware()
    outcomes = iter([success_response("a"), None])

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        result = next(outcomes)
        if result is None:
            raise RuntimeError("boom")
        return result

    chain = compose([metrics], handler)
    await chain(make_ctx(state, "counted"))
    with pytest.raises(RuntimeError):
        await chain(make_ctx(state, "counted"))

    counted = metrics.get("counted")
    assert (counted.total, counted.success, counted.failure) == (2, 1, 1)
    assert metrics.get("never_called").total == 0
    assert set(metrics.snapshot()) == {"counted"}


def test_metrics_keep_running_totals() -> None:
    m = ToolMetrics()
    for duration in (10.0, 30.0, 20.0) * 1000:
        m.record(duration, ok=True)
    m.record(40.0, ok=False)

    assert (m.total, m.success, m.failure) == (3001, 3000, 1)
    assert m.total_ms == pytest.approx(60_040.0)
    assert m.avg_ms == pytest.approx(60_040.0 / 3001)
    assert m.max_ms == 40.0
    assert all(isinstance(v, (int, float)) for v in dataclasses.asdict(m).values())
    assert ToolMetrics().as_dict() == {"total": 0, "success": 0, "failure": 0, "avg_ms": 0.0, "max_ms": 0.0}


# ═════════════════════════════════════════════════════════════════════════════
# Rate limiting
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_rate_limit_rejects_over_budget_and_recovers(state: ServerState, clock: FakeClock) -> None:
    calls = 0

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        nonlocal calls
        calls += 1
        return success_response(calls)

    chain = compose([RateLimitMiddleware(max_calls=2, window_seconds=10, clock=clock)], handler)
    await chain(make_ctx(state))
    await chain(make_ctx(state))
    with pytest.raises(ToolException) as exc_info:
        await chain(make_ctx(state))
    assert exc_info.value.kind is ErrorKind.RATE_LIMITED
    assert calls == 2

    clock.advance(10)
    assert (await chain(make_ctx(state))).data == 3


@pytest.mark.asyncio
async def test_rate_limit_is_per_tool_by_default(state: ServerState, clock: FakeClock) -> None:
    async def handler(ctx: MiddlewareContext) -> ToolResult:
        return success_response(ctx.tool_name)

    chain = compose([RateLimitMiddleware(max_calls=1, window_seconds=10, clock=clock)], handler)
    await chain(make_ctx(state, "one"))
    assert (await chain(make_ctx(state, "two"))).data == "two"

    shared = compose([RateLimitMiddleware(max_calls=1, window_seconds=10, per_tool=False, clock=clock)], handler)
    await shared(make_ctx(state, "one"))
    with pytest.raises(ToolException):
        await shared(make_ctx(state, "two"))


# ═════════════════════════════════════════════════════════════════════════════
# Caching
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cache_serves_read_only_tools(state: ServerState) -> None:
    calls = 0

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        nonlocal calls
        calls += 1
        return success_response(calls)

    chain = compose([CacheMiddleware(TTLCache(60))], handler)
    first, second = make_ctx(state, read_only=True), make_ctx(state, read_only=True)
    assert (await chain(first)).data == 1
    assert (await chain(second)).data == 1
    assert first["cache_hit"] is False
    assert second["cache_hit"] is True

    other = make_ctx(state, read_only=True, text="different")
    assert (await chain(other)).data == 2
    assert calls == 2


@pytest.mark.asyncio
async def test_cache_bypasses_mutating_tools(state: ServerState) -> None:
    calls = 0

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        nonlocal calls
        calls += 1
        return success_response(calls)

    chain = compose([CacheMiddleware(TTLCache(60))], handler)
    await chain(make_ctx(state))
    ctx = make_ctx(state)
    assert (await chain(ctx)).data == 2
    assert ctx["cache_hit"] is False


@pytest.mark.asyncio
async def test_cache_does_not_store_failure_results(state: ServerState) -> None:
    results = iter([
        error_response(StructuredError.create(ErrorKind.INTERNAL, "flaky upstream")),
        success_response("fine"),
    ])

    async def handler(ctx: MiddlewareContext) -> ToolResult:
        return next(results)

    chain = compose([CacheMiddleware(TTLCache(60))], handler)
    assert (await chain(make_ctx(state, read_only=True))).is_error
    assert (await chain(make_ctx(state, read_only=True))).data == "fine"


# ═════════════════════════════════════════════════════════════════════════════
# Default stack
# ═════════════════════════════════════════════════════════════════════════════


def test_default_middleware_order() -> None:
    chain = default_middleware(Settings())
    assert [type(m) for m in chain] == [
        ErrorNormalizationMiddleware,
        LoggingMiddleware,
        MetricsMiddleware,
        RateLimitMiddleware,
        CacheMiddleware,
    ]


def test_default_middleware_respects_switches() -> None:
    settings = Settings(
        rate_limit=RateLimitSettings(enabled=False),
        cache=CacheSettings(enabled=False),
    )
    assert [type(m) for m in default_middleware(settings)] == [
        ErrorNormalizationMiddleware,
        LoggingMiddleware,
        MetricsMiddleware,
    ]

