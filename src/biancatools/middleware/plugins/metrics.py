"""Metrics middleware for tool execution."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..middleware import MiddlewareContext, Next

if TYPE_CHECKING:
    from ...core import ToolResult

logger = logging.getLogger("biancatools.middleware")


@runtime_checkable
class MetricsBackend(Protocol):
    """Protocol for metrics collection backends."""

    def increment(self, metric: str, value: int = 1, tags: dict[str, str] | None = None) -> None: ...
    def timing(self, metric: str, value_ms: float, tags: dict[str, str] | None = None) -> None: ...


@dataclass(slots=True)
class LogMetricsBackend:
    """Default metrics backend that logs to Python logger."""

    log: logging.Logger = field(default_factory=lambda: logger)

    def increment(self, metric: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        tag_str = f" {tags}" if tags else ""
        self.log.debug(f"METRIC {metric}={value}{tag_str}")

    def timing(self, metric: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        tag_str = f" {tags}" if tags else ""
        self.log.debug(f"METRIC {metric}={value_ms:.2f}ms{tag_str}")


@dataclass(slots=True)
class ToolMetrics:
    """Per-tool counters and running response-time totals. Constant size per tool."""

    total: int = 0
    success: int = 0
    failure: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.total if self.total else 0.0

    def record(self, duration_ms: float, ok: bool) -> None:
        self.total += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        if ok:
            self.success += 1
        else:
            self.failure += 1

    def as_dict(self) -> dict[str, float | int]:
        return {
            "total": self.total,
            "success": self.success,
            "failure": self.failure,
            "avg_ms": self.avg_ms,
            "max_ms": self.max_ms,
        }


@dataclass(slots=True)
class MetricsMiddleware:
    """Collect execution metrics (counters, timing).

    Keeps per-tool totals queryable via get(), and emits:
    - <prefix>.calls: Counter per tool
    - <prefix>.errors: Counter for failed calls (raised or success=False)
    - <prefix>.duration_ms: Timing histogram

    Args:
        backend: MetricsBackend implementation (defaults to logging)
        prefix: Metric name prefix

    Example:
        >>> metrics = MetricsMiddleware()
        >>> registry.use(metrics)
        >>> metrics.get("git_status").success
        3
    """

    backend: MetricsBackend = field(default_factory=LogMetricsBackend)
    prefix: str = "tool"
    _by_tool: dict[str, ToolMetrics] = field(default_factory=dict, repr=False)

    def get(self, name: str) -> ToolMetrics:
        """Metrics for one tool (zeroed if never called)."""
        return self._by_tool.get(name) or ToolMetrics()

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        return {name: m.as_dict() for name, m in self._by_tool.items()}

    def reset(self) -> None:
        self._by_tool.clear()

    def _record(self, name: str, tags: dict[str, str], duration_ms: float, ok: bool) -> None:
        self._by_tool.setdefault(name, ToolMetrics()).record(duration_ms, ok)
        if not ok:
            self.backend.increment(f"{self.prefix}.errors", tags=tags)
        self.backend.increment(f"{self.prefix}.calls", tags=tags)
        self.backend.timing(f"{self.prefix}.duration_ms", duration_ms, tags=tags)

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        name = ctx.tool_name
        tags = {"tool": name, "category": str(ctx.tool.metadata.category)}
        start = time.perf_counter()

        try:
            result = await next(ctx)
        except Exception:
            self._record(name, tags, (time.perf_counter() - start) * 1000, ok=False)
            raise

        self._record(name, tags, (time.perf_counter() - start) * 1000, ok=result.success)
        return result
