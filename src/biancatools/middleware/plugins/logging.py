"""Logging middleware for tool execution."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ...errors import ToolException
from ..middleware import MiddlewareContext, Next

if TYPE_CHECKING:
    from ...core import ToolResult

logger = logging.getLogger("biancatools.middleware")


@dataclass(slots=True)
class LoggingMiddleware:
    """Log tool execution with timing and result status.

    Logs at INFO level for successful calls, WARNING for errors.
    Duration is stored in context as 'duration_ms'. Never alters the result.

    Args:
        log: Logger instance to use (defaults to biancatools.middleware)
        log_params: Whether to include params in log (default False for privacy)

    Example:
        >>> registry.use(LoggingMiddleware(log_params=True))
    """

    log: logging.Logger = field(default_factory=lambda: logger)
    log_params: bool = False

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        name = ctx.tool_name
        start = time.perf_counter()

        param_str = f" params={ctx.params.model_dump(mode='json')}" if self.log_params else ""
        self.log.info(f"[{name}] Starting{param_str}")

        try:
            result = await next(ctx)
        except ToolException as e:
            duration_ms = (time.perf_counter() - start) * 1000
            ctx["duration_ms"] = duration_ms
            self.log.warning(f"[{name}] ERROR {e.kind} ({duration_ms:.1f}ms): {e}")
            raise
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            ctx["duration_ms"] = duration_ms
            self.log.exception(f"[{name}] EXCEPTION ({duration_ms:.1f}ms): {e}")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        ctx["duration_ms"] = duration_ms

        level = logging.INFO if result.success else logging.WARNING
        status = "OK" if result.success else f"ERROR {result.error.kind if result.error else ''}".rstrip()
        self.log.log(level, f"[{name}] {status} ({duration_ms:.1f}ms)")
        return result
