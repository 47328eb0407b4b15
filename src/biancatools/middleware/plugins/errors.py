"""Error normalization middleware: the single exception-to-result boundary."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ...core import error_response
from ...errors import StructuredError, ToolException
from ..middleware import MiddlewareContext, Next

if TYPE_CHECKING:
    from ...core import ToolResult

logger = logging.getLogger("biancatools.middleware")


@dataclass(slots=True)
class ErrorNormalizationMiddleware:
    """Convert anything raised downstream into a failure ToolResult.

    ToolExceptions keep their structured error. Any other exception becomes an
    INTERNAL error preserving the original message, and is logged with its
    traceback. Must be the outermost middleware to see every failure.

    Example:
        >>> registry.use(ErrorNormalizationMiddleware())
    """

    log: logging.Logger = field(default_factory=lambda: logger)

    async def __call__(self, ctx: MiddlewareContext, next: Next) -> ToolResult:
        try:
            return await next(ctx)
        except asyncio.CancelledError:
            raise
        except ToolException as e:
            return error_response(e.error)
        except Exception as e:
            self.log.exception(f"[{ctx.tool_name}] Unexpected {type(e).__name__}: {e}")
            return error_response(StructuredError.from_exception(e))
