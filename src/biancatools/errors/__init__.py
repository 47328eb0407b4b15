"""Unified error handling for biancatools.

- ErrorKind: Closed taxonomy of failure categories
- StructuredError/ToolException: Structured errors and their raisable wrapper
- Result/Ok/Err: Tagged success/failure values
"""

from .errors import RETRYABLE_KINDS, ErrorKind, JsonDict, StructuredError, ToolException
from .result import Err, Ok, Result, to_result

__all__ = [
    # Core errors
    "ErrorKind", "StructuredError", "ToolException", "RETRYABLE_KINDS", "JsonDict",
    # Result
    "Result", "Ok", "Err", "to_result",
]
