"""Standardized error handling for tool dispatch.

Provides the closed error-kind taxonomy and the structured error carried by
every failed tool call. Uses Pydantic for validation and serialization.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

JsonDict = dict[str, Any]


class ErrorKind(StrEnum):
    """Closed set of failure categories.

    Callers branch on the kind, never on message text. Extend only by adding
    members; never reuse an existing member for a new meaning.
    """
    INVALID_PARAMS = "INVALID_PARAMS"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    INTERNAL = "INTERNAL"
    AUTH_FAILURE = "AUTH_FAILURE"
    RATE_LIMITED = "RATE_LIMITED"
    UNKNOWN = "UNKNOWN"


# Kinds a caller may reasonably back off and retry on
RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.RATE_LIMITED,
})


class StructuredError(BaseModel):
    """Structured error value for tool failures.

    Attributes:
        kind: Machine-readable failure category
        message: Human-readable error message
        detail: Optional JSON payload (field errors, HTTP status, wrapped error)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Structured Error",
            "examples": [{
                "kind": "INVALID_PARAMS",
                "message": "Invalid parameters for 'github_list_issues': state: Input should be 'open', 'closed' or 'all'",
                "detail": {"errors": [{"field": "state", "message": "Input should be 'open', 'closed' or 'all'"}]},
            }],
        },
    )

    kind: ErrorKind = Field(default=ErrorKind.UNKNOWN, description="Failure category")
    message: Annotated[str, Field(min_length=1, description="Human-readable error message")]
    detail: Any = Field(default=None, description="Optional structured detail payload")

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: object) -> object:
        """Accept Exception objects and extract message."""
        return str(v) if isinstance(v, Exception) else v

    @computed_field
    @property
    def is_retryable(self) -> bool:
        """Whether backing off and retrying may change the outcome."""
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def create(cls, kind: ErrorKind, message: str, detail: Any = None) -> Self:
        """Factory method for construction."""
        return cls(kind=kind, message=message, detail=detail)

    @classmethod
    def from_exception(cls, exc: BaseException) -> StructuredError:
        """Normalize any exception into a structured error.

        ToolExceptions keep their error as is. Anything else becomes an
        INTERNAL error preserving the original message.
        """
        if isinstance(exc, ToolException):
            return exc.error
        return cls(
            kind=ErrorKind.INTERNAL,
            message=str(exc) or type(exc).__name__,
            detail={"type": type(exc).__name__},
        )

    def render(self) -> str:
        """Format error as a human-readable content line."""
        return f"Error: {self.message}"

    __str__ = render


class ToolException(Exception):
    """Exception wrapping a StructuredError for raising."""

    __slots__ = ("error",)

    def __init__(self, error: StructuredError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @classmethod
    def create(cls, kind: ErrorKind, message: str, detail: Any = None) -> Self:
        """Create tool exception."""
        return cls(StructuredError(kind=kind, message=message, detail=detail))
