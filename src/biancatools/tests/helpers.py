"""Test doubles shared across test modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from biancatools.core import ToolDescriptor, ToolMetadata


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EmptyParams(BaseModel):
    pass


class TextParams(BaseModel):
    text: str


def make_descriptor(
    name: str,
    handler: Any,
    params_schema: type[BaseModel] = EmptyParams,
    *,
    metadata: ToolMetadata | None = None,
    **kwargs: Any,
) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=f"Test tool {name} for the dispatch pipeline",
        params_schema=params_schema,
        handler=handler,
        metadata=metadata or ToolMetadata(),
        **kwargs,
    )
