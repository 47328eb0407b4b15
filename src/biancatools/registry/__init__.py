"""Tool registry and dispatcher."""

from .registry import ToolRegistry, build_registry

__all__ = ["ToolRegistry", "build_registry"]
