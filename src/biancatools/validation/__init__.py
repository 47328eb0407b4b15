"""Argument validation against per-tool schemas."""

from .validator import Validator, format_validation_error

__all__ = ["Validator", "format_validation_error"]
