"""Maps tool names to params schemas and validates raw argument bags.

Validation is synchronous and side-effect free: it either returns the
validated, defaulted params model or a structured error, never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from ..errors import Err, ErrorKind, Ok, Result, StructuredError

if TYPE_CHECKING:
    from collections.abc import Iterator


def format_validation_error(tool_name: str, exc: ValidationError) -> StructuredError:
    """Convert a pydantic ValidationError into an INVALID_PARAMS error.

    Message lists every failing field: ``"<field>: <msg>; <field>: <msg>"``.
    """
    errors = [
        {"field": ".".join(str(p) for p in err["loc"]) or "(root)", "message": err["msg"]}
        for err in exc.errors(include_url=False)
    ]
    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return StructuredError.create(
        ErrorKind.INVALID_PARAMS,
        f"Invalid parameters for '{tool_name}': {summary}",
        {"errors": errors},
    )


class Validator:
    """One schema per tool name.

    Example:
        >>> validator = Validator()
        >>> validator.register("github_list_issues", ListIssuesParams)
        >>> result = validator.validate("github_list_issues", {"owner": "o", "repo": "r"})
        >>> result.unwrap().state
        'open'
    """

    __slots__ = ("_schemas",)

    def __init__(self) -> None:
        self._schemas: dict[str, type[BaseModel]] = {}

    def register(self, name: str, schema: type[BaseModel]) -> None:
        if name in self._schemas:
            raise ValueError(f"Schema for '{name}' already registered")
        self._schemas[name] = schema

    def schema_for(self, name: str) -> type[BaseModel] | None:
        return self._schemas.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def validate(self, name: str, raw_args: object) -> Result[BaseModel, StructuredError]:
        """Validate raw arguments for a tool.

        Returns:
            Ok(params model with defaults filled) or Err(StructuredError):
            NOT_FOUND for an unknown tool, INVALID_PARAMS for bad arguments.
        """
        schema = self._schemas.get(name)
        if schema is None:
            return Err(StructuredError.create(
                ErrorKind.NOT_FOUND, f"Tool '{name}' not found", {"tool": name},
            ))

        if raw_args is None:
            raw_args = {}
        if not isinstance(raw_args, Mapping):
            return Err(StructuredError.create(
                ErrorKind.INVALID_PARAMS,
                f"Invalid parameters for '{name}': arguments must be an object, got {type(raw_args).__name__}",
                {"errors": [{"field": "(root)", "message": "Input should be an object"}]},
            ))

        try:
            return Ok(schema.model_validate(dict(raw_args)))
        except ValidationError as e:
            return Err(format_validation_error(name, e))
