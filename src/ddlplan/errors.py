"""Exception types raised by the migration planner.

Every error carries optional ``table`` and ``field`` context so that a failed
introspection or generation run can be diagnosed without a debugger. None of
these are retried automatically: re-reading a catalog or recompiling the same
descriptors cannot produce a different outcome.
"""

from typing import Any


class DdlPlanError(Exception):
    """Base class for all planner errors."""

    def __init__(self, message: str, *, table: str | None = None, field: str | None = None) -> None:
        self.message = message
        self.table = table
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        location = ".".join(part for part in (self.table, self.field) if part)
        if location:
            return f"{self.message} ({location})"
        return self.message


class TypeResolutionError(DdlPlanError, LookupError):
    """No logical type is registered for the requested name or value type."""


class SchemaIntrospectionError(DdlPlanError):
    """Reading the live catalog failed or returned inconsistent metadata."""


class SchemaGenerationError(DdlPlanError):
    """Entity descriptors are invalid or ambiguous."""


class UnsupportedDDLOperationError(DdlPlanError):
    """Raised by providers when a dialect cannot express an action."""

    def __init__(self, message: str, *, action: Any = None, table: str | None = None, field: str | None = None) -> None:
        self.action = action
        super().__init__(message, table=table, field=field)
