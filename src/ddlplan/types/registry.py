"""Registry of logical types.

The registry is an explicit object handed to the reader and generator; there
is no process-wide instance. Custom types are registered at start-up and are
resolved exactly like the built-ins.
"""

from typing import Any, Iterable, Iterator

import structlog

from ddlplan.errors import TypeResolutionError
from ddlplan.types.logical import LogicalType, builtin_types, generic_type


def _class_distance(value_type: type, handled: type) -> int | None:
    """Return how far ``handled`` sits above ``value_type``, or None.

    For a real base class this is its position in ``value_type``'s MRO (0
    for an exact match). A virtual (ABC) parent never appears in the MRO, so
    its distance is the number of MRO classes that still satisfy it.
    """
    try:
        if not issubclass(value_type, handled):
            return None
    except TypeError:
        return None
    mro = value_type.__mro__
    if handled in mro:
        return mro.index(handled)
    return sum(1 for base in mro if issubclass(base, handled))


def _specificity(value_type: type, handled: type) -> tuple[int, int] | None:
    """Sort key for a handler; smaller is more specific.

    Handlers at the same distance are ranked by depth of their own
    hierarchy, so ``numbers.Integral`` beats ``numbers.Number`` for ``int``.
    """
    distance = _class_distance(value_type, handled)
    if distance is None:
        return None
    return distance, -len(handled.__mro__)


class TypeRegistry:
    """Resolves logical types by name, native SQL code, or Python value type.

    Resolution rules:

    * by name: exact, case-insensitive match on the type name.
    * by code: the first registered type claiming the code; codes nobody
      claims resolve to a generic type cached per code.
    * by class: the handler with the smallest class distance wins, then the
      handler whose own class hierarchy is deepest; when two handlers are
      still equally specific the most recently registered one wins. Enums
      with a data mixin (``IntEnum``, ``class Color(str, Enum)``) therefore
      resolve to the mixin's type, plain enums to ``ENUM``.
    """

    def __init__(
        self,
        types: Iterable[LogicalType] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._types: list[LogicalType] = []
        self._by_name: dict[str, LogicalType] = {}
        self._generic: dict[int, LogicalType] = {}
        self._logger = logger or structlog.get_logger(__name__)
        for logical_type in types or ():
            self._add(logical_type)

    @classmethod
    def with_builtins(cls, logger: structlog.stdlib.BoundLogger | None = None) -> "TypeRegistry":
        return cls(builtin_types(), logger=logger)

    def register(self, logical_type: LogicalType) -> LogicalType:
        """Register a custom type.

        Raises:
            ValueError: If a type with the same name is already registered.
        """
        self._add(logical_type)
        self._logger.debug(
            "logical_type_registered",
            name=logical_type.name,
            sql_type=logical_type.sql_type,
            value_types=[t.__name__ for t in logical_type.value_types],
        )
        return logical_type

    def _add(self, logical_type: LogicalType) -> None:
        key = logical_type.name.upper()
        if key in self._by_name:
            raise ValueError(f"logical type already registered: {logical_type.name}")
        self._types.append(logical_type)
        self._by_name[key] = logical_type

    def get(self, name: "str | LogicalType") -> LogicalType:
        """Resolve an explicitly requested logical type."""
        if isinstance(name, LogicalType):
            if name not in self._types:
                raise TypeResolutionError(f"logical type not registered: {name.name}")
            return name
        try:
            return self._by_name[name.upper()]
        except KeyError:
            raise TypeResolutionError(f"unknown logical type: {name}") from None

    def for_code(self, sql_type: int) -> LogicalType:
        for logical_type in self._types:
            if logical_type.sql_type == sql_type:
                return logical_type
        generic = self._generic.get(sql_type)
        if generic is None:
            generic = generic_type(sql_type)
            self._generic[sql_type] = generic
        return generic

    def for_class(self, value_type: type) -> LogicalType:
        best: LogicalType | None = None
        best_rank: tuple[int, int] | None = None
        for logical_type in self._types:
            for handled in logical_type.value_types:
                rank = _specificity(value_type, handled)
                if rank is None:
                    continue
                # later registrations win ties, hence <=
                if best_rank is None or rank <= best_rank:
                    best = logical_type
                    best_rank = rank
        if best is None:
            raise TypeResolutionError(f"no logical type handles {value_type.__qualname__}")
        return best

    def for_value(self, value: Any) -> LogicalType:
        return self.for_class(type(value))

    def __iter__(self) -> Iterator[LogicalType]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return item.upper() in self._by_name
        return item in self._types
