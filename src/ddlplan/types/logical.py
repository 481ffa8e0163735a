"""Logical types and the built-in type set.

A logical type is the planner's database-agnostic tag for a column type. It
owns the conversions between Python values, their string form (used for
default values in descriptors and catalogs), and the row cursor / statement
parameter abstractions used by drivers.
"""

import enum
import math
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Protocol

from ddlplan.types.codes import SQLTypeCode, code_name

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_DATE_FORMAT = "%Y-%m-%d"
_TIME_FORMAT = "%H:%M:%S"
_TRUE_STRINGS = frozenset({"true", "t", "1", "yes", "y"})
_FALSE_STRINGS = frozenset({"false", "f", "0", "no", "n"})


class RowCursor(Protocol):
    """Read access to the current row of a result set."""

    def get(self, column: str) -> Any: ...


class ParameterSink(Protocol):
    """Write access to the positional parameters of a prepared statement."""

    def set(self, index: int, value: Any) -> None: ...


class MappingCursor:
    """RowCursor over a mapping, such as ``Row._mapping`` from SQLAlchemy."""

    def __init__(self, row: Mapping[str, Any]) -> None:
        self._row = row

    def get(self, column: str) -> Any:
        return self._row[column]


class ParameterList:
    """ParameterSink collecting 1-based parameters into a list."""

    def __init__(self) -> None:
        self._values: dict[int, Any] = {}

    def set(self, index: int, value: Any) -> None:
        if index < 1:
            raise IndexError("parameter indexes start at 1")
        self._values[index] = value

    def values(self) -> list[Any]:
        if not self._values:
            return []
        return [self._values.get(i) for i in range(1, max(self._values) + 1)]


class EntityReference(NamedTuple):
    """Value of an entity reference column: the referenced row's key."""

    entity: str
    key: Any


def _read_raw(cursor: RowCursor, column: str) -> Any:
    return cursor.get(column)


def _write_raw(statement: ParameterSink, index: int, value: Any) -> None:
    statement.set(index, value)


def _numbers_equal(a: Any, b: Any) -> bool:
    try:
        return math.isclose(float(a), float(b), rel_tol=1e-9, abs_tol=0.0)
    except (TypeError, ValueError):
        return a == b


class LogicalType:
    """A database-agnostic column type.

    Instances are compared by identity; a registry hands out one instance per
    type so snapshots built against the same registry agree on identity.
    """

    def __init__(
        self,
        name: str,
        sql_type: int,
        default_precision: int = 0,
        value_types: Iterable[type] = (),
        serializer: Callable[[Any], str] = str,
        parser: Callable[[str], Any] = str,
        reader: Callable[[RowCursor, str], Any] = _read_raw,
        writer: Callable[[ParameterSink, int, Any], None] = _write_raw,
        comparator: Callable[[Any, Any], bool] | None = None,
    ) -> None:
        self.name = name
        self.sql_type = int(sql_type)
        self.default_precision = default_precision
        self.value_types = tuple(value_types)
        self._serializer = serializer
        self._parser = parser
        self._reader = reader
        self._writer = writer
        self._comparator = comparator

    def serialize_to_string(self, value: Any) -> str:
        return self._serializer(value)

    def parse_from_string(self, text: str) -> Any:
        """Parse ``text`` into a value of this type.

        Raises:
            ValueError: If the text is not a valid literal for this type.
        """
        return self._parser(text)

    def read(self, cursor: RowCursor, column: str) -> Any:
        value = cursor.get(column)
        if value is None:
            return None
        return self._reader(cursor, column)

    def write(self, statement: ParameterSink, index: int, value: Any) -> None:
        if value is None:
            statement.set(index, None)
            return
        self._writer(statement, index, value)

    def values_equal(self, a: Any, b: Any) -> bool:
        if a is None or b is None:
            return a is None and b is None
        if self._comparator is not None:
            return self._comparator(a, b)
        return a == b

    def __repr__(self) -> str:
        if self.default_precision > 0:
            return f"LogicalType({self.name}({self.default_precision}), {code_name(self.sql_type)})"
        return f"LogicalType({self.name}, {code_name(self.sql_type)})"


def generic_type(sql_type: int) -> LogicalType:
    """Fallback type for native codes that no registered type claims."""

    def _no_parse(text: str) -> Any:
        return None

    return LogicalType(f"GENERIC({code_name(sql_type)})", sql_type, parser=_no_parse)


# conversions


def _parse_bool(text: str) -> bool:
    normalized = text.strip().lower()
    if normalized in _TRUE_STRINGS:
        return True
    if normalized in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean literal: {text!r}")


def _read_bool(cursor: RowCursor, column: str) -> bool:
    value = cursor.get(column)
    if isinstance(value, str):
        return _parse_bool(value)
    return bool(value)


def _bools_equal(a: Any, b: Any) -> bool:
    def as_bool(value: Any) -> Any:
        if isinstance(value, (bool, int)):
            return bool(value)
        if isinstance(value, str):
            try:
                return _parse_bool(value)
            except ValueError:
                return value
        return value

    return as_bool(a) == as_bool(b)


def _parse_timestamp(text: str) -> datetime:
    text = text.strip()
    try:
        return datetime.strptime(text, _TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.fromisoformat(text)


def _parse_date(text: str) -> date:
    return datetime.strptime(text.strip(), _DATE_FORMAT).date()


def _parse_time(text: str) -> time:
    text = text.strip()
    try:
        return datetime.strptime(text, _TIME_FORMAT).time()
    except ValueError:
        return time.fromisoformat(text)


def _read_timestamp(cursor: RowCursor, column: str) -> datetime:
    value = cursor.get(column)
    if isinstance(value, str):
        return _parse_timestamp(value)
    return value


def _read_date(cursor: RowCursor, column: str) -> date:
    value = cursor.get(column)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return _parse_date(value)
    return value


def _read_time(cursor: RowCursor, column: str) -> time:
    value = cursor.get(column)
    if isinstance(value, str):
        return _parse_time(value)
    return value


def _parse_blob(text: str) -> bytes:
    return bytes.fromhex(text.strip())


def _serialize_blob(value: Any) -> str:
    return bytes(value).hex()


def _write_entity(statement: ParameterSink, index: int, value: Any) -> None:
    if isinstance(value, EntityReference):
        value = value.key
    statement.set(index, value)


def _parse_int(text: str) -> int:
    return int(text.strip())


def _parse_float(text: str) -> float:
    return float(text.strip())


def _serialize_bool(value: Any) -> str:
    return "true" if value else "false"


def _serialize_entity(value: Any) -> str:
    if isinstance(value, EntityReference):
        value = value.key
    return str(value)


def _ordinal(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return list(type(value)).index(value)
    return value


def _serialize_enum(value: Any) -> str:
    return str(_ordinal(value))


def _write_enum(statement: ParameterSink, index: int, value: Any) -> None:
    statement.set(index, _ordinal(value))


def _parse_char(text: str) -> str:
    if not text:
        raise ValueError("CHAR literal cannot be empty")
    return text[0]


def builtin_types() -> list[LogicalType]:
    """Create the core type set in registration order.

    ``ENUM`` and ``ENTITY_REFERENCE`` share the ``INTEGER`` code and are
    registered after it, so lookups by code resolve to ``INTEGER``. Enum
    members are stored by ordinal (declaration position).
    """
    return [
        LogicalType(
            "INTEGER",
            SQLTypeCode.INTEGER,
            value_types=(int,),
            parser=_parse_int,
            reader=lambda cursor, column: int(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "ENUM",
            SQLTypeCode.INTEGER,
            value_types=(enum.Enum,),
            serializer=_serialize_enum,
            parser=_parse_int,
            reader=lambda cursor, column: int(cursor.get(column)),
            writer=_write_enum,
            comparator=lambda a, b: _numbers_equal(_ordinal(a), _ordinal(b)),
        ),
        LogicalType(
            "TINYINT",
            SQLTypeCode.TINYINT,
            parser=_parse_int,
            reader=lambda cursor, column: int(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "LONG",
            SQLTypeCode.BIGINT,
            parser=_parse_int,
            reader=lambda cursor, column: int(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "DOUBLE",
            SQLTypeCode.DOUBLE,
            value_types=(float,),
            parser=_parse_float,
            reader=lambda cursor, column: float(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "FLOAT",
            SQLTypeCode.FLOAT,
            parser=_parse_float,
            reader=lambda cursor, column: float(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "REAL",
            SQLTypeCode.REAL,
            parser=_parse_float,
            reader=lambda cursor, column: float(cursor.get(column)),
            comparator=_numbers_equal,
        ),
        LogicalType(
            "BOOLEAN",
            SQLTypeCode.BOOLEAN,
            value_types=(bool,),
            serializer=_serialize_bool,
            parser=_parse_bool,
            reader=_read_bool,
            writer=lambda statement, index, value: statement.set(index, bool(value)),
            comparator=_bools_equal,
        ),
        LogicalType(
            "CHAR",
            SQLTypeCode.CHAR,
            parser=_parse_char,
            reader=lambda cursor, column: str(cursor.get(column))[:1],
        ),
        LogicalType(
            "VARCHAR",
            SQLTypeCode.VARCHAR,
            default_precision=45,
            value_types=(str,),
            reader=lambda cursor, column: str(cursor.get(column)),
        ),
        LogicalType(
            "CLOB",
            SQLTypeCode.CLOB,
            reader=lambda cursor, column: str(cursor.get(column)),
        ),
        LogicalType(
            "TIMESTAMP",
            SQLTypeCode.TIMESTAMP,
            value_types=(datetime,),
            serializer=lambda value: value.strftime(_TIMESTAMP_FORMAT),
            parser=_parse_timestamp,
            reader=_read_timestamp,
        ),
        LogicalType(
            "DATE",
            SQLTypeCode.DATE,
            value_types=(date,),
            serializer=lambda value: value.strftime(_DATE_FORMAT),
            parser=_parse_date,
            reader=_read_date,
        ),
        LogicalType(
            "TIME",
            SQLTypeCode.TIME,
            value_types=(time,),
            serializer=lambda value: value.strftime(_TIME_FORMAT),
            parser=_parse_time,
            reader=_read_time,
        ),
        LogicalType(
            "BLOB",
            SQLTypeCode.BLOB,
            value_types=(bytes, bytearray, memoryview),
            serializer=_serialize_blob,
            parser=_parse_blob,
            reader=lambda cursor, column: bytes(cursor.get(column)),
            writer=lambda statement, index, value: statement.set(index, bytes(value)),
        ),
        LogicalType(
            "ENTITY_REFERENCE",
            SQLTypeCode.INTEGER,
            value_types=(EntityReference,),
            serializer=_serialize_entity,
            parser=_parse_int,
            writer=_write_entity,
            comparator=_numbers_equal,
        ),
    ]
