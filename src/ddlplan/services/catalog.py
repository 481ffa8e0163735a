"""Catalog sources: the live database's introspection API.

The reader depends only on the ``CatalogSource`` protocol. ``SqlAlchemyCatalog``
implements it over a single SQLAlchemy connection, combining the Inspector
(catalog metadata) with a one-row probe query (result metadata).
"""

from typing import Any, Protocol

import structlog
from sqlalchemy import inspect, literal_column, select, table
from sqlalchemy.engine import Connection
from sqlalchemy.types import (
    BINARY,
    CHAR,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Double,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    REAL,
    SmallInteger,
    String,
    Text,
    Time,
    TypeEngine,
    VARBINARY,
)

from ddlplan.models.catalog import ColumnDefault, ColumnProbe, ImportedKey, IndexInfo
from ddlplan.types.codes import SQLTypeCode


class CatalogSource(Protocol):
    def table_names(self) -> list[str]: ...

    def probe_columns(self, table_name: str) -> list[ColumnProbe]: ...

    def column_defaults(self, table_name: str) -> list[ColumnDefault]: ...

    def primary_key_columns(self, table_name: str) -> list[str]: ...

    def unique_columns(self, table_name: str) -> list[str]: ...

    def imported_keys(self, table_name: str) -> list[ImportedKey]: ...

    def indexes(self, table_name: str) -> list[IndexInfo]: ...


# More specific SQLAlchemy types must come before their bases.
_TYPE_CODES: list[tuple[type[TypeEngine[Any]], SQLTypeCode]] = [
    (Boolean, SQLTypeCode.BOOLEAN),
    (BigInteger, SQLTypeCode.BIGINT),
    (SmallInteger, SQLTypeCode.SMALLINT),
    (Integer, SQLTypeCode.INTEGER),
    (Double, SQLTypeCode.DOUBLE),
    (REAL, SQLTypeCode.REAL),
    (Float, SQLTypeCode.FLOAT),
    (Numeric, SQLTypeCode.NUMERIC),
    (DateTime, SQLTypeCode.TIMESTAMP),
    (Date, SQLTypeCode.DATE),
    (Time, SQLTypeCode.TIME),
    (Text, SQLTypeCode.CLOB),
    (CHAR, SQLTypeCode.CHAR),
    (String, SQLTypeCode.VARCHAR),
    (LargeBinary, SQLTypeCode.BLOB),
    (VARBINARY, SQLTypeCode.VARBINARY),
    (BINARY, SQLTypeCode.BINARY),
]


def sql_type_code(column_type: TypeEngine[Any]) -> int:
    """Translate a reflected SQLAlchemy type into a native SQL type code."""
    for type_class, code in _TYPE_CODES:
        if isinstance(column_type, type_class):
            return int(code)
    return int(SQLTypeCode.OTHER)


def _type_precision(column_type: TypeEngine[Any]) -> tuple[int, int]:
    length = getattr(column_type, "length", None)
    if isinstance(length, int):
        return length, 0
    if isinstance(column_type, Numeric) and not isinstance(column_type, Float):
        return column_type.precision or 0, column_type.scale or 0
    return 0, 0


class SqlAlchemyCatalog:
    """CatalogSource over one SQLAlchemy connection.

    All reads share the connection, so they see a single session's view of
    the catalog. The Inspector caches reflection results; create a new
    catalog for every read of the schema.
    """

    def __init__(
        self,
        connection: Connection,
        schema: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._connection = connection
        self._schema = schema
        self._inspector = inspect(connection)
        self._logger = logger or structlog.get_logger(__name__)

    def table_names(self) -> list[str]:
        return list(self._inspector.get_table_names(schema=self._schema))

    def probe_columns(self, table_name: str) -> list[ColumnProbe]:
        """Run ``SELECT * FROM <table> LIMIT 1`` and describe its result columns.

        Names, order, precision, scale and nullability come from the result
        metadata where the driver reports them; the reflected column type
        fills in the type code and any precision the driver leaves out.
        """
        reflected = {column["name"]: column for column in self._inspector.get_columns(table_name, schema=self._schema)}
        statement = select(literal_column("*")).select_from(table(table_name, schema=self._schema)).limit(1)

        result = self._connection.execute(statement)
        try:
            names = list(result.keys())
            cursor = getattr(result, "cursor", None)
            description = list(cursor.description or ()) if cursor is not None else []
        finally:
            result.close()

        probes = []
        for position, name in enumerate(names):
            column = reflected.get(name, {})
            column_type = column.get("type")
            sql_type = sql_type_code(column_type) if column_type is not None else int(SQLTypeCode.OTHER)
            precision, scale = _type_precision(column_type) if column_type is not None else (0, 0)

            nullable = column.get("nullable")
            if position < len(description):
                entry = description[position]
                if len(entry) > 4 and entry[4]:
                    precision = int(entry[4])
                if len(entry) > 5 and entry[5]:
                    scale = int(entry[5])
                if len(entry) > 6 and entry[6] is not None:
                    nullable = bool(entry[6])

            probes.append(
                ColumnProbe(
                    name=name,
                    sql_type=sql_type,
                    precision=precision,
                    scale=scale,
                    auto_increment=column.get("autoincrement") is True,
                    nullable=nullable,
                )
            )
        self._logger.debug("table_probed", table=table_name, column_count=len(probes))
        return probes

    def column_defaults(self, table_name: str) -> list[ColumnDefault]:
        return [
            ColumnDefault(
                name=column["name"],
                default=None if column.get("default") is None else str(column["default"]),
                nullable=column.get("nullable"),
            )
            for column in self._inspector.get_columns(table_name, schema=self._schema)
        ]

    def primary_key_columns(self, table_name: str) -> list[str]:
        constraint = self._inspector.get_pk_constraint(table_name, schema=self._schema)
        return list(constraint.get("constrained_columns") or [])

    def unique_columns(self, table_name: str) -> list[str]:
        columns: list[str] = []
        for constraint in self._inspector.get_unique_constraints(table_name, schema=self._schema):
            names = constraint.get("column_names") or []
            if len(names) == 1 and names[0] not in columns:
                columns.append(names[0])
        for index in self.indexes(table_name):
            if index.unique and len(index.columns) == 1 and index.columns[0] not in columns:
                columns.append(index.columns[0])
        return columns

    def imported_keys(self, table_name: str) -> list[ImportedKey]:
        keys = []
        for foreign_key in self._inspector.get_foreign_keys(table_name, schema=self._schema):
            constrained = foreign_key.get("constrained_columns") or []
            if len(constrained) != 1:
                self._logger.warning(
                    "composite_foreign_key_skipped",
                    table=table_name,
                    columns=list(constrained),
                )
                continue
            referred = [column for column in foreign_key.get("referred_columns") or [] if column]
            keys.append(
                ImportedKey(
                    field=constrained[0],
                    foreign_table=foreign_key["referred_table"],
                    foreign_field=referred[0] if referred else None,
                )
            )
        return keys

    def indexes(self, table_name: str) -> list[IndexInfo]:
        return [
            IndexInfo(
                name=index["name"],
                columns=tuple(column for column in index.get("column_names") or [] if column),
                unique=bool(index.get("unique")),
            )
            for index in self._inspector.get_indexes(table_name, schema=self._schema)
            if index.get("name")
        ]
