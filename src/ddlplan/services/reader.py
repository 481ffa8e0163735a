"""Schema reader building a current-state snapshot from a live catalog."""

import re
from typing import Any, Callable, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from ddlplan.errors import SchemaIntrospectionError
from ddlplan.models.catalog import ImportedKey
from ddlplan.models.enums import DatabaseFunction
from ddlplan.models.schema import ForeignKey, Index, Table, TableField, index_name
from ddlplan.services.catalog import CatalogSource, SqlAlchemyCatalog
from ddlplan.types.logical import LogicalType
from ddlplan.types.registry import TypeRegistry

T = TypeVar("T")

# 'text' optionally followed by a PostgreSQL cast such as ::character varying
_QUOTED_LITERAL = re.compile(r"^'(?P<body>(?:[^']|'')*)'(?:::[\w\s\".]+)?$", re.DOTALL)


def parse_default_expression(text: str | None, logical_type: LogicalType) -> Any:
    """Turn a catalog default expression into a value of ``logical_type``.

    Handles the wrapping most catalogs add: surrounding parentheses,
    single quotes with doubled-quote escapes and PostgreSQL casts. ``NULL``
    yields None and known database functions yield ``DatabaseFunction``.

    Raises:
        ValueError: If the literal is not valid for the type.
    """
    if text is None:
        return None
    expression = text.strip()
    while expression.startswith("(") and expression.endswith(")"):
        expression = expression[1:-1].strip()
    if not expression or expression.upper() == "NULL":
        return None

    function = DatabaseFunction.lookup(expression)
    if function is not None:
        return function

    match = _QUOTED_LITERAL.match(expression)
    if match is not None:
        expression = match.group("body").replace("''", "'")
    return logical_type.parse_from_string(expression)


class SchemaReader:
    """Reads the current schema through a CatalogSource.

    Any failure while querying the catalog, and any metadata that does not
    line up (a default or key naming an unknown column, an unparseable
    default), aborts the read with ``SchemaIntrospectionError``. A partial
    snapshot is never returned.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._registry = registry
        self._logger = logger or structlog.get_logger(__name__)

    def read(self, catalog: CatalogSource) -> tuple[Table, ...]:
        self._logger.debug("schema_read_started")
        names = self._query(lambda: catalog.table_names(), "list tables")
        primary_keys: dict[str, list[str]] = {}

        def primary_key_columns(table_name: str) -> list[str]:
            if table_name not in primary_keys:
                primary_keys[table_name] = self._query(
                    lambda: catalog.primary_key_columns(table_name),
                    "read primary keys",
                    table_name,
                )
            return primary_keys[table_name]

        tables = tuple(self._read_table(catalog, name, primary_key_columns) for name in names)
        self._logger.info("schema_read", table_count=len(tables))
        return tables

    def _read_table(
        self,
        catalog: CatalogSource,
        table_name: str,
        primary_key_columns: Callable[[str], list[str]],
    ) -> Table:
        probes = self._query(lambda: catalog.probe_columns(table_name), "probe columns", table_name)

        fields: dict[str, dict[str, Any]] = {}
        for probe in probes:
            fields[probe.name] = {
                "name": probe.name,
                "logical_type": self._registry.for_code(probe.sql_type),
                "precision": max(probe.precision, 0),
                "scale": max(probe.scale, 0),
                "auto_increment": probe.auto_increment,
                "not_null": probe.nullable is False,
            }

        for column in self._query(lambda: catalog.column_defaults(table_name), "read column defaults", table_name):
            attributes = self._field(fields, table_name, column.name, "column metadata")
            if column.nullable is not None:
                attributes["not_null"] = not column.nullable
            if attributes["auto_increment"]:
                continue
            try:
                attributes["default_value"] = parse_default_expression(column.default, attributes["logical_type"])
            except ValueError as exc:
                raise SchemaIntrospectionError(
                    f"cannot parse default {column.default!r} as {attributes['logical_type'].name}",
                    table=table_name,
                    field=column.name,
                ) from exc

        for name in primary_key_columns(table_name):
            attributes = self._field(fields, table_name, name, "primary key metadata")
            attributes["primary_key"] = True
            attributes["not_null"] = True

        for name in self._query(lambda: catalog.unique_columns(table_name), "read unique constraints", table_name):
            self._field(fields, table_name, name, "unique constraint metadata")["unique"] = True

        imported = self._query(lambda: catalog.imported_keys(table_name), "read imported keys", table_name)
        foreign_keys = tuple(self._foreign_key(table_name, key, fields, primary_key_columns) for key in imported)

        indexes = []
        for info in self._query(lambda: catalog.indexes(table_name), "read indexes", table_name):
            if len(info.columns) != 1 or info.columns[0] not in fields:
                continue
            column = info.columns[0]
            # only indexes following the derived naming convention are managed
            if info.name.lower() != index_name(table_name, column):
                continue
            indexes.append(Index(table=table_name, field=column, logical_type=fields[column]["logical_type"]))

        table = Table(
            name=table_name,
            fields=tuple(TableField(**attributes) for attributes in fields.values()),
            foreign_keys=foreign_keys,
            indexes=tuple(indexes),
        )
        self._logger.debug(
            "table_read",
            table=table_name,
            field_count=len(table.fields),
            foreign_key_count=len(foreign_keys),
            index_count=len(indexes),
        )
        return table

    def _foreign_key(
        self,
        table_name: str,
        key: ImportedKey,
        fields: dict[str, dict[str, Any]],
        primary_key_columns: Callable[[str], list[str]],
    ) -> ForeignKey:
        self._field(fields, table_name, key.field, "imported key metadata")
        foreign_field = key.foreign_field
        if not foreign_field:
            # catalog omitted the referenced column: assume the referenced primary key
            candidates = primary_key_columns(key.foreign_table)
            if len(candidates) != 1:
                raise SchemaIntrospectionError(
                    f"cannot determine referenced column in '{key.foreign_table}'",
                    table=table_name,
                    field=key.field,
                )
            foreign_field = candidates[0]
            self._logger.warning(
                "foreign_key_target_assumed",
                table=table_name,
                field=key.field,
                foreign_table=key.foreign_table,
                foreign_field=foreign_field,
            )
        return ForeignKey(
            domestic_table=table_name,
            field=key.field,
            foreign_table=key.foreign_table,
            foreign_field=foreign_field,
        )

    def _field(self, fields: dict[str, dict[str, Any]], table_name: str, name: str, source: str) -> dict[str, Any]:
        try:
            return fields[name]
        except KeyError:
            raise SchemaIntrospectionError(
                f"{source} names a column missing from the probe result",
                table=table_name,
                field=name,
            ) from None

    def _query(self, call: Callable[[], T], what: str, table_name: str | None = None) -> T:
        try:
            return call()
        except SchemaIntrospectionError:
            raise
        except Exception as exc:
            self._logger.error("catalog_query_failed", operation=what, table=table_name, error=str(exc))
            raise SchemaIntrospectionError(f"failed to {what}: {exc}", table=table_name) from exc


async def read_schema_async(
    engine: AsyncEngine,
    reader: SchemaReader,
    schema: str | None = None,
) -> tuple[Table, ...]:
    """Read the schema of an async engine over a single connection."""
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: reader.read(SqlAlchemyCatalog(sync_conn, schema=schema)))
