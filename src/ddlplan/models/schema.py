"""Immutable value types describing a schema snapshot.

Equality on these models is deliberately narrower than field-by-field
comparison:

* ``TableField``: name (case-sensitive) and logical type identity. Precision,
  nullability, defaults and uniqueness are attributes the differ compares
  separately via ``same_attributes``.
* ``ForeignKey``: the full (domestic table, field, foreign table, foreign
  field) tuple.
* ``Index``: (table, field) only; the name is always derived.
* ``Table``: name only.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from ddlplan.models.enums import DatabaseFunction
from ddlplan.types.logical import LogicalType


def _defaults_equal(logical_type: LogicalType, a: Any, b: Any) -> bool:
    if isinstance(a, DatabaseFunction) or isinstance(b, DatabaseFunction):
        return a is b
    return logical_type.values_equal(a, b)


def index_name(table: str, field: str) -> str:
    return f"index_{table.lower()}_{field.lower()}"


class TableField(BaseModel):
    name: str
    logical_type: LogicalType
    precision: int = 0
    scale: int = 0
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    unique: bool = False
    default_value: Any = None
    on_update: Any = None

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @property
    def effective_precision(self) -> int:
        """Precision with ``<= 0`` replaced by the type's default precision."""
        if self.precision <= 0 and self.logical_type.default_precision > 0:
            return self.logical_type.default_precision
        return self.precision

    def same_attributes(self, other: "TableField") -> bool:
        """Compare the attributes that an in-place column change can alter."""
        return (
            self.effective_precision == other.effective_precision
            and self.scale == other.scale
            and self.not_null == other.not_null
            and self.unique == other.unique
            and _defaults_equal(self.logical_type, self.default_value, other.default_value)
            and _defaults_equal(self.logical_type, self.on_update, other.on_update)
        )

    @field_serializer("logical_type")
    def _serialize_type(self, value: LogicalType) -> str:
        return value.name

    @field_serializer("default_value", "on_update")
    def _serialize_value(self, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, DatabaseFunction):
            return value.value
        return self.logical_type.serialize_to_string(value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TableField):
            return NotImplemented
        return self.name == other.name and self.logical_type is other.logical_type

    def __hash__(self) -> int:
        return hash((self.name, id(self.logical_type)))


class ForeignKey(BaseModel):
    domestic_table: str
    field: str
    foreign_table: str
    foreign_field: str

    model_config = ConfigDict(frozen=True, extra="forbid")

    def touches(self, table: str, field: str) -> bool:
        """Whether either end of the key is the column ``table.field``."""
        return (self.domestic_table == table and self.field == field) or (
            self.foreign_table == table and self.foreign_field == field
        )


class Index(BaseModel):
    table: str
    field: str
    logical_type: LogicalType | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @property
    def name(self) -> str:
        return index_name(self.table, self.field)

    @field_serializer("logical_type")
    def _serialize_type(self, value: LogicalType | None) -> str | None:
        return value.name if value is not None else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self.table == other.table and self.field == other.field

    def __hash__(self) -> int:
        return hash((self.table, self.field))


class Table(BaseModel):
    name: str
    fields: tuple[TableField, ...] = Field(default_factory=tuple)
    foreign_keys: tuple[ForeignKey, ...] = Field(default_factory=tuple)
    indexes: tuple[Index, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def _validate_unique_field_names(self) -> "Table":
        seen: set[str] = set()
        for field in self.fields:
            if field.name in seen:
                raise ValueError(f"duplicate field name '{field.name}' in table '{self.name}'")
            seen.add(field.name)
        return self

    def get_field(self, name: str) -> TableField | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    @property
    def primary_key_fields(self) -> tuple[TableField, ...]:
        return tuple(field for field in self.fields if field.primary_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)
