"""Declarative entity descriptors consumed by the schema generator.

Descriptors are plain data built ahead of time (by hand, from a JSON file, or
by whatever tooling owns the entity classes). The generator never inspects
live objects.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ddlplan.models.enums import RelationKind


def ensure_identifier(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    value = value.strip()
    if not value:
        raise ValueError(f"{field_name} cannot be empty")
    return value


class FieldDescriptor(BaseModel):
    """One persistent attribute of an entity.

    The column type comes from, in order: ``references`` (an entity name; the
    column takes the referenced primary key's type), ``logical_type`` (a
    registered type name), or ``value_type`` (a Python class resolved through
    the type registry).
    """

    name: str
    logical_type: str | None = None
    value_type: type | None = None
    references: str | None = None
    column_name: str | None = None
    precision: int | None = None
    scale: int | None = None
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    unique: bool = False
    indexed: bool = False
    default: str | None = None
    on_update: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def _ensure_name(cls, value: str, info: ValidationInfo) -> str:
        return ensure_identifier(value, info.field_name or "name")

    @property
    def is_reference(self) -> bool:
        return self.references is not None


class RelationDescriptor(BaseModel):
    """A relation declared on the owning ("one" or left-hand) entity.

    For ``ONE_TO_MANY`` the target is the "many" side; ``field`` names the
    implicit reference field added to the target (defaults to the owner's
    name with a lowered first letter). For ``MANY_TO_MANY`` a join table named
    ``through`` (default ``<Owner><Target>``) is materialized with a reference
    field for each side; ``field`` and ``target_field`` override their names.
    """

    kind: RelationKind
    target: str
    field: str | None = None
    target_field: str | None = None
    through: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("target")
    @classmethod
    def _ensure_target(cls, value: str) -> str:
        return ensure_identifier(value, "target")

    @model_validator(mode="after")
    def _validate_kind_options(self) -> "RelationDescriptor":
        if self.kind is RelationKind.ONE_TO_MANY and (self.through or self.target_field):
            raise ValueError("through and target_field only apply to many-to-many relations")
        return self


class EntityDescriptor(BaseModel):
    """A persistent entity.

    A ``polymorphic`` entity is an abstract supertype: it has no table of its
    own, and references to it carry the referenced key plus a type column
    naming the concrete entity instead of a foreign key.
    """

    name: str
    fields: tuple[FieldDescriptor, ...] = Field(default_factory=tuple)
    relations: tuple[RelationDescriptor, ...] = Field(default_factory=tuple)
    table_name: str | None = None
    polymorphic: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def _ensure_name(cls, value: Any) -> str:
        return ensure_identifier(value, "name")

    @property
    def primary_key_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(field for field in self.fields if field.primary_key)
