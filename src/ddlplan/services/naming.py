"""Naming strategies mapping descriptors to table and column names.

The generator only depends on the ``NamingStrategy`` protocol; the two
strategies here cover the common conventions. Both honour explicit
``table_name`` / ``column_name`` overrides on descriptors.
"""

import re
from typing import Protocol

from ddlplan.models.descriptor import EntityDescriptor, FieldDescriptor

_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


class NamingStrategy(Protocol):
    def table_name(self, entity: EntityDescriptor) -> str: ...

    def field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str: ...

    def type_field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str:
        """Name of the column holding the concrete entity of a polymorphic reference."""
        ...


def downcase_first(name: str) -> str:
    """Lower the first letter: ``Person`` -> ``person``, ``URL`` -> ``url``."""
    if not name:
        return name
    if name.isupper():
        return name.lower()
    return name[0].lower() + name[1:]


class CamelCaseNaming:
    """``PersonSuit`` -> ``personSuit``; reference fields get an ``ID`` suffix."""

    def table_name(self, entity: EntityDescriptor) -> str:
        if entity.table_name:
            return entity.table_name
        return downcase_first(entity.name)

    def field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str:
        if field.column_name:
            return field.column_name
        name = downcase_first(field.name)
        if field.is_reference:
            name += "ID"
        return name

    def type_field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str:
        return downcase_first(field.name) + "Type"


class UnderscoreNaming:
    """``PersonSuit`` -> ``person_suit``; reference fields get an ``_id`` suffix."""

    def __init__(self, uppercase: bool = False) -> None:
        self._uppercase = uppercase

    def _convert(self, name: str) -> str:
        converted = _WORD_BOUNDARY.sub(r"\1_\2", name)
        return converted.upper() if self._uppercase else converted.lower()

    def table_name(self, entity: EntityDescriptor) -> str:
        if entity.table_name:
            return entity.table_name
        return self._convert(entity.name)

    def field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str:
        if field.column_name:
            return field.column_name
        name = field.name
        if field.is_reference:
            name += "_id"
        return self._convert(name)

    def type_field_name(self, entity: EntityDescriptor, field: FieldDescriptor) -> str:
        return self._convert(field.name + "_type")
