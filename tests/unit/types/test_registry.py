"""Tests for the TypeRegistry."""

import enum
import numbers
from collections import OrderedDict
from datetime import date, datetime

import pytest

from ddlplan.errors import TypeResolutionError
from ddlplan.types.codes import SQLTypeCode
from ddlplan.types.logical import EntityReference, LogicalType
from ddlplan.types.registry import TypeRegistry


def _make_type(name: str, value_types: tuple[type, ...] = (), sql_type: int = SQLTypeCode.OTHER) -> LogicalType:
    """Create a custom logical type for testing."""
    return LogicalType(name, sql_type, value_types=value_types)


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry.with_builtins()


class TestResolveByName:
    """Tests for explicit logical type requests."""

    def test_resolves_builtin_case_insensitively(self, registry: TypeRegistry) -> None:
        assert registry.get("varchar") is registry.get("VARCHAR")

    def test_unknown_name_raises(self, registry: TypeRegistry) -> None:
        with pytest.raises(TypeResolutionError, match="unknown logical type"):
            registry.get("GEOMETRY")

    def test_accepts_registered_instance(self, registry: TypeRegistry) -> None:
        integer = registry.get("INTEGER")

        assert registry.get(integer) is integer

    def test_rejects_foreign_instance(self, registry: TypeRegistry) -> None:
        with pytest.raises(TypeResolutionError):
            registry.get(_make_type("INTEGER"))

    def test_duplicate_registration_raises(self, registry: TypeRegistry) -> None:
        with pytest.raises(ValueError, match="already registered"):
            registry.register(_make_type("Integer"))

    def test_resolution_error_is_lookup_error(self, registry: TypeRegistry) -> None:
        with pytest.raises(LookupError):
            registry.get("nope")


class TestResolveByCode:
    """Tests for native SQL type code lookups."""

    def test_integer_code_resolves_to_integer_not_entity_reference(self, registry: TypeRegistry) -> None:
        assert registry.for_code(SQLTypeCode.INTEGER).name == "INTEGER"

    def test_varchar_code(self, registry: TypeRegistry) -> None:
        varchar = registry.for_code(SQLTypeCode.VARCHAR)

        assert varchar.name == "VARCHAR"
        assert varchar.default_precision == 45

    def test_unknown_code_falls_back_to_cached_generic(self, registry: TypeRegistry) -> None:
        first = registry.for_code(SQLTypeCode.DECIMAL)
        second = registry.for_code(SQLTypeCode.DECIMAL)

        assert first is second
        assert first.name == "GENERIC(DECIMAL)"
        assert first not in registry

    def test_generic_parses_nothing(self, registry: TypeRegistry) -> None:
        assert registry.for_code(-999).parse_from_string("whatever") is None


class TestResolveByClass:
    """Tests for value-type lookups and specificity rules."""

    def test_exact_matches(self, registry: TypeRegistry) -> None:
        assert registry.for_class(int).name == "INTEGER"
        assert registry.for_class(str).name == "VARCHAR"
        assert registry.for_class(bytes).name == "BLOB"
        assert registry.for_class(EntityReference).name == "ENTITY_REFERENCE"

    def test_bool_prefers_boolean_over_integer(self, registry: TypeRegistry) -> None:
        assert registry.for_class(bool).name == "BOOLEAN"

    def test_datetime_prefers_timestamp_over_date(self, registry: TypeRegistry) -> None:
        assert registry.for_class(datetime).name == "TIMESTAMP"
        assert registry.for_class(date).name == "DATE"

    def test_subclass_resolves_to_nearest_base(self, registry: TypeRegistry) -> None:
        class Name(str):
            pass

        assert registry.for_class(Name).name == "VARCHAR"

    def test_more_specific_custom_type_wins(self, registry: TypeRegistry) -> None:
        class Email(str):
            pass

        class WorkEmail(Email):
            pass

        email = registry.register(_make_type("EMAIL", (Email,)))

        assert registry.for_class(WorkEmail) is email

    def test_tie_goes_to_latest_registration(self, registry: TypeRegistry) -> None:
        first = registry.register(_make_type("JSON_TEXT", (str,)))
        second = registry.register(_make_type("XML_TEXT", (str,)))

        assert registry.for_class(str) is second
        assert registry.for_class(str) is not first

    def test_abstract_base_registration(self) -> None:
        from collections.abc import Mapping

        registry = TypeRegistry()
        mapping = registry.register(_make_type("MAP", (Mapping,)))

        assert registry.for_class(OrderedDict) is mapping

    def test_narrower_abstract_base_beats_later_broader_one(self) -> None:
        registry = TypeRegistry()
        integral = registry.register(_make_type("INTEGRAL", (numbers.Integral,)))
        registry.register(_make_type("NUMBER", (numbers.Number,)))

        assert registry.for_class(int) is integral

    def test_narrower_abstract_base_wins_regardless_of_order(self) -> None:
        registry = TypeRegistry()
        registry.register(_make_type("NUMBER", (numbers.Number,)))
        integral = registry.register(_make_type("INTEGRAL", (numbers.Integral,)))

        assert registry.for_class(int) is integral

    def test_plain_enum_resolves_to_enum(self, registry: TypeRegistry) -> None:
        class Color(enum.Enum):
            RED = "red"
            GREEN = "green"

        assert registry.for_class(Color).name == "ENUM"

    def test_enum_with_data_mixin_resolves_to_mixin_type(self, registry: TypeRegistry) -> None:
        class Priority(enum.IntEnum):
            LOW = 1
            HIGH = 2

        class Shade(str, enum.Enum):
            DARK = "dark"

        assert registry.for_class(Priority).name == "INTEGER"
        assert registry.for_class(Shade).name == "VARCHAR"

    def test_unhandled_class_raises(self, registry: TypeRegistry) -> None:
        class Opaque:
            pass

        with pytest.raises(TypeResolutionError, match="Opaque"):
            registry.for_class(Opaque)

    def test_for_value_uses_runtime_type(self, registry: TypeRegistry) -> None:
        assert registry.for_value(3.5).name == "DOUBLE"
        assert registry.for_value(True).name == "BOOLEAN"


class TestRegistryContainer:
    """Tests for iteration and membership."""

    def test_builtins_are_in_registration_order(self, registry: TypeRegistry) -> None:
        names = [logical_type.name for logical_type in registry]

        assert names[0] == "INTEGER"
        assert names[-1] == "ENTITY_REFERENCE"
        assert len(registry) == len(names)

    def test_contains_by_name(self, registry: TypeRegistry) -> None:
        assert "boolean" in registry
        assert "GEOMETRY" not in registry
