from datetime import datetime

import pytest
from pydantic import ValidationError

from ddlplan.models.enums import DatabaseFunction
from ddlplan.models.schema import ForeignKey, Index, Table, TableField, index_name
from ddlplan.types.registry import TypeRegistry

REGISTRY = TypeRegistry.with_builtins()
INTEGER = REGISTRY.get("INTEGER")
VARCHAR = REGISTRY.get("VARCHAR")
BOOLEAN = REGISTRY.get("BOOLEAN")
TIMESTAMP = REGISTRY.get("TIMESTAMP")


def test_index_name_is_derived_in_lowercase() -> None:
    assert index_name("Person", "Age") == "index_person_age"
    assert Index(table="Person", field="Age").name == "index_person_age"


def test_fields_with_same_name_and_type_are_equal_despite_attributes() -> None:
    loose = TableField(name="age", logical_type=INTEGER)
    strict = TableField(name="age", logical_type=INTEGER, not_null=True, precision=11)

    assert loose == strict
    assert hash(loose) == hash(strict)
    assert not loose.same_attributes(strict)


def test_field_identity_is_case_sensitive_and_type_aware() -> None:
    field = TableField(name="age", logical_type=INTEGER)

    assert field != TableField(name="Age", logical_type=INTEGER)
    assert field != TableField(name="age", logical_type=VARCHAR)


def test_effective_precision_falls_back_to_type_default() -> None:
    implicit = TableField(name="name", logical_type=VARCHAR)
    explicit = TableField(name="name", logical_type=VARCHAR, precision=45)

    assert implicit.effective_precision == 45
    assert implicit.same_attributes(explicit)


def test_same_attributes_ignores_auto_increment_and_compares_defaults_fuzzily() -> None:
    desired = TableField(name="cool", logical_type=BOOLEAN, default_value=True, auto_increment=True)
    live = TableField(name="cool", logical_type=BOOLEAN, default_value=1)

    assert desired.same_attributes(live)


def test_database_function_defaults_compare_by_identity() -> None:
    now = TableField(name="created", logical_type=TIMESTAMP, default_value=DatabaseFunction.CURRENT_TIMESTAMP)
    literal = TableField(name="created", logical_type=TIMESTAMP, default_value=datetime(2024, 1, 1))

    assert not now.same_attributes(literal)
    assert now.same_attributes(now.model_copy())


def test_field_serializes_type_name_and_default_string() -> None:
    field = TableField(name="created", logical_type=TIMESTAMP, default_value=datetime(2024, 1, 1, 9, 0, 0))
    dumped = field.model_dump(mode="json")

    assert dumped["logical_type"] == "TIMESTAMP"
    assert dumped["default_value"] == "2024-01-01 09:00:00"


def test_foreign_keys_use_full_tuple_equality() -> None:
    key = ForeignKey(domestic_table="person", field="companyID", foreign_table="company", foreign_field="companyID")

    assert key == key.model_copy()
    assert key != key.model_copy(update={"foreign_field": "id"})
    assert key.touches("company", "companyID")
    assert not key.touches("person", "id")


def test_indexes_compare_by_table_and_field() -> None:
    assert Index(table="person", field="age", logical_type=INTEGER) == Index(table="person", field="age")


def test_table_rejects_duplicate_field_names() -> None:
    with pytest.raises(ValidationError, match="duplicate field name"):
        Table(
            name="person",
            fields=(
                TableField(name="age", logical_type=INTEGER),
                TableField(name="age", logical_type=VARCHAR),
            ),
        )


def test_tables_compare_by_name() -> None:
    table = Table(name="person", fields=(TableField(name="id", logical_type=INTEGER, primary_key=True),))

    assert table == Table(name="person")
    assert table.get_field("id") is table.fields[0]
    assert table.get_field("missing") is None
    assert table.primary_key_fields == table.fields


def test_snapshot_models_are_immutable() -> None:
    table = Table(name="person")

    with pytest.raises(ValidationError):
        table.name = "people"
