"""Tests for the SchemaGenerator service."""

import enum
from datetime import date

import pytest

from ddlplan.errors import SchemaGenerationError
from ddlplan.models.descriptor import EntityDescriptor, FieldDescriptor, RelationDescriptor
from ddlplan.models.enums import DatabaseFunction, RelationKind
from ddlplan.models.schema import ForeignKey, Index
from ddlplan.services.generator import SchemaGenerator
from ddlplan.services.naming import CamelCaseNaming, UnderscoreNaming
from ddlplan.types.registry import TypeRegistry


def _make_company(*relations: RelationDescriptor) -> EntityDescriptor:
    """Create the Company entity used across tests."""
    return EntityDescriptor(
        name="Company",
        fields=(
            FieldDescriptor(name="companyID", logical_type="INTEGER", primary_key=True, auto_increment=True),
            FieldDescriptor(name="name", value_type=str),
            FieldDescriptor(name="cool", value_type=bool, default="true"),
            FieldDescriptor(name="motivation", logical_type="VARCHAR", precision=255),
        ),
        relations=relations,
    )


def _make_person(with_company: bool = True) -> EntityDescriptor:
    """Create the Person entity, optionally referencing Company."""
    fields = [
        FieldDescriptor(name="id", logical_type="INTEGER", primary_key=True, auto_increment=True),
        FieldDescriptor(name="firstName", value_type=str),
        FieldDescriptor(name="lastName", value_type=str),
    ]
    if with_company:
        fields.append(FieldDescriptor(name="company", references="Company"))
    return EntityDescriptor(name="Person", fields=tuple(fields))


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry.with_builtins()


@pytest.fixture
def generator(registry: TypeRegistry) -> SchemaGenerator:
    return SchemaGenerator(registry=registry, naming=CamelCaseNaming())


class TestGenerateTables:
    """Tests for plain table compilation."""

    def test_company_and_person(self, generator: SchemaGenerator, registry: TypeRegistry) -> None:
        company, person = generator.generate([_make_company(), _make_person()])

        assert company.name == "company"
        assert [f.name for f in company.fields] == ["companyID", "name", "cool", "motivation"]
        assert person.name == "person"
        assert [f.name for f in person.fields] == ["id", "firstName", "lastName", "companyID"]

        company_id = person.get_field("companyID")
        assert company_id is not None
        assert company_id.logical_type is registry.get("INTEGER")
        assert person.foreign_keys == (
            ForeignKey(domestic_table="person", field="companyID", foreign_table="company", foreign_field="companyID"),
        )
        assert person.indexes == (Index(table="person", field="companyID"),)
        assert person.indexes[0].name == "index_person_companyid"
        assert company.foreign_keys == ()
        assert company.indexes == ()

    def test_types_precision_and_defaults(self, generator: SchemaGenerator) -> None:
        (company,) = generator.generate([_make_company()])

        name = company.get_field("name")
        cool = company.get_field("cool")
        motivation = company.get_field("motivation")
        assert name is not None and cool is not None and motivation is not None
        assert name.logical_type.name == "VARCHAR"
        assert name.precision == 45
        assert motivation.precision == 255
        assert cool.logical_type.name == "BOOLEAN"
        assert cool.default_value is True

    def test_primary_keys_are_not_null_and_first(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(
            name="Tag",
            fields=(
                FieldDescriptor(name="label", value_type=str),
                FieldDescriptor(name="tagID", logical_type="INTEGER", primary_key=True),
            ),
        )

        (tag,) = generator.generate([entity])

        assert tag.fields[0].name == "tagID"
        assert tag.fields[0].not_null

    def test_database_functions_and_null_defaults(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(
            name="Event",
            fields=(
                FieldDescriptor(name="id", logical_type="INTEGER", primary_key=True, default="5", auto_increment=True),
                FieldDescriptor(name="created", logical_type="TIMESTAMP", default="current_timestamp"),
                FieldDescriptor(name="day", value_type=date, default="CURRENT_DATE", on_update="2024-01-02"),
                FieldDescriptor(name="note", value_type=str, default="NULL"),
            ),
        )

        (event,) = generator.generate([entity])

        assert event.fields[0].default_value is None
        assert event.fields[1].default_value is DatabaseFunction.CURRENT_TIMESTAMP
        assert event.fields[2].default_value is DatabaseFunction.CURRENT_DATE
        assert event.fields[2].on_update == date(2024, 1, 2)
        assert event.fields[3].default_value is None

    def test_indexed_fields(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(
            name="Person",
            fields=(
                FieldDescriptor(name="id", logical_type="INTEGER", primary_key=True),
                FieldDescriptor(name="Age", logical_type="INTEGER", indexed=True),
            ),
        )

        (person,) = generator.generate([entity])

        assert [index.name for index in person.indexes] == ["index_person_age"]

    def test_underscore_naming(self, registry: TypeRegistry) -> None:
        generator = SchemaGenerator(registry=registry, naming=UnderscoreNaming())

        company, person = generator.generate([_make_company(), _make_person()])

        assert person.get_field("first_name") is not None
        assert person.foreign_keys[0].field == "company_id"
        assert person.foreign_keys[0].foreign_field == "company_id"

    def test_output_is_deterministic(self, generator: SchemaGenerator) -> None:
        descriptors = [
            _make_company(RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Person")),
            _make_person(),
        ]

        first = [table.model_dump(mode="json") for table in generator.generate(descriptors)]
        second = [table.model_dump(mode="json") for table in generator.generate(descriptors)]

        assert first == second


class TestRelations:
    """Tests for implicit fields and join tables."""

    def test_one_to_many_adds_reference_to_target(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.ONE_TO_MANY, target="Person"))

        _, person = generator.generate([company, _make_person(with_company=False)])

        assert person.fields[-1].name == "companyID"
        assert person.foreign_keys[0].foreign_table == "company"
        assert person.indexes == (Index(table="person", field="companyID"),)

    def test_one_to_many_reuses_declared_reference(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.ONE_TO_MANY, target="Person"))

        _, person = generator.generate([company, _make_person()])

        assert len(person.foreign_keys) == 1
        assert len(person.fields) == 4

    def test_one_to_many_conflicting_field_raises(self, generator: SchemaGenerator) -> None:
        company = _make_company(
            RelationDescriptor(kind=RelationKind.ONE_TO_MANY, target="Person", field="firstName")
        )

        with pytest.raises(SchemaGenerationError, match="does not reference"):
            generator.generate([company, _make_person()])

    def test_many_to_many_materializes_join_table(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Person"))

        tables = generator.generate([company, _make_person(with_company=False)])

        assert [table.name for table in tables] == ["company", "person", "companyPerson"]
        join = tables[2]
        assert [f.name for f in join.fields] == ["companyID", "personID"]
        assert all(f.not_null and not f.primary_key for f in join.fields)
        assert [key.foreign_table for key in join.foreign_keys] == ["company", "person"]
        assert [index.name for index in join.indexes] == [
            "index_companyperson_companyid",
            "index_companyperson_personid",
        ]

    def test_many_to_many_declared_on_both_sides_yields_one_table(self, generator: SchemaGenerator) -> None:
        company = _make_company(
            RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Person", through="Employment")
        )
        person = _make_person(with_company=False).model_copy(
            update={
                "relations": (
                    RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Company", through="Employment"),
                )
            }
        )

        tables = generator.generate([company, person])

        assert [table.name for table in tables] == ["company", "person", "employment"]

    def test_relation_to_unknown_entity_raises(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.ONE_TO_MANY, target="Nobody"))

        with pytest.raises(SchemaGenerationError, match="not a known entity"):
            generator.generate([company])

    def test_join_table_clashing_with_entity_raises(self, generator: SchemaGenerator) -> None:
        company = _make_company(
            RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Person", through="Person")
        )

        with pytest.raises(SchemaGenerationError, match="clashes"):
            generator.generate([company, _make_person(with_company=False)])


def _make_distribution() -> EntityDescriptor:
    """Create a polymorphic supertype with a single key."""
    return EntityDescriptor(
        name="Distribution",
        polymorphic=True,
        fields=(FieldDescriptor(name="id", logical_type="INTEGER", primary_key=True, auto_increment=True),),
    )


class TestPolymorphicReferences:
    """Tests for references to polymorphic entities."""

    def test_polymorphic_entity_has_no_table(self, generator: SchemaGenerator) -> None:
        tables = generator.generate([_make_distribution(), _make_company()])

        assert [table.name for table in tables] == ["company"]

    def test_reference_gets_type_column_and_no_key(self, generator: SchemaGenerator, registry: TypeRegistry) -> None:
        post = EntityDescriptor(
            name="Post",
            fields=(
                FieldDescriptor(name="id", logical_type="INTEGER", primary_key=True),
                FieldDescriptor(name="distribution", references="Distribution", not_null=True, default="3"),
                FieldDescriptor(name="title", value_type=str),
            ),
        )

        (table,) = generator.generate([_make_distribution(), post])

        assert [f.name for f in table.fields] == ["id", "distributionID", "distributionType", "title"]
        reference = table.get_field("distributionID")
        type_column = table.get_field("distributionType")
        assert reference is not None and type_column is not None
        assert reference.logical_type is registry.get("INTEGER")
        assert reference.default_value is None
        assert type_column.logical_type is registry.get("VARCHAR")
        assert type_column.precision == 127
        assert type_column.not_null is True
        assert table.foreign_keys == ()
        assert table.indexes == (Index(table="post", field="distributionID"),)

    def test_many_to_many_with_polymorphic_side(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.MANY_TO_MANY, target="Distribution"))

        _, join = generator.generate([company, _make_distribution()])

        assert join.name == "companyDistribution"
        assert [f.name for f in join.fields] == ["companyID", "distributionID", "distributionType"]
        assert [key.foreign_table for key in join.foreign_keys] == ["company"]

    def test_one_to_many_into_polymorphic_entity_raises(self, generator: SchemaGenerator) -> None:
        company = _make_company(RelationDescriptor(kind=RelationKind.ONE_TO_MANY, target="Distribution"))

        with pytest.raises(SchemaGenerationError, match="polymorphic"):
            generator.generate([company, _make_distribution()])

    def test_polymorphic_entities_may_share_a_table_name(self, generator: SchemaGenerator) -> None:
        shadow = _make_distribution().model_copy(update={"name": "Channel", "table_name": "distribution"})

        assert generator.generate([_make_distribution(), shadow]) == ()


class TestEnumFields:
    """Tests for enum-typed fields."""

    def test_enum_field_is_stored_as_integer(self, generator: SchemaGenerator, registry: TypeRegistry) -> None:
        class Status(enum.Enum):
            DRAFT = "draft"
            PUBLISHED = "published"

        entity = EntityDescriptor(
            name="Post",
            fields=(FieldDescriptor(name="status", value_type=Status, default="1"),),
        )

        (table,) = generator.generate([entity])

        status = table.get_field("status")
        assert status is not None
        assert status.logical_type is registry.get("INTEGER")
        assert status.default_value == 1


class TestGenerationErrors:
    """Tests for invalid descriptors."""

    def test_duplicate_entities(self, generator: SchemaGenerator) -> None:
        with pytest.raises(SchemaGenerationError, match="duplicate entity"):
            generator.generate([_make_company(), _make_company()])

    def test_duplicate_column_names(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(
            name="Person",
            fields=(
                FieldDescriptor(name="Name", value_type=str),
                FieldDescriptor(name="name", value_type=str),
            ),
        )

        with pytest.raises(SchemaGenerationError) as excinfo:
            generator.generate([entity])

        assert excinfo.value.table == "person"
        assert excinfo.value.field == "name"

    def test_tables_with_same_name(self, generator: SchemaGenerator) -> None:
        first = EntityDescriptor(name="Person", fields=(FieldDescriptor(name="id", logical_type="INTEGER"),))
        second = EntityDescriptor(
            name="People", table_name="person", fields=(FieldDescriptor(name="id", logical_type="INTEGER"),)
        )

        with pytest.raises(SchemaGenerationError, match="same table"):
            generator.generate([first, second])

    def test_unknown_logical_type(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(name="Shape", fields=(FieldDescriptor(name="area", logical_type="GEOMETRY"),))

        with pytest.raises(SchemaGenerationError, match="unknown logical type"):
            generator.generate([entity])

    def test_unhandled_value_type(self, generator: SchemaGenerator) -> None:
        class Opaque:
            pass

        entity = EntityDescriptor(name="Shape", fields=(FieldDescriptor(name="area", value_type=Opaque),))

        with pytest.raises(SchemaGenerationError, match="no logical type handles"):
            generator.generate([entity])

    def test_untyped_field(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(name="Shape", fields=(FieldDescriptor(name="area"),))

        with pytest.raises(SchemaGenerationError, match="neither"):
            generator.generate([entity])

    def test_reference_to_entity_without_single_primary_key(self, generator: SchemaGenerator) -> None:
        company = EntityDescriptor(name="Company", fields=(FieldDescriptor(name="name", value_type=str),))

        with pytest.raises(SchemaGenerationError, match="exactly one primary key"):
            generator.generate([company, _make_person()])

    def test_invalid_default_literal(self, generator: SchemaGenerator) -> None:
        entity = EntityDescriptor(
            name="Counter", fields=(FieldDescriptor(name="value", logical_type="INTEGER", default="lots"),)
        )

        with pytest.raises(SchemaGenerationError, match="invalid INTEGER literal"):
            generator.generate([entity])
