"""Schema generator compiling entity descriptors into a desired snapshot."""

from typing import Any, Sequence

import structlog

from ddlplan.errors import SchemaGenerationError, TypeResolutionError
from ddlplan.models.descriptor import EntityDescriptor, FieldDescriptor
from ddlplan.models.enums import DatabaseFunction, RelationKind
from ddlplan.models.schema import ForeignKey, Index, Table, TableField
from ddlplan.services.naming import NamingStrategy, downcase_first
from ddlplan.types.logical import LogicalType
from ddlplan.types.registry import TypeRegistry

_ENTITY_REFERENCE = "ENTITY_REFERENCE"
_POLYMORPHIC_TYPE_LENGTH = 127


class SchemaGenerator:
    """Builds the desired-state snapshot from entity descriptors.

    Output is deterministic: tables follow descriptor order with implicit join
    tables appended in the order their relations are declared, and within a
    table primary-key fields come first followed by declared fields and then
    fields implied by one-to-many relations.

    Polymorphic entities produce no table. A reference to one is indexed but
    has no foreign key; it is followed by a VARCHAR(127) type column.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        naming: NamingStrategy,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._registry = registry
        self._naming = naming
        self._logger = logger or structlog.get_logger(__name__)

    def generate(self, descriptors: Sequence[EntityDescriptor]) -> tuple[Table, ...]:
        """Compile descriptors into tables.

        Args:
            descriptors: Entity descriptors; names must be unique.

        Returns:
            The desired snapshot, one Table per non-polymorphic entity plus
            join tables.

        Raises:
            SchemaGenerationError: On duplicate names, unknown relation
                targets, unresolvable types or invalid default values.
        """
        entities = self._index_entities(descriptors)
        expanded = self._expand_relations(descriptors, entities)
        by_name = {entity.name: entity for entity in expanded}

        table_names: dict[str, str] = {}
        claimed: dict[str, str] = {}
        for entity in expanded:
            table_name = self._naming.table_name(entity)
            table_names[entity.name] = table_name
            if entity.polymorphic:
                continue
            if table_name in claimed:
                raise SchemaGenerationError(
                    f"entities '{claimed[table_name]}' and '{entity.name}' map to the same table",
                    table=table_name,
                )
            claimed[table_name] = entity.name

        tables = tuple(
            self._build_table(entity, by_name, table_names) for entity in expanded if not entity.polymorphic
        )

        self._logger.info(
            "schema_generated",
            table_count=len(tables),
            join_table_count=len(expanded) - len(descriptors),
            polymorphic_count=sum(1 for entity in descriptors if entity.polymorphic),
        )
        return tables

    def _index_entities(self, descriptors: Sequence[EntityDescriptor]) -> dict[str, EntityDescriptor]:
        entities: dict[str, EntityDescriptor] = {}
        for entity in descriptors:
            if entity.name in entities:
                raise SchemaGenerationError(f"duplicate entity '{entity.name}'", table=entity.name)
            entities[entity.name] = entity
        return entities

    def _expand_relations(
        self,
        descriptors: Sequence[EntityDescriptor],
        entities: dict[str, EntityDescriptor],
    ) -> list[EntityDescriptor]:
        """Add implicit reference fields and join entities for relations."""
        implied: dict[str, list[FieldDescriptor]] = {name: [] for name in entities}
        joins: list[EntityDescriptor] = []
        join_pairs: dict[str, tuple[str, str]] = {}

        for entity in descriptors:
            for relation in entity.relations:
                if relation.target not in entities:
                    raise SchemaGenerationError(
                        f"relation target '{relation.target}' is not a known entity",
                        table=entity.name,
                    )

                if relation.kind is RelationKind.ONE_TO_MANY:
                    target = entities[relation.target]
                    if target.polymorphic:
                        raise SchemaGenerationError(
                            f"one-to-many target '{target.name}' is polymorphic and has no table",
                            table=entity.name,
                        )
                    name = relation.field or downcase_first(entity.name)
                    existing = next(
                        (f for f in (*target.fields, *implied[target.name]) if f.name == name),
                        None,
                    )
                    if existing is not None:
                        if existing.references == entity.name:
                            continue
                        raise SchemaGenerationError(
                            f"field '{name}' already exists and does not reference '{entity.name}'",
                            table=target.name,
                            field=name,
                        )
                    implied[target.name].append(FieldDescriptor(name=name, references=entity.name))
                    continue

                join_name = relation.through or f"{entity.name}{relation.target}"
                pair = (entity.name, relation.target)
                if join_name in join_pairs:
                    if sorted(join_pairs[join_name]) == sorted(pair):
                        continue
                    raise SchemaGenerationError(
                        f"join table '{join_name}' is declared by conflicting relations",
                        table=join_name,
                    )
                if join_name in entities:
                    raise SchemaGenerationError(
                        f"join table '{join_name}' clashes with an entity of the same name",
                        table=join_name,
                    )
                join_pairs[join_name] = pair
                joins.append(
                    EntityDescriptor(
                        name=join_name,
                        fields=(
                            FieldDescriptor(
                                name=relation.field or downcase_first(entity.name),
                                references=entity.name,
                                not_null=True,
                            ),
                            FieldDescriptor(
                                name=relation.target_field or downcase_first(relation.target),
                                references=relation.target,
                                not_null=True,
                            ),
                        ),
                    )
                )

        expanded = []
        for entity in descriptors:
            extra = implied[entity.name]
            if extra:
                entity = entity.model_copy(update={"fields": (*entity.fields, *extra)})
            expanded.append(entity)
        return expanded + joins

    def _build_table(
        self,
        entity: EntityDescriptor,
        entities: dict[str, EntityDescriptor],
        table_names: dict[str, str],
    ) -> Table:
        table_name = table_names[entity.name]
        primary: list[TableField] = []
        others: list[TableField] = []
        foreign_keys: list[ForeignKey] = []
        indexes: list[Index] = []
        seen: set[str] = set()

        for descriptor in entity.fields:
            column = self._naming.field_name(entity, descriptor)
            if column in seen:
                raise SchemaGenerationError("duplicate field name", table=table_name, field=column)
            seen.add(column)

            type_field: TableField | None = None
            polymorphic = False
            if descriptor.is_reference:
                target = self._reference_target(descriptor, entities, table_name, column)
                target_key = self._primary_key(target, table_name, column)
                logical_type, target_precision = self._plain_type(target, target_key, table_names[target.name])
                precision = descriptor.precision if descriptor.precision is not None else target_precision
                polymorphic = target.polymorphic
                if polymorphic:
                    type_field = self._type_field(entity, descriptor, table_name)
                    if type_field.name in seen:
                        raise SchemaGenerationError("duplicate field name", table=table_name, field=type_field.name)
                    seen.add(type_field.name)
                else:
                    foreign_keys.append(
                        ForeignKey(
                            domestic_table=table_name,
                            field=column,
                            foreign_table=table_names[target.name],
                            foreign_field=self._naming.field_name(target, target_key),
                        )
                    )
                indexed = True
            else:
                logical_type, precision = self._plain_type(entity, descriptor, table_name)
                indexed = descriptor.indexed

            # polymorphic references take no default or on-update value
            field = TableField(
                name=column,
                logical_type=logical_type,
                precision=precision,
                scale=descriptor.scale or 0,
                primary_key=descriptor.primary_key,
                auto_increment=descriptor.auto_increment,
                not_null=descriptor.not_null or descriptor.primary_key,
                unique=descriptor.unique,
                default_value=None
                if descriptor.auto_increment or polymorphic
                else self._convert_value(descriptor.default, logical_type, table_name, column),
                on_update=None
                if polymorphic
                else self._convert_value(descriptor.on_update, logical_type, table_name, column),
            )
            (primary if field.primary_key else others).append(field)
            if type_field is not None:
                others.append(type_field)

            if indexed:
                indexes.append(Index(table=table_name, field=column, logical_type=logical_type))

        self._logger.debug(
            "table_generated",
            table=table_name,
            field_count=len(seen),
            foreign_key_count=len(foreign_keys),
            index_count=len(indexes),
        )
        return Table(
            name=table_name,
            fields=(*primary, *others),
            foreign_keys=tuple(foreign_keys),
            indexes=tuple(indexes),
        )

    def _type_field(self, entity: EntityDescriptor, descriptor: FieldDescriptor, table_name: str) -> TableField:
        """Companion column naming the concrete entity behind a polymorphic reference."""
        name = self._naming.type_field_name(entity, descriptor)
        try:
            varchar = self._registry.get("VARCHAR")
        except TypeResolutionError as exc:
            raise SchemaGenerationError(exc.message, table=table_name, field=name) from exc
        return TableField(
            name=name,
            logical_type=varchar,
            precision=_POLYMORPHIC_TYPE_LENGTH,
            not_null=descriptor.not_null,
        )

    def _reference_target(
        self,
        descriptor: FieldDescriptor,
        entities: dict[str, EntityDescriptor],
        table_name: str,
        column: str,
    ) -> EntityDescriptor:
        target = entities.get(descriptor.references or "")
        if target is None:
            raise SchemaGenerationError(
                f"field references unknown entity '{descriptor.references}'",
                table=table_name,
                field=column,
            )
        return target

    def _primary_key(self, target: EntityDescriptor, table_name: str, column: str) -> FieldDescriptor:
        keys = target.primary_key_fields
        if len(keys) != 1:
            raise SchemaGenerationError(
                f"referenced entity '{target.name}' must declare exactly one primary key, found {len(keys)}",
                table=table_name,
                field=column,
            )
        if keys[0].is_reference:
            raise SchemaGenerationError(
                f"primary key of '{target.name}' cannot itself be a reference",
                table=table_name,
                field=column,
            )
        return keys[0]

    def _plain_type(
        self,
        entity: EntityDescriptor,
        descriptor: FieldDescriptor,
        table_name: str,
    ) -> tuple[LogicalType, int]:
        """Resolve a non-reference field's logical type and precision."""
        column = self._naming.field_name(entity, descriptor)
        try:
            if descriptor.logical_type is not None:
                logical_type = self._registry.get(descriptor.logical_type)
            elif descriptor.value_type is not None:
                logical_type = self._registry.for_class(descriptor.value_type)
            else:
                raise SchemaGenerationError(
                    "field declares neither a logical type, a value type nor a reference",
                    table=table_name,
                    field=column,
                )
        except TypeResolutionError as exc:
            raise SchemaGenerationError(exc.message, table=table_name, field=column) from exc

        if logical_type.name == _ENTITY_REFERENCE:
            raise SchemaGenerationError(
                "entity reference fields must name the referenced entity",
                table=table_name,
                field=column,
            )
        # a type sharing another's code (ENUM -> INTEGER) reads back as the first claimant
        canonical = self._registry.for_code(logical_type.sql_type)
        if canonical is not logical_type and canonical in self._registry:
            self._logger.debug(
                "logical_type_canonicalized",
                table=table_name,
                field=column,
                requested=logical_type.name,
                stored=canonical.name,
            )
            logical_type = canonical
        precision = descriptor.precision if descriptor.precision is not None else logical_type.default_precision
        return logical_type, precision

    def _convert_value(self, text: str | None, logical_type: LogicalType, table: str, column: str) -> Any:
        if text is None:
            return None
        stripped = text.strip()
        if stripped.upper() == "NULL":
            return None
        function = DatabaseFunction.lookup(stripped)
        if function is not None:
            return function
        try:
            return logical_type.parse_from_string(text)
        except ValueError as exc:
            raise SchemaGenerationError(
                f"invalid {logical_type.name} literal {text!r}",
                table=table,
                field=column,
            ) from exc
