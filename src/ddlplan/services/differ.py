"""Schema differ comparing current and desired snapshots."""

from typing import Sequence

import structlog

from ddlplan.models.action import Action
from ddlplan.models.enums import ActionKind
from ddlplan.models.schema import ForeignKey, Table


def _index_tables(tables: Sequence[Table], side: str) -> dict[str, Table]:
    indexed: dict[str, Table] = {}
    for table in tables:
        if table.name in indexed:
            raise ValueError(f"duplicate table name '{table.name}' in {side} snapshot")
        indexed[table.name] = table
    return indexed


class SchemaDiffer:
    """Produces the actions that turn ``current`` into ``desired``.

    The result is unordered in the sense that it is not yet safe to execute;
    it is emitted grouped by kind (key and index drops, column drops and
    changes, table drops, table creates, column adds, key adds, index
    creates) and within each group in snapshot order, so the sorter's stable
    ordering produces the same plan on every run.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def diff(self, current: Sequence[Table], desired: Sequence[Table]) -> list[Action]:
        """Compare two snapshots.

        Tables are matched by name and fields by name and logical type, so a
        column whose type changes is dropped and added again. Keys and
        indexes touching such a column are dropped and recreated with it,
        since dropping the column takes them along.

        Args:
            current: Snapshot read from the live database.
            desired: Snapshot compiled from the descriptors.

        Returns:
            The actions grouped by kind, each group in snapshot order.

        Raises:
            ValueError: If either snapshot names a table twice.
        """
        current_tables = _index_tables(current, "current")
        desired_tables = _index_tables(desired, "desired")

        drop_keys: list[Action] = []
        drop_indexes: list[Action] = []
        drop_columns: list[Action] = []
        change_columns: list[Action] = []
        drops: list[Action] = []
        creates: list[Action] = []
        add_columns: list[Action] = []
        add_keys: list[Action] = []
        create_indexes: list[Action] = []

        for table in desired:
            if table.name not in current_tables:
                creates.append(Action(kind=ActionKind.CREATE, table=table))

        for table in current:
            if table.name not in desired_tables:
                drops.append(Action(kind=ActionKind.DROP, table=table))

        kept = [(current_tables[table.name], table) for table in desired if table.name in current_tables]

        replaced: set[tuple[str, str]] = set()
        for live, table in kept:
            live_fields = set(live.fields)
            desired_fields = set(table.fields)
            for field in table.fields:
                if field not in live_fields:
                    add_columns.append(Action(kind=ActionKind.ALTER_ADD_COLUMN, table=table, field=field))
                    if live.get_field(field.name) is not None:
                        replaced.add((table.name, field.name))
                    continue
                old_field = next(f for f in live.fields if f == field)
                if not field.same_attributes(old_field):
                    change_columns.append(
                        Action(
                            kind=ActionKind.ALTER_CHANGE_COLUMN,
                            table=table,
                            field=field,
                            old_field=old_field,
                        )
                    )
            for field in live.fields:
                if field not in desired_fields:
                    drop_columns.append(Action(kind=ActionKind.ALTER_DROP_COLUMN, table=live, field=field))

        def rebuilt(key: ForeignKey) -> bool:
            return any(key.touches(table, column) for table, column in replaced)

        for live, table in kept:
            for key in table.foreign_keys:
                if key not in live.foreign_keys or rebuilt(key):
                    add_keys.append(Action(kind=ActionKind.ALTER_ADD_KEY, table=table, foreign_key=key))
            for key in live.foreign_keys:
                if key not in table.foreign_keys or rebuilt(key):
                    drop_keys.append(Action(kind=ActionKind.ALTER_DROP_KEY, table=live, foreign_key=key))

            for index in table.indexes:
                if index not in live.indexes or (index.table, index.field) in replaced:
                    create_indexes.append(Action(kind=ActionKind.CREATE_INDEX, table=table, index=index))
            for index in live.indexes:
                if index not in table.indexes or (index.table, index.field) in replaced:
                    drop_indexes.append(Action(kind=ActionKind.DROP_INDEX, table=live, index=index))

        actions = [
            *drop_keys,
            *drop_indexes,
            *drop_columns,
            *change_columns,
            *drops,
            *creates,
            *add_columns,
            *add_keys,
            *create_indexes,
        ]
        self._logger.info(
            "schema_diffed",
            action_count=len(actions),
            create_count=len(creates),
            drop_count=len(drops),
            replaced_column_count=len(replaced),
        )
        return actions
