"""Topological sorter ordering actions for sequential execution."""

import heapq
from collections import defaultdict
from typing import Sequence

import structlog

from ddlplan.models.action import Action
from ddlplan.models.enums import ActionKind
from ddlplan.models.schema import ForeignKey

_COLUMN_WRITES = frozenset({ActionKind.ALTER_ADD_COLUMN, ActionKind.ALTER_CHANGE_COLUMN})


def _strongly_connected(graph: dict[str, list[str]]) -> list[list[str]]:
    """Tarjan's algorithm; nodes are visited in sorted order so output is stable."""
    counter = 0
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []

    def visit(node: str) -> None:
        nonlocal counter
        index[node] = lowlink[node] = counter
        counter += 1
        stack.append(node)
        on_stack.add(node)
        for neighbour in graph.get(node, ()):
            if neighbour not in index:
                visit(neighbour)
                lowlink[node] = min(lowlink[node], lowlink[neighbour])
            elif neighbour in on_stack:
                lowlink[node] = min(lowlink[node], index[neighbour])
        if lowlink[node] == index[node]:
            component = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break
            components.append(sorted(component))

    for node in sorted(graph):
        if node not in index:
            visit(node)
    return components


class ActionSorter:
    """Orders actions so each one only runs after those it depends on.

    The sort is stable: among actions whose dependencies are satisfied, the
    one earliest in the input goes first. Foreign-key cycles between tables
    created together are broken by creating the lexicographically-first
    table of the cycle without its keys into the cycle and adding those keys
    with ``ALTER_ADD_KEY`` once every table of the cycle exists. Cycles
    between tables dropped together are broken the same way with
    ``ALTER_DROP_KEY`` before the drops.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def sort(self, actions: Sequence[Action]) -> list[Action]:
        """Return ``actions`` in a safe execution order.

        Args:
            actions: Actions as emitted by the differ. The input is not
                modified; cycle breaking works on a copy.

        Returns:
            The ordered actions. Creates and drops caught in a foreign-key
            cycle come back with keys stripped, and the synthesized
            ``ALTER_ADD_KEY`` / ``ALTER_DROP_KEY`` actions are included.

        Raises:
            ValueError: If the actions contain a dependency cycle that is not
                a foreign-key cycle between created or dropped tables.
        """
        work = list(actions)
        extra: dict[int, set[int]] = defaultdict(set)
        self._break_create_cycles(work, extra)
        self._break_drop_cycles(work)

        dependencies = self._dependencies(work)
        for position, required in extra.items():
            dependencies[position] |= required

        dependents: list[list[int]] = [[] for _ in work]
        remaining = [0] * len(work)
        for position, required in enumerate(dependencies):
            for other in required:
                dependents[other].append(position)
            remaining[position] = len(required)

        ready = [position for position, count in enumerate(remaining) if count == 0]
        heapq.heapify(ready)
        order: list[int] = []
        while ready:
            position = heapq.heappop(ready)
            order.append(position)
            for dependent in dependents[position]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if len(order) != len(work):
            stuck = [work[position].summary() for position, count in enumerate(remaining) if count > 0]
            raise ValueError(f"actions contain a dependency cycle: {', '.join(stuck)}")

        self._logger.debug("actions_sorted", action_count=len(order))
        return [work[position] for position in order]

    def _break_create_cycles(self, actions: list[Action], extra: dict[int, set[int]]) -> None:
        while True:
            creates = {a.table.name: i for i, a in enumerate(actions) if a.kind is ActionKind.CREATE}
            cycles = self._cycles(actions, creates)
            if not cycles:
                return
            for members in cycles:
                chosen = members[0]
                position = creates[chosen]
                original = actions[position].table
                deferred = self._strip_keys(actions, position, set(members))
                for key in deferred:
                    extra[len(actions)] = {creates[member] for member in members}
                    actions.append(Action(kind=ActionKind.ALTER_ADD_KEY, table=original, foreign_key=key))
                self._logger.info(
                    "foreign_key_cycle_broken",
                    table=chosen,
                    cycle=members,
                    deferred_keys=[f"{key.field}->{key.foreign_table}.{key.foreign_field}" for key in deferred],
                )

    def _break_drop_cycles(self, actions: list[Action]) -> None:
        while True:
            drops = {a.table.name: i for i, a in enumerate(actions) if a.kind is ActionKind.DROP}
            cycles = self._cycles(actions, drops)
            if not cycles:
                return
            for members in cycles:
                chosen = members[0]
                position = drops[chosen]
                original = actions[position].table
                released = self._strip_keys(actions, position, set(members))
                for key in released:
                    actions.append(Action(kind=ActionKind.ALTER_DROP_KEY, table=original, foreign_key=key))
                self._logger.info(
                    "foreign_key_drop_cycle_broken",
                    table=chosen,
                    cycle=members,
                    dropped_keys=[f"{key.field}->{key.foreign_table}.{key.foreign_field}" for key in released],
                )

    def _cycles(self, actions: list[Action], tables: dict[str, int]) -> list[list[str]]:
        graph = {
            name: sorted(
                {
                    key.foreign_table
                    for key in actions[position].table.foreign_keys
                    if key.foreign_table in tables and key.foreign_table != name
                }
            )
            for name, position in tables.items()
        }
        return [component for component in _strongly_connected(graph) if len(component) > 1]

    def _strip_keys(self, actions: list[Action], position: int, members: set[str]) -> list[ForeignKey]:
        """Remove the table's keys into ``members`` from the action and return them."""
        action = actions[position]
        table = action.table
        removed = [
            key for key in table.foreign_keys if key.foreign_table in members and key.foreign_table != table.name
        ]
        kept = tuple(key for key in table.foreign_keys if key not in removed)
        actions[position] = action.model_copy(update={"table": table.model_copy(update={"foreign_keys": kept})})
        return removed

    def _referencing_drops(
        self,
        actions: list[Action],
        drops: dict[str, int],
        table: str,
        column: str,
    ) -> set[int]:
        """Positions of table drops whose own keys point at ``table.column``."""
        return {
            position
            for name, position in drops.items()
            if name != table and any(key.touches(table, column) for key in actions[position].table.foreign_keys)
        }

    def _dependencies(self, actions: list[Action]) -> list[set[int]]:
        """Compute, for every action, the positions of actions that must run first.

        Rules, by the kind of the dependent action:

        * ``ALTER_DROP_COLUMN``: key drops touching the column, drops of
          tables whose keys reference it, and the drop of its index.
        * ``ALTER_CHANGE_COLUMN``: key drops touching the column and drops of
          tables whose keys reference it.
        * ``DROP``: key drops touching the table, column drops and changes on
          it, and drops of other tables referencing it.
        * ``CREATE``: creates of the tables its keys reference, and writes to
          the referenced columns.
        * ``ALTER_ADD_COLUMN``: a drop of the same-named column.
        * ``ALTER_ADD_KEY``: creates of both tables, writes to either end,
          and a dropped key on the same domestic column.
        * ``CREATE_INDEX``: its table's create and writes to the column.

        Args:
            actions: The actions being sorted, after cycle breaking.

        Returns:
            One set of prerequisite positions per action, by position.
        """
        creates: dict[str, int] = {}
        drops: dict[str, int] = {}
        column_writes: dict[tuple[str, str], list[int]] = defaultdict(list)
        column_drops: dict[tuple[str, str], list[int]] = defaultdict(list)
        column_alters_by_table: dict[str, list[int]] = defaultdict(list)
        index_drops: dict[tuple[str, str], list[int]] = defaultdict(list)
        key_drops: list[tuple[int, ForeignKey]] = []

        for position, action in enumerate(actions):
            table = action.table_name
            if action.kind is ActionKind.CREATE:
                creates[table] = position
            elif action.kind is ActionKind.DROP:
                drops[table] = position
            elif action.kind in _COLUMN_WRITES and action.field is not None:
                column_writes[(table, action.field.name)].append(position)
            elif action.kind is ActionKind.ALTER_DROP_COLUMN and action.field is not None:
                column_drops[(table, action.field.name)].append(position)
            elif action.kind is ActionKind.DROP_INDEX and action.index is not None:
                index_drops[(action.index.table, action.index.field)].append(position)
            elif action.kind is ActionKind.ALTER_DROP_KEY and action.foreign_key is not None:
                key_drops.append((position, action.foreign_key))
            if action.kind in (ActionKind.ALTER_DROP_COLUMN, ActionKind.ALTER_CHANGE_COLUMN):
                column_alters_by_table[table].append(position)

        dependencies: list[set[int]] = []
        for position, action in enumerate(actions):
            table = action.table_name
            required: set[int] = set()

            if action.kind is ActionKind.ALTER_DROP_COLUMN and action.field is not None:
                column = action.field.name
                required.update(p for p, key in key_drops if key.touches(table, column))
                required.update(self._referencing_drops(actions, drops, table, column))
                required.update(index_drops.get((table, column), ()))

            elif action.kind is ActionKind.ALTER_CHANGE_COLUMN and action.field is not None:
                column = action.field.name
                required.update(p for p, key in key_drops if key.touches(table, column))
                required.update(self._referencing_drops(actions, drops, table, column))

            elif action.kind is ActionKind.DROP:
                required.update(
                    p for p, key in key_drops if key.domestic_table == table or key.foreign_table == table
                )
                required.update(column_alters_by_table.get(table, ()))
                for other, other_position in drops.items():
                    if other == table:
                        continue
                    if any(key.foreign_table == table for key in actions[other_position].table.foreign_keys):
                        required.add(other_position)

            elif action.kind is ActionKind.CREATE:
                for key in action.table.foreign_keys:
                    if key.foreign_table != table and key.foreign_table in creates:
                        required.add(creates[key.foreign_table])
                    required.update(column_writes.get((key.foreign_table, key.foreign_field), ()))

            elif action.kind is ActionKind.ALTER_ADD_COLUMN and action.field is not None:
                required.update(column_drops.get((table, action.field.name), ()))

            elif action.kind is ActionKind.ALTER_ADD_KEY and action.foreign_key is not None:
                key = action.foreign_key
                for end in (key.domestic_table, key.foreign_table):
                    if end in creates:
                        required.add(creates[end])
                required.update(column_writes.get((key.domestic_table, key.field), ()))
                required.update(column_writes.get((key.foreign_table, key.foreign_field), ()))
                required.update(
                    p
                    for p, dropped in key_drops
                    if dropped.domestic_table == key.domestic_table and dropped.field == key.field
                )

            elif action.kind is ActionKind.CREATE_INDEX and action.index is not None:
                index = action.index
                if index.table in creates:
                    required.add(creates[index.table])
                required.update(column_writes.get((index.table, index.field), ()))

            required.discard(position)
            dependencies.append(required)
        return dependencies
