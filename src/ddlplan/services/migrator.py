"""Migration pipeline wiring reader, generator, differ and sorter.

The migrator decides what to run and in which order; rendering actions to
SQL, executing it and any transaction control belong to the Provider.
"""

from typing import Protocol, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ddlplan.models.action import Action
from ddlplan.models.descriptor import EntityDescriptor
from ddlplan.models.enums import ActionKind
from ddlplan.services.catalog import CatalogSource
from ddlplan.services.differ import SchemaDiffer
from ddlplan.services.generator import SchemaGenerator
from ddlplan.services.naming import NamingStrategy
from ddlplan.services.reader import SchemaReader
from ddlplan.services.sorter import ActionSorter
from ddlplan.types.registry import TypeRegistry


class Provider(Protocol):
    """Dialect-specific renderer and executor of actions.

    Implementations raise ``UnsupportedDDLOperationError`` from ``render``
    when the dialect cannot express an action.
    """

    def render(self, action: Action) -> str: ...

    def execute(self, sql: str) -> None: ...


class MigrationPlan(BaseModel):
    """Ordered actions to execute, plus table drops held back by policy."""

    actions: tuple[Action, ...] = Field(default_factory=tuple)
    withheld: tuple[Action, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not self.actions


class SchemaMigrator:
    """Runs the full pipeline from live catalog and descriptors to a plan.

    ``DROP`` actions are destructive, so they are only part of the executable
    plan when ``allow_table_drops`` is set; otherwise they are reported in
    ``MigrationPlan.withheld``.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        naming: NamingStrategy,
        allow_table_drops: bool = False,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        self._reader = SchemaReader(registry=registry, logger=self._logger)
        self._generator = SchemaGenerator(registry=registry, naming=naming, logger=self._logger)
        self._differ = SchemaDiffer(logger=self._logger)
        self._sorter = ActionSorter(logger=self._logger)
        self._allow_table_drops = allow_table_drops

    def plan(self, catalog: CatalogSource, descriptors: Sequence[EntityDescriptor]) -> MigrationPlan:
        """Compute the ordered actions migrating the catalog's schema to the descriptors.

        Descriptors are compiled before the live schema is read, so an
        invalid descriptor fails without touching the database.

        Raises:
            SchemaGenerationError: If the descriptors are invalid.
            SchemaIntrospectionError: If the live schema cannot be read.
        """
        desired = self._generator.generate(descriptors)
        current = self._reader.read(catalog)
        changes = self._differ.diff(current, desired)

        withheld: list[Action] = []
        if not self._allow_table_drops:
            # withheld before sorting so no keys are dropped for tables that stay
            withheld = [action for action in changes if action.kind is ActionKind.DROP]
            changes = [action for action in changes if action.kind is not ActionKind.DROP]
            for action in withheld:
                self._logger.warning("table_drop_withheld", table=action.table_name)

        actions = self._sorter.sort(changes)
        self._logger.info("migration_planned", action_count=len(actions), withheld_count=len(withheld))
        return MigrationPlan(actions=tuple(actions), withheld=tuple(withheld))

    def migrate(
        self,
        catalog: CatalogSource,
        descriptors: Sequence[EntityDescriptor],
        provider: Provider,
    ) -> MigrationPlan:
        """Plan and run the migration through ``provider``.

        Actions are rendered and executed one at a time in plan order; the
        first failure propagates and later actions are not attempted.

        Returns:
            The plan that was executed.
        """
        migration = self.plan(catalog, descriptors)
        for action in migration.actions:
            sql = provider.render(action)
            provider.execute(sql)
            self._logger.info("statement_executed", kind=action.kind.name, sql=sql)
        self._logger.info("migration_completed", statement_count=len(migration.actions))
        return migration
