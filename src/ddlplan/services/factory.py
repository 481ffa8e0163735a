"""Factory functions for creating and wiring migration services.

Provides the engine constructors used by the CLI and the tests, and a single
entry point that assembles a SchemaMigrator from plain configuration values.
"""

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ddlplan.services.migrator import SchemaMigrator
from ddlplan.services.naming import CamelCaseNaming, NamingStrategy, UnderscoreNaming
from ddlplan.types.registry import TypeRegistry


def create_naming_strategy(name: str) -> NamingStrategy:
    """Create a naming strategy from its configuration name.

    Args:
        name: ``camelcase``, ``underscore`` or ``upper_underscore``.

    Raises:
        ValueError: If the name is not a known strategy.
    """
    normalized = name.strip().lower()
    if normalized == "camelcase":
        return CamelCaseNaming()
    if normalized == "underscore":
        return UnderscoreNaming()
    if normalized == "upper_underscore":
        return UnderscoreNaming(uppercase=True)
    raise ValueError(f"unknown naming strategy: {name}")


def create_engine_from_url(url: str) -> Engine:
    """Create a synchronous SQLAlchemy engine for introspection."""
    return create_engine(url)


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)


def create_schema_migrator(
    naming: str = "camelcase",
    allow_table_drops: bool = False,
    registry: TypeRegistry | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> SchemaMigrator:
    """Create a SchemaMigrator with the built-in types and the named strategy.

    Args:
        naming: Naming strategy name, see ``create_naming_strategy``.
        allow_table_drops: Whether DROP actions are part of the executable plan.
        registry: Type registry; defaults to one holding the built-in types.
        logger: Logger shared by all pipeline stages.
    """
    logger = logger or structlog.get_logger(__name__)
    return SchemaMigrator(
        registry=registry or TypeRegistry.with_builtins(logger=logger),
        naming=create_naming_strategy(naming),
        allow_table_drops=allow_table_drops,
        logger=logger,
    )
