"""Schema migration planning CLI.

Provides commands to inspect a live database, compile entity descriptors into
a desired schema, and print the ordered migration plan between the two.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
import typer
from pydantic import TypeAdapter, ValidationError

from ddlplan.config import Settings, get_settings
from ddlplan.errors import DdlPlanError
from ddlplan.models.descriptor import EntityDescriptor
from ddlplan.models.schema import Table
from ddlplan.services.catalog import SqlAlchemyCatalog
from ddlplan.services.factory import create_engine_from_url, create_naming_strategy, create_schema_migrator
from ddlplan.services.generator import SchemaGenerator
from ddlplan.services.reader import SchemaReader
from ddlplan.types.registry import TypeRegistry

_DESCRIPTORS = TypeAdapter(list[EntityDescriptor])


def configure_logging(settings: Settings) -> None:
    renderer: Any = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.log_level)),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="ddlplan",
    help="""Plan ordered schema migrations from entity descriptors.

Examples:

  # Show the live schema as JSON
  uv run ddlplan inspect --database-url sqlite:///app.db

  # Show the schema the descriptors describe
  uv run ddlplan generate entities.json

  # Show the ordered actions needed to migrate
  uv run ddlplan plan entities.json --database-url sqlite:///app.db""",
    rich_markup_mode="markdown",
)


@app.callback()
def main() -> None:
    configure_logging(get_settings())


def load_descriptors(path: Path) -> list[EntityDescriptor]:
    """Load a JSON list of entity descriptors.

    Raises:
        typer.Exit: If the file is missing or not a valid descriptor list.
    """
    if not path.exists():
        logger.error("descriptor_file_not_found", path=str(path))
        raise typer.Exit(1)
    try:
        return _DESCRIPTORS.validate_json(path.read_bytes())
    except ValidationError as exc:
        logger.error("descriptor_file_invalid", path=str(path), error_count=exc.error_count())
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def dump_tables(tables: tuple[Table, ...]) -> str:
    return json.dumps([table.model_dump(mode="json") for table in tables], indent=2)


@app.command()
def inspect(
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        "-u",
        help="SQLAlchemy URL of the database (default: DDLPLAN_DATABASE_URL)",
    ),
    schema: Optional[str] = typer.Option(
        None,
        "--schema",
        help="Catalog schema to read (default: DDLPLAN_DATABASE_SCHEMA)",
    ),
) -> None:
    """Print the live database schema as JSON."""
    settings = get_settings()
    engine = create_engine_from_url(database_url or settings.database_url)
    reader = SchemaReader(registry=TypeRegistry.with_builtins(logger=logger), logger=logger)
    try:
        with engine.connect() as conn:
            tables = reader.read(SqlAlchemyCatalog(conn, schema=schema or settings.database_schema, logger=logger))
    except DdlPlanError as exc:
        logger.error("inspect_failed", error=str(exc))
        raise typer.Exit(1) from exc
    finally:
        engine.dispose()

    typer.echo(dump_tables(tables))


@app.command()
def generate(
    descriptors: Path = typer.Argument(
        ...,
        help="JSON file with a list of entity descriptors",
    ),
    naming: Optional[str] = typer.Option(
        None,
        "--naming",
        "-n",
        help="Naming strategy: camelcase, underscore or upper_underscore",
    ),
) -> None:
    """Print the schema described by the descriptors as JSON."""
    entities = load_descriptors(descriptors)
    try:
        generator = SchemaGenerator(
            registry=TypeRegistry.with_builtins(logger=logger),
            naming=create_naming_strategy(naming or get_settings().naming),
            logger=logger,
        )
        tables = generator.generate(entities)
    except (DdlPlanError, ValueError) as exc:
        logger.error("generate_failed", error=str(exc))
        raise typer.Exit(1) from exc

    typer.echo(dump_tables(tables))


@app.command()
def plan(
    descriptors: Path = typer.Argument(
        ...,
        help="JSON file with a list of entity descriptors",
    ),
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        "-u",
        help="SQLAlchemy URL of the database (default: DDLPLAN_DATABASE_URL)",
    ),
    schema: Optional[str] = typer.Option(
        None,
        "--schema",
        help="Catalog schema to read (default: DDLPLAN_DATABASE_SCHEMA)",
    ),
    naming: Optional[str] = typer.Option(
        None,
        "--naming",
        "-n",
        help="Naming strategy: camelcase, underscore or upper_underscore",
    ),
    allow_drops: bool = typer.Option(
        False,
        "--allow-drops",
        help="Include DROP actions in the plan instead of withholding them",
    ),
) -> None:
    """Print the ordered actions that migrate the database to the descriptors."""
    settings = get_settings()
    entities = load_descriptors(descriptors)
    engine = create_engine_from_url(database_url or settings.database_url)
    try:
        migrator = create_schema_migrator(
            naming=naming or settings.naming,
            allow_table_drops=allow_drops or settings.allow_table_drops,
            logger=logger,
        )
        with engine.connect() as conn:
            migration = migrator.plan(
                SqlAlchemyCatalog(conn, schema=schema or settings.database_schema, logger=logger),
                entities,
            )
    except (DdlPlanError, ValueError) as exc:
        logger.error("plan_failed", error=str(exc))
        raise typer.Exit(1) from exc
    finally:
        engine.dispose()

    if migration.is_empty:
        typer.echo("Schema is up to date")
    for position, action in enumerate(migration.actions, start=1):
        typer.echo(f"{position:3d}. {action.summary()}")
    for action in migration.withheld:
        typer.echo(f"  withheld: {action.summary()} (use --allow-drops)")


@app.command()
def version() -> None:
    """Show version information."""
    from ddlplan import __version__

    typer.echo(f"ddlplan {__version__}")
