"""Row shapes returned by a catalog source.

These mirror what a database's introspection API reports; the schema reader
turns them into snapshot models.
"""

from pydantic import BaseModel, ConfigDict


class ColumnProbe(BaseModel):
    """Column metadata taken from the result of a one-row probe query."""

    name: str
    sql_type: int
    precision: int = 0
    scale: int = 0
    auto_increment: bool = False
    nullable: bool | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ColumnDefault(BaseModel):
    """Catalog column metadata: the raw default expression and nullability."""

    name: str
    default: str | None = None
    nullable: bool | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ImportedKey(BaseModel):
    """A foreign key imported by a table.

    ``foreign_field`` is None when the catalog does not report the
    referenced column.
    """

    field: str
    foreign_table: str
    foreign_field: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class IndexInfo(BaseModel):
    name: str
    columns: tuple[str, ...]
    unique: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")
