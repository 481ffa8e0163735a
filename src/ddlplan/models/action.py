from pydantic import BaseModel, ConfigDict, model_validator

from ddlplan.models.enums import ActionKind
from ddlplan.models.schema import ForeignKey, Index, Table, TableField

_TABLE_KINDS = frozenset({ActionKind.CREATE, ActionKind.DROP})
_FIELD_KINDS = frozenset(
    {ActionKind.ALTER_ADD_COLUMN, ActionKind.ALTER_CHANGE_COLUMN, ActionKind.ALTER_DROP_COLUMN}
)
_KEY_KINDS = frozenset({ActionKind.ALTER_ADD_KEY, ActionKind.ALTER_DROP_KEY})
_INDEX_KINDS = frozenset({ActionKind.CREATE_INDEX, ActionKind.DROP_INDEX})


class Action(BaseModel):
    """A single structural change, consumed in order by a provider.

    ``table`` is set on every action and names the table the change applies
    to; ``field``/``old_field``, ``foreign_key`` and ``index`` are set for
    column, key and index actions respectively. A ``ALTER_CHANGE_COLUMN``
    carries the desired column as ``field`` and the live one as ``old_field``.
    """

    kind: ActionKind
    table: Table
    field: TableField | None = None
    old_field: TableField | None = None
    foreign_key: ForeignKey | None = None
    index: Index | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_payload(self) -> "Action":
        if self.kind in _FIELD_KINDS and self.field is None:
            raise ValueError(f"{self.kind.name} requires a field")
        if self.kind is ActionKind.ALTER_CHANGE_COLUMN and self.old_field is None:
            raise ValueError("ALTER_CHANGE_COLUMN requires the previous field")
        if self.kind in _KEY_KINDS and self.foreign_key is None:
            raise ValueError(f"{self.kind.name} requires a foreign key")
        if self.kind in _INDEX_KINDS and self.index is None:
            raise ValueError(f"{self.kind.name} requires an index")
        return self

    @property
    def table_name(self) -> str:
        return self.table.name

    def summary(self) -> str:
        """One-line human readable description."""
        if self.kind in _TABLE_KINDS:
            return f"{self.kind.name} {self.table.name}"
        if self.kind in _FIELD_KINDS and self.field is not None:
            return f"{self.kind.name} {self.table.name}.{self.field.name}"
        if self.kind in _KEY_KINDS and self.foreign_key is not None:
            key = self.foreign_key
            return (
                f"{self.kind.name} {key.domestic_table}.{key.field}"
                f" -> {key.foreign_table}.{key.foreign_field}"
            )
        if self.index is not None:
            return f"{self.kind.name} {self.index.name}"
        return self.kind.name
