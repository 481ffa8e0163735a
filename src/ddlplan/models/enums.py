from enum import StrEnum


class ActionKind(StrEnum):
    CREATE = "create"
    DROP = "drop"
    ALTER_ADD_COLUMN = "alter_add_column"
    ALTER_CHANGE_COLUMN = "alter_change_column"
    ALTER_DROP_COLUMN = "alter_drop_column"
    ALTER_ADD_KEY = "alter_add_key"
    ALTER_DROP_KEY = "alter_drop_key"
    CREATE_INDEX = "create_index"
    DROP_INDEX = "drop_index"


class RelationKind(StrEnum):
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


class DatabaseFunction(StrEnum):
    """Server-side functions usable as column defaults."""

    CURRENT_DATE = "CURRENT_DATE"
    CURRENT_TIMESTAMP = "CURRENT_TIMESTAMP"

    @classmethod
    def lookup(cls, text: str) -> "DatabaseFunction | None":
        normalized = text.strip().upper()
        for function in cls:
            if function.value == normalized:
                return function
        return None
