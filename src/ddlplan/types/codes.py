from enum import IntEnum


class SQLTypeCode(IntEnum):
    """Native SQL type codes, numbered as in the JDBC ``java.sql.Types`` table.

    Catalog sources translate whatever their driver reports into these codes
    so the rest of the planner never sees dialect-specific type names.
    """

    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    NULL = 0
    OTHER = 1111
    BLOB = 2004
    CLOB = 2005
    BOOLEAN = 16


def code_name(code: int) -> str:
    """Return the symbolic name for ``code`` or ``GENERIC`` when unknown."""
    try:
        return SQLTypeCode(code).name
    except ValueError:
        return "GENERIC"
