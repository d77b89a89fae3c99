"""
Exception types raised while restoring table dumps.
"""


class TableLoadError(Exception):
    """Base class for all tableload errors."""

    pass


class StatementError(TableLoadError):
    """
    Raised when the database rejects a statement.

    Wraps the driver-specific exception (sqlite3.Error, pyodbc.Error,
    psycopg2.Error) so callers only need to handle one type. The original
    exception is chained as ``__cause__``.
    """

    def __init__(self, sql: str, message: str):
        super().__init__(f"{message} (statement: {sql})")
        self.sql = sql


class ColumnNotFoundError(TableLoadError):
    """Raised when a dumped column has no matching column in the destination table."""

    def __init__(self, table_name: str, column_name: str):
        super().__init__(f"Column '{column_name}' not found in table '{table_name}'")
        self.table_name = table_name
        self.column_name = column_name


class RecordShapeError(TableLoadError):
    """Raised when a record does not have one value per column."""

    pass


class DumpFormatError(TableLoadError):
    """
    Raised when a dump file or stream cannot be parsed.

    This indicates structural problems such as invalid YAML/JSON, a document
    that is not a mapping of table names, or table data missing its
    ``columns``/``records`` keys.
    """


class UnsupportedOperationError(TableLoadError):
    """Raised when a connection is asked for a capability it does not have."""

    pass
