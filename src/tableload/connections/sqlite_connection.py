"""
SQLite destination connection.

SQLite has no TRUNCATE statement, so clearing a table always takes the
DELETE fallback. Rowid/AUTOINCREMENT counters follow the inserted keys on
their own, so no sequence reset is needed.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, List, Optional, Union

from ..core.connection import DatabaseConnection
from ..core.errors import StatementError
from ..core.models import ColumnInfo
from ..core.quoting import is_nan, quote_value


logger = logging.getLogger(__name__)


def sqlite_nonfinite_literal(value: Any) -> str:
    # SQLite stores NaN as NULL; 9e999 overflows to Inf
    if is_nan(value):
        return "NULL"
    return "9e999" if value > 0 else "-9e999"


class SqliteConnection(DatabaseConnection):
    """SQLite implementation of the destination connection."""

    backend = "sqlite"

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        """
        Open the SQLite database.

        Args:
            db_path: Path to the database file, or ":memory:"
        """
        super().__init__()
        self.db_path = str(db_path)
        self.conn = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; transactions are issued explicitly by _begin/_commit
        self.conn = sqlite3.connect(self.db_path, isolation_level=None)
        logger.debug(f"Connected to SQLite database: {self.db_path}")

    def _execute(self, sql: str) -> Any:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
        except sqlite3.Error as e:
            raise StatementError(sql, str(e)) from e
        return cursor

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def quote_value(self, value: Any, column: Optional[ColumnInfo]) -> str:
        return quote_value(
            value,
            column,
            true_literal="1",
            false_literal="0",
            nonfinite_literal=sqlite_nonfinite_literal,
        )

    def columns(self, table_name: str) -> List[ColumnInfo]:
        if "." in table_name:
            schema, table = table_name.rsplit(".", 1)
            pragma = f"PRAGMA {self.quote_identifier(schema)}.table_info({self.quote_identifier(table)})"
        else:
            pragma = f"PRAGMA table_info({self.quote_identifier(table_name)})"

        cursor = self.execute(pragma)
        result = []
        # (cid, name, type, notnull, dflt_value, pk)
        for cid, name, data_type, notnull, _default, pk in cursor.fetchall():
            result.append(
                ColumnInfo(
                    name=name,
                    data_type=data_type or "",
                    is_nullable=not notnull,
                    is_primary_key=bool(pk),
                    ordinal=cid + 1,
                )
            )
        cursor.close()
        return result

    def _begin(self) -> None:
        self.execute("BEGIN")

    def _commit(self) -> None:
        self.execute("COMMIT")

    def _rollback(self) -> None:
        self.execute("ROLLBACK")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug(f"Closed SQLite database: {self.db_path}")
