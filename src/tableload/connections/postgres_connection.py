"""
PostgreSQL destination connection.

PostgreSQL keeps serial/identity counters in separate sequence objects that
do not move when rows are inserted with explicit keys, so after a load the
primary-key sequence is resynced with the table's maximum key.
"""

import logging
from typing import Any, List, Optional

try:
    import psycopg2
except ImportError:
    psycopg2 = None

from ..core.connection import DatabaseConnection
from ..core.errors import StatementError
from ..core.models import ColumnInfo
from ..core.quoting import quote_string, quote_value


logger = logging.getLogger(__name__)


COLUMNS_QUERY = """
    SELECT
        c.column_name,
        c.data_type,
        c.is_nullable = 'YES' AS is_nullable,
        c.is_identity = 'YES' AS is_identity,
        c.column_name IN (
            SELECT a.attname
            FROM pg_index i
            JOIN pg_attribute a
              ON a.attrelid = i.indrelid
             AND a.attnum = ANY(i.indkey)
            WHERE i.indrelid = %(qualified)s::regclass
              AND i.indisprimary
        ) AS is_primary_key,
        c.ordinal_position
    FROM information_schema.columns c
    WHERE c.table_schema = COALESCE(%(schema)s, current_schema())
      AND c.table_name = %(table)s
    ORDER BY c.ordinal_position
"""


def postgres_binary_literal(value: bytes) -> str:
    return f"'\\x{value.hex()}'::bytea"


class PostgresConnection(DatabaseConnection):
    """PostgreSQL implementation of the destination connection."""

    backend = "postgresql"

    def __init__(self, dsn: str):
        """
        Connect to PostgreSQL.

        Args:
            dsn: libpq connection string, e.g. "host=localhost dbname=app user=app"
        """
        if psycopg2 is None:
            raise ImportError(
                "psycopg2 is required for PostgresConnection. "
                "Install with: pip install psycopg2-binary"
            )

        super().__init__()
        self.dsn = dsn
        self.conn = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.conn = psycopg2.connect(self.dsn)
            self.conn.autocommit = True
            logger.debug("Connected to PostgreSQL")
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise

    def _execute(self, sql: str) -> Any:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
        except psycopg2.Error as e:
            raise StatementError(sql, str(e).strip()) from e
        return cursor

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def quote_value(self, value: Any, column: Optional[ColumnInfo]) -> str:
        return quote_value(value, column, binary_literal=postgres_binary_literal)

    def columns(self, table_name: str) -> List[ColumnInfo]:
        if "." in table_name:
            schema, table = table_name.rsplit(".", 1)
        else:
            schema, table = None, table_name
        params = {
            "qualified": self.quote_table_name(table_name),
            "schema": schema,
            "table": table,
        }

        cursor = self.conn.cursor()
        try:
            cursor.execute(COLUMNS_QUERY, params)
            rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise StatementError(COLUMNS_QUERY, str(e).strip()) from e
        finally:
            cursor.close()

        return [
            ColumnInfo(
                name=name,
                data_type=data_type,
                is_nullable=bool(is_nullable),
                is_identity=bool(is_identity),
                is_primary_key=bool(is_primary_key),
                ordinal=ordinal,
            )
            for name, data_type, is_nullable, is_identity, is_primary_key, ordinal in rows
        ]

    def primary_key(self, table_name: str) -> Optional[str]:
        """Single-column primary key of the table, or None."""
        keys = [column.name for column in self.columns(table_name) if column.is_primary_key]
        if len(keys) != 1:
            return None
        return keys[0]

    def supports_pk_sequence_reset(self) -> bool:
        return True

    def reset_pk_sequence(self, table_name: str) -> None:
        pk = self.primary_key(table_name)
        if pk is None:
            logger.debug(f"No single-column primary key on {table_name}; skipping sequence reset")
            return

        quoted_table = self.quote_table_name(table_name)
        cursor = self.execute(
            f"SELECT pg_get_serial_sequence({quote_string(quoted_table)}, {quote_string(pk)})"
        )
        row = cursor.fetchone()
        cursor.close()
        if not row or row[0] is None:
            logger.debug(f"Primary key {table_name}.{pk} has no sequence; skipping reset")
            return

        sequence = row[0]
        quoted_pk = self.quote_identifier(pk)
        self.execute(
            f"SELECT setval({quote_string(sequence)}, COALESCE(MAX({quoted_pk}), 1), "
            f"MAX({quoted_pk}) IS NOT NULL) FROM {quoted_table}"
        )
        logger.info(f"Reset sequence {sequence} for {table_name}")

    def _begin(self) -> None:
        self.conn.autocommit = False

    def _commit(self) -> None:
        try:
            self.conn.commit()
        finally:
            self.conn.autocommit = True

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        finally:
            self.conn.autocommit = True

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug("Closed PostgreSQL connection")
