"""
SQL Server destination connection.

SQL Server moves an IDENTITY column's current value forward on its own when
explicit keys are inserted, so no sequence reset is needed. Explicit keys do
require IDENTITY_INSERT to be switched on for the duration of the load.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Optional

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.connection import DatabaseConnection
from ..core.errors import StatementError
from ..core.models import ColumnInfo
from ..core.quoting import quote_string, quote_value


logger = logging.getLogger(__name__)


COLUMNS_QUERY = """
    SELECT
        c.COLUMN_NAME,
        c.DATA_TYPE,
        CASE WHEN c.IS_NULLABLE = 'YES' THEN 1 ELSE 0 END AS IsNullable,
        COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)), c.COLUMN_NAME, 'IsIdentity') AS IsIdentity,
        CASE WHEN pk.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS IsPrimaryKey,
        c.ORDINAL_POSITION
    FROM INFORMATION_SCHEMA.COLUMNS c
    LEFT JOIN (
        SELECT ku.TABLE_SCHEMA, ku.TABLE_NAME, ku.COLUMN_NAME
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
        JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
          ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
         AND tc.TABLE_SCHEMA = ku.TABLE_SCHEMA
        WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
    ) pk
      ON pk.TABLE_SCHEMA = c.TABLE_SCHEMA
     AND pk.TABLE_NAME = c.TABLE_NAME
     AND pk.COLUMN_NAME = c.COLUMN_NAME
    WHERE c.TABLE_SCHEMA = ?
      AND c.TABLE_NAME = ?
    ORDER BY c.ORDINAL_POSITION
"""


def sqlserver_binary_literal(value: bytes) -> str:
    return "0x" + value.hex().upper()


# Legacy types that accept at most three fractional-second digits
LEGACY_DATETIME_TYPES = {"datetime", "smalldatetime"}


class SqlServerConnection(DatabaseConnection):
    """
    SQL Server implementation of the destination connection.

    Uses pyodbc in autocommit mode outside of transactions.
    """

    backend = "sqlserver"

    savepoint_template = "SAVE TRANSACTION {name}"
    rollback_savepoint_template = "ROLLBACK TRANSACTION {name}"
    release_savepoint_template = None

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "master",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        default_schema: str = "dbo",
        trust_server_certificate: bool = True,
    ):
        """
        Connect to SQL Server.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            default_schema: Schema assumed for unqualified table names
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerConnection. "
                "Install with: pip install pyodbc"
            )

        super().__init__()
        self.default_schema = default_schema

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self.conn = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.conn = pyodbc.connect(self.connection_string, autocommit=True)
            logger.debug("Connected to SQL Server")
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise

    def _execute(self, sql: str) -> Any:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
        except pyodbc.Error as e:
            raise StatementError(sql, str(e)) from e
        return cursor

    def quote_identifier(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def quote_value(self, value: Any, column: Optional[ColumnInfo]) -> str:
        if (
            isinstance(value, datetime)
            and column is not None
            and column.base_type in LEGACY_DATETIME_TYPES
        ):
            return quote_string(value.isoformat(sep=" ", timespec="milliseconds"))

        literal = quote_value(
            value,
            column,
            true_literal="1",
            false_literal="0",
            binary_literal=sqlserver_binary_literal,
        )
        # National string literal keeps non-ASCII text intact
        if literal.startswith("'"):
            return "N" + literal
        return literal

    def _split_table_name(self, table_name: str) -> tuple:
        if "." in table_name:
            schema, table = table_name.rsplit(".", 1)
            return schema, table
        return self.default_schema, table_name

    def columns(self, table_name: str) -> List[ColumnInfo]:
        schema, table = self._split_table_name(table_name)

        cursor = self.conn.cursor()
        try:
            cursor.execute(COLUMNS_QUERY, (schema, table))
            rows = cursor.fetchall()
        except pyodbc.Error as e:
            raise StatementError(COLUMNS_QUERY, str(e)) from e
        finally:
            cursor.close()

        result = []
        for row in rows:
            result.append(
                ColumnInfo(
                    name=row.COLUMN_NAME,
                    data_type=row.DATA_TYPE,
                    is_nullable=bool(row.IsNullable),
                    is_identity=bool(row.IsIdentity),
                    is_primary_key=bool(row.IsPrimaryKey),
                    ordinal=row.ORDINAL_POSITION,
                )
            )
        return result

    def truncate_statement(self, quoted_table: str) -> str:
        return f"TRUNCATE TABLE {quoted_table}"

    @contextmanager
    def insert_scope(self, table_name: str, columns: List[ColumnInfo]) -> Iterator[None]:
        if not any(column.is_identity for column in columns):
            yield
            return

        quoted_table = self.quote_table_name(table_name)
        identity_off = f"SET IDENTITY_INSERT {quoted_table} OFF"
        self.execute(f"SET IDENTITY_INSERT {quoted_table} ON")
        try:
            yield
        except BaseException:
            # Keep the insert failure as the error that propagates
            try:
                self.execute(identity_off)
            except StatementError as e:
                logger.warning(f"Could not turn IDENTITY_INSERT off on {table_name}: {e}")
            raise
        self.execute(identity_off)

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
            logger.debug("Closed SQL Server connection")
