"""
Destination connection implementations.

Supported backends:
    - sqlite (stdlib sqlite3)
    - sqlserver (pyodbc)
    - postgresql (psycopg2)

To select a backend without code changes, set the TABLELOAD_DB_BACKEND
environment variable.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..core.connection import DatabaseConnection


logger = logging.getLogger(__name__)


# Lazy imports to avoid import errors when drivers are missing
def _get_sqlite_connection():
    from .sqlite_connection import SqliteConnection
    return SqliteConnection


def _get_sqlserver_connection():
    from .sqlserver_connection import SqlServerConnection
    return SqlServerConnection


def _get_postgres_connection():
    from .postgres_connection import PostgresConnection
    return PostgresConnection


def create_connection(
    backend: Optional[str] = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    # PostgreSQL options
    dsn: Optional[str] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    host: str = "localhost",
    port: int = 1433,
    database: str = "master",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    default_schema: str = "dbo",
    trust_server_certificate: bool = True,
) -> DatabaseConnection:
    """
    Factory function to create the connection for a backend.

    Args:
        backend: 'sqlite', 'sqlserver' or 'postgresql'. Defaults to the
            TABLELOAD_DB_BACKEND env var or 'sqlite'.

        SQLite options:
            db_path: Path to SQLite database file (default: in-memory)

        PostgreSQL options:
            dsn: libpq connection string (default: TABLELOAD_PG_DSN env var)

        SQL Server options:
            connection_string: Full ODBC connection string
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password (default: TABLELOAD_SQLSERVER_PASSWORD env var)
            driver: ODBC driver name
            default_schema: Schema for unqualified table names
            trust_server_certificate: Trust self-signed certs

    Returns:
        DatabaseConnection instance

    Raises:
        ValueError: If backend is not recognized
        ImportError: If the backend's driver is missing
    """
    if backend is None:
        backend = os.environ.get("TABLELOAD_DB_BACKEND", "sqlite")
    backend = backend.lower()

    if backend == "sqlite":
        SqliteConnection = _get_sqlite_connection()
        return SqliteConnection(db_path=db_path if db_path is not None else ":memory:")

    elif backend in ("postgresql", "postgres"):
        PostgresConnection = _get_postgres_connection()
        if dsn is None:
            dsn = os.environ.get("TABLELOAD_PG_DSN")
        if not dsn:
            raise ValueError("PostgreSQL backend requires a dsn (or TABLELOAD_PG_DSN)")
        return PostgresConnection(dsn=dsn)

    elif backend == "sqlserver":
        SqlServerConnection = _get_sqlserver_connection()

        if password is None:
            password = os.environ.get("TABLELOAD_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")

        if connection_string is None:
            connection_string = os.environ.get("TABLELOAD_SQLSERVER_CONN_STR")

        return SqlServerConnection(
            connection_string=connection_string,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            driver=driver,
            default_schema=default_schema,
            trust_server_certificate=trust_server_certificate,
        )

    else:
        raise ValueError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'sqlite', 'sqlserver', 'postgresql'"
        )


__all__ = ["create_connection"]
