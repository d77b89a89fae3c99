"""
Connection interface consumed by the loader.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from .errors import UnsupportedOperationError
from .models import ColumnInfo


logger = logging.getLogger(__name__)


class DatabaseConnection(ABC):
    """
    Abstract base class for destination database connections.

    Concrete connections supply statement execution, identifier and value
    quoting, column introspection and the low-level transaction primitives.
    The base class builds the reentrant transaction scope and savepoints on
    top of those primitives.

    Engines that keep primary-key counters in separate sequence objects
    override ``supports_pk_sequence_reset`` and ``reset_pk_sequence``.
    """

    backend = "generic"

    savepoint_template = "SAVEPOINT {name}"
    rollback_savepoint_template = "ROLLBACK TO SAVEPOINT {name}"
    release_savepoint_template: Optional[str] = "RELEASE SAVEPOINT {name}"

    def __init__(self):
        self._transaction_depth = 0

    def execute(self, sql: str) -> Any:
        """
        Execute a single SQL statement.

        Args:
            sql: Statement text with all values inlined as literals

        Returns:
            Driver-specific result (usually the cursor)

        Raises:
            StatementError: If the database rejects the statement
        """
        logger.debug(f"Executing: {sql}")
        return self._execute(sql)

    @abstractmethod
    def _execute(self, sql: str) -> Any:
        """Run ``sql`` on the driver, translating driver errors to StatementError."""
        pass

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """
        Quote a single table or column name.

        Args:
            name: Unquoted identifier

        Returns:
            Identifier safe to embed in SQL, even if it is a reserved word
        """
        pass

    def quote_table_name(self, name: str) -> str:
        """Quote a possibly schema-qualified table name part by part."""
        return ".".join(self.quote_identifier(part) for part in name.split("."))

    @abstractmethod
    def quote_value(self, value: Any, column: Optional[ColumnInfo]) -> str:
        """
        Render a value as a SQL literal for the given column.

        Args:
            value: Raw dumped value
            column: Metadata of the destination column

        Returns:
            SQL literal text
        """
        pass

    @abstractmethod
    def columns(self, table_name: str) -> List[ColumnInfo]:
        """
        Get column metadata for a table.

        Args:
            table_name: Unquoted, possibly schema-qualified table name

        Returns:
            Columns in ordinal order
        """
        pass

    def truncate_statement(self, quoted_table: str) -> str:
        """Statement that empties ``quoted_table`` in one step."""
        return f"TRUNCATE {quoted_table}"

    @contextmanager
    def insert_scope(self, table_name: str, columns: List[ColumnInfo]) -> Iterator[None]:
        """
        Session settings that must hold while explicit rows are inserted.

        The default needs none. SQL Server uses this to allow explicit
        values in IDENTITY columns.
        """
        yield

    def supports_pk_sequence_reset(self) -> bool:
        """Whether this engine needs primary-key sequences resynced after a load."""
        return False

    def reset_pk_sequence(self, table_name: str) -> None:
        """Resync the table's primary-key sequence with its current maximum key."""
        raise UnsupportedOperationError(
            f"{self.backend} connections do not support primary-key sequence reset"
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    def _begin(self) -> None:
        pass

    @abstractmethod
    def _commit(self) -> None:
        pass

    @abstractmethod
    def _rollback(self) -> None:
        pass

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    @contextmanager
    def transaction(self) -> Iterator["DatabaseConnection"]:
        """
        Transaction scope: commit on success, roll back on exception.

        Scopes nest by joining: only the outermost scope begins and ends the
        database transaction, so an exception anywhere rolls back all of it.
        """
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield self
            finally:
                self._transaction_depth -= 1
            return

        self._begin()
        self._transaction_depth = 1
        logger.debug(f"Began {self.backend} transaction")
        try:
            yield self
        except BaseException:
            self._transaction_depth = 0
            logger.debug(f"Rolling back {self.backend} transaction")
            self._rollback()
            raise
        self._transaction_depth = 0
        self._commit()
        logger.debug(f"Committed {self.backend} transaction")

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        """
        Undo only the enclosed statements if they fail.

        Outside a transaction this is a plain pass-through.
        """
        if not self.in_transaction:
            yield
            return

        self.execute(self.savepoint_template.format(name=name))
        try:
            yield
        except Exception:
            self.execute(self.rollback_savepoint_template.format(name=name))
            raise
        if self.release_savepoint_template:
            self.execute(self.release_savepoint_template.format(name=name))

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
