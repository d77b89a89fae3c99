"""
Loading dumped table data into destination tables.

Provides the Loader class, which empties a table, inserts the dumped rows
and resyncs the primary-key sequence where the engine needs it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from ..core.connection import DatabaseConnection
from ..core.errors import (
    ColumnNotFoundError,
    RecordShapeError,
    StatementError,
    TableLoadError,
)
from ..core.models import ColumnInfo, TableData
from .dump_io import discover_dump_files, iter_tables, parse_documents, read_dump_file

logger = logging.getLogger(__name__)


# Bookkeeping tables written by migration tools, never restored from a dump
DEFAULT_EXCLUDE_TABLES = ("schema_migrations", "ar_internal_metadata", "alembic_version")


class Loader:
    """
    Restores dumped rows into existing tables.

    Every table load runs inside ``connection.transaction()``. Transaction
    scopes join an enclosing scope, so ``load``/``load_file``/``load_from_dir``
    restore all of their tables in a single transaction.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        truncate: bool = True,
        reset_sequences: bool = True,
        exclude_tables: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the loader.

        Args:
            connection: Destination database connection.
            truncate: If True, empty each table before inserting.
            reset_sequences: If True, resync primary-key sequences after a
                table is loaded (on engines that support it).
            exclude_tables: Table names never loaded from a dump.
            dry_run: If True, validate only without writing.
        """
        self.connection = connection
        self.truncate = truncate
        self.reset_sequences = reset_sequences
        self.exclude_tables = set(
            DEFAULT_EXCLUDE_TABLES if exclude_tables is None else exclude_tables
        )
        self.dry_run = dry_run
        self._column_cache: dict[str, list[ColumnInfo]] = {}

    def get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get cached column metadata or fetch it from the connection."""
        if table_name not in self._column_cache:
            self._column_cache[table_name] = list(self.connection.columns(table_name))
        return self._column_cache[table_name]

    def resolve_columns(self, table_name: str, columns: Sequence[str]) -> list[ColumnInfo]:
        """
        Match dumped column names to destination column metadata by name.

        Raises:
            ColumnNotFoundError: If a dumped column does not exist in the table.
        """
        by_name = {column.name: column for column in self.get_columns(table_name)}
        resolved = []
        for name in columns:
            if name not in by_name:
                raise ColumnNotFoundError(table_name, name)
            resolved.append(by_name[name])
        return resolved

    def clear_table(self, table_name: str) -> None:
        """
        Empty a table, preferring TRUNCATE over DELETE.

        If TRUNCATE is rejected (foreign keys referencing the table, engine
        without TRUNCATE, ...) the rows are removed with DELETE instead. A
        failing DELETE propagates.

        Args:
            table_name: Table name.
        """
        quoted_table = self.connection.quote_table_name(table_name)

        try:
            logger.debug(f"Attempting TRUNCATE on {table_name}")
            with self.connection.savepoint("tableload_truncate"):
                self.connection.execute(self.connection.truncate_statement(quoted_table))
            logger.info(f"TRUNCATED {table_name}")
        except StatementError as e:
            logger.warning(f"TRUNCATE failed on {table_name}, using DELETE: {e}")
            self.connection.execute(f"DELETE FROM {quoted_table}")
            logger.info(f"DELETED all rows from {table_name}")

    def insert_records(
        self,
        table_name: str,
        columns: Optional[Sequence[str]],
        records: Sequence[Sequence[Any]],
    ) -> int:
        """
        Insert dumped records into a table, one INSERT per record.

        Args:
            table_name: Target table name.
            columns: Column names, positionally aligned with each record.
                None means the dump has no column list and nothing is inserted.
            records: Rows to insert, in order.

        Returns:
            Number of rows inserted.
        """
        if columns is None:
            return 0

        column_infos = self.resolve_columns(table_name, columns)
        quoted_table = self.connection.quote_table_name(table_name)
        quoted_columns = ",".join(self.connection.quote_identifier(column) for column in columns)

        rows_inserted = 0
        with self.connection.insert_scope(table_name, column_infos):
            for record in records:
                self._check_record_shape(table_name, columns, record, rows_inserted)
                quoted_values = ",".join(
                    self.connection.quote_value(value, column)
                    for value, column in zip(record, column_infos)
                )
                self.connection.execute(
                    f"INSERT INTO {quoted_table} ({quoted_columns}) VALUES ({quoted_values})"
                )
                rows_inserted += 1

        return rows_inserted

    def _check_record_shape(
        self,
        table_name: str,
        columns: Sequence[str],
        record: Sequence[Any],
        index: int,
    ) -> None:
        if len(record) != len(columns):
            raise RecordShapeError(
                f"Record {index + 1} for {table_name} has {len(record)} values "
                f"but {len(columns)} columns"
            )

    def reset_pk_sequence(self, table_name: str) -> None:
        """Resync the table's primary-key sequence if the engine keeps one."""
        if not self.reset_sequences:
            return
        if self.connection.supports_pk_sequence_reset():
            self.connection.reset_pk_sequence(table_name)

    def load_table(
        self,
        table_name: str,
        table_data: Union[TableData, Mapping[str, Any]],
        truncate: Optional[bool] = None,
    ) -> int:
        """
        Clear a table, insert its dumped records and reset its sequence.

        Args:
            table_name: Target table name.
            table_data: TableData, or a mapping with "columns" and "records".
            truncate: Override the loader's truncate setting for this table.

        Returns:
            Number of rows inserted.
        """
        if isinstance(table_data, Mapping):
            table_data = TableData.from_mapping(table_name, table_data)
        if truncate is None:
            truncate = self.truncate

        if self.dry_run:
            return self._validate_table(table_name, table_data)

        with self.connection.transaction():
            if truncate:
                self.clear_table(table_name)
            rows_inserted = self.insert_records(
                table_name, table_data.columns, table_data.records
            )
            self.reset_pk_sequence(table_name)

        logger.info(f"Loaded {rows_inserted} rows into {table_name}")
        return rows_inserted

    def _validate_table(self, table_name: str, table_data: TableData) -> int:
        """Check columns and record shapes without writing anything."""
        if table_data.columns is None:
            return 0
        self.resolve_columns(table_name, table_data.columns)
        for index, record in enumerate(table_data.records):
            self._check_record_shape(table_name, table_data.columns, record, index)
        logger.info(f"[DRY RUN] Would load {table_data.row_count} rows into {table_name}")
        return table_data.row_count

    def load_documents(self, documents: Iterable[Mapping[str, Any]]) -> dict[str, int]:
        """
        Load every table of every dump document.

        A table that appears in several documents is only cleared the first
        time, so split dumps accumulate instead of overwriting each other.

        Args:
            documents: Parsed dump documents.

        Returns:
            Dictionary mapping table names to rows inserted.
        """
        results: dict[str, int] = {}
        for document in documents:
            for table_data in iter_tables(dict(document)):
                table_name = table_data.table_name
                if table_name in self.exclude_tables:
                    logger.info(f"Skipping excluded table {table_name}")
                    continue

                truncate = self.truncate and table_name not in results
                try:
                    rows = self.load_table(table_name, table_data, truncate=truncate)
                except TableLoadError as e:
                    logger.error(f"Failed to load {table_name}: {e}")
                    raise
                results[table_name] = results.get(table_name, 0) + rows
        return results

    def load(self, stream: Any, fmt: str = "yaml") -> dict[str, int]:
        """
        Load a dump stream in one transaction.

        Args:
            stream: Dump text or text stream.
            fmt: "yaml" or "json".

        Returns:
            Dictionary mapping table names to rows inserted.
        """
        documents = parse_documents(stream, fmt)
        if self.dry_run:
            return self.load_documents(documents)
        with self.connection.transaction():
            return self.load_documents(documents)

    def load_file(self, file_path: Path, fmt: Optional[str] = None) -> dict[str, int]:
        """Load a dump file in one transaction; format follows the extension unless given."""
        logger.info(f"Loading dump file: {file_path.name}")
        documents = read_dump_file(file_path, fmt)
        if self.dry_run:
            return self.load_documents(documents)
        with self.connection.transaction():
            return self.load_documents(documents)

    def load_from_dir(self, dump_dir: Path) -> dict[str, int]:
        """
        Load every dump file in a directory, in filename order, in one transaction.

        Args:
            dump_dir: Directory of dump files.

        Returns:
            Dictionary mapping table names to rows inserted.
        """
        dump_files = discover_dump_files(dump_dir)
        if not dump_files:
            logger.warning(f"No dump files found in {dump_dir}")
            return {}

        documents = []
        for dump_file in dump_files:
            logger.info(f"Reading dump file: {dump_file.name}")
            documents.extend(read_dump_file(dump_file))

        if self.dry_run:
            return self.load_documents(documents)
        with self.connection.transaction():
            return self.load_documents(documents)
