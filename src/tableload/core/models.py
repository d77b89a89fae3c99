"""
Data models for table dumps and destination column metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .errors import DumpFormatError


# Declared types (lower-cased, without length/precision) grouped by literal style
NUMERIC_TYPES = {
    "int", "integer", "smallint", "bigint", "tinyint", "mediumint",
    "serial", "bigserial", "smallserial",
    "decimal", "numeric", "money", "smallmoney",
    "real", "float", "double", "double precision", "float4", "float8",
    "int2", "int4", "int8",
}
BOOLEAN_TYPES = {"bool", "boolean", "bit"}
BINARY_TYPES = {"blob", "bytea", "binary", "varbinary", "image"}


@dataclass
class ColumnInfo:
    """Information about a destination table column."""

    name: str
    data_type: str = ""
    is_nullable: bool = True
    is_primary_key: bool = False
    is_identity: bool = False
    ordinal: int = 0

    @property
    def base_type(self) -> str:
        """Declared type lower-cased with any ``(length)`` suffix removed."""
        return self.data_type.split("(", 1)[0].strip().lower()

    @property
    def is_numeric(self) -> bool:
        return self.base_type in NUMERIC_TYPES

    @property
    def is_boolean(self) -> bool:
        return self.base_type in BOOLEAN_TYPES

    @property
    def is_binary(self) -> bool:
        return self.base_type in BINARY_TYPES


@dataclass
class TableData:
    """
    One table's worth of dumped data.

    ``columns`` is the ordered column list; each record is a list of values
    positionally aligned with it. ``columns`` may be None when the dump
    carried no column list (an empty table dumped without schema).
    """

    table_name: str
    columns: Optional[list[str]]
    records: list[list[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)

    @classmethod
    def from_mapping(cls, table_name: str, data: Mapping[str, Any]) -> "TableData":
        """Build from a ``{"columns": [...], "records": [...]}`` mapping."""
        columns = data.get("columns")
        records = data.get("records") or []
        return cls(
            table_name=table_name,
            columns=list(columns) if columns is not None else None,
            records=unhash_records(records, columns) if columns is not None else list(records),
        )


def unhash(record: Mapping[str, Any], columns: Sequence[str]) -> list[Any]:
    """Convert a column -> value mapping into a list ordered by ``columns``."""
    return [record.get(column) for column in columns]


def unhash_records(records: Sequence[Any], columns: Sequence[str]) -> list[list[Any]]:
    """
    Normalize records into positional lists.

    Records already given as sequences are kept as-is; mapping records are
    reordered to follow ``columns``.
    """
    result = []
    for index, record in enumerate(records):
        if isinstance(record, Mapping):
            result.append(unhash(record, columns))
        elif isinstance(record, Sequence) and not isinstance(record, (str, bytes)):
            result.append(list(record))
        else:
            raise DumpFormatError(
                f"Record {index + 1} must be a sequence or mapping, got {type(record).__name__}"
            )
    return result
