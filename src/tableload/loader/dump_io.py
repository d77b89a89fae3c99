"""
Dump file I/O and validation utilities.

A dump is one or more documents. Each document maps table names to table
data of the form::

    mytable:
      columns: [id, name]
      records:
        - [1, "first"]
        - [2, "second"]

YAML dumps may hold several documents separated by ``---``; JSON dumps hold
one object, or an array of objects.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import IO, Any, Iterator, Union

import yaml

from ..core.errors import DumpFormatError
from ..core.models import TableData


FORMAT_BY_SUFFIX = {
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
}

SUPPORTED_FORMATS = ("yaml", "json")


def detect_format(file_path: Path) -> str:
    """
    Determine the dump format from a file extension.

    Raises:
        DumpFormatError: If the extension is not a known dump format.
    """
    fmt = FORMAT_BY_SUFFIX.get(file_path.suffix.lower())
    if fmt is None:
        raise DumpFormatError(f"Unrecognized dump file extension: {file_path}")
    return fmt


def parse_documents(stream: Union[str, IO[str]], fmt: str = "yaml") -> list[dict[str, Any]]:
    """
    Parse a dump stream into its documents.

    Args:
        stream: Dump text or a text stream.
        fmt: "yaml" or "json".

    Returns:
        List of documents (table name -> table data mappings). Empty YAML
        documents are dropped.

    Raises:
        DumpFormatError: If the stream cannot be parsed.
    """
    if fmt == "yaml":
        try:
            documents = [doc for doc in yaml.safe_load_all(stream) if doc is not None]
        except yaml.YAMLError as e:
            raise DumpFormatError(f"Invalid YAML dump: {e}") from e
    elif fmt == "json":
        try:
            data = json.loads(stream) if isinstance(stream, str) else json.load(stream)
        except json.JSONDecodeError as e:
            raise DumpFormatError(f"Invalid JSON dump: {e}") from e
        documents = data if isinstance(data, list) else [data]
    else:
        raise DumpFormatError(
            f"Unsupported dump format: {fmt}. Supported: {', '.join(SUPPORTED_FORMATS)}"
        )

    for document in documents:
        if not isinstance(document, dict):
            raise DumpFormatError(
                f"Dump document must map table names to data, got {type(document).__name__}"
            )
    return documents


def iter_tables(document: dict[str, Any]) -> Iterator[TableData]:
    """
    Yield the tables of one dump document in document order.

    Tables whose data is null are skipped.

    Raises:
        DumpFormatError: If a table's data is not a columns/records mapping.
    """
    for table_name, data in document.items():
        if data is None:
            continue
        _validate_table_data(str(table_name), data)
        yield TableData.from_mapping(str(table_name), data)


def _validate_table_data(table_name: str, data: Any) -> None:
    """Validate the structure of one table's dumped data."""
    if not isinstance(data, dict):
        raise DumpFormatError(f"Data for table '{table_name}' must be a mapping")

    for key in ("columns", "records"):
        if key not in data:
            raise DumpFormatError(f"Missing '{key}' for table '{table_name}'")

    columns = data["columns"]
    if columns is not None and not isinstance(columns, list):
        raise DumpFormatError(f"'columns' must be a list for table '{table_name}'")

    records = data["records"]
    if records is not None and not isinstance(records, list):
        raise DumpFormatError(f"'records' must be a list for table '{table_name}'")

    for index, record in enumerate(records or []):
        if not isinstance(record, (list, dict)):
            raise DumpFormatError(
                f"Record {index + 1} for table '{table_name}' must be a list or mapping, "
                f"got {type(record).__name__}"
            )


def read_dump_file(file_path: Path, fmt: str | None = None) -> list[dict[str, Any]]:
    """
    Read and parse a dump file.

    Args:
        file_path: Path to the dump file.
        fmt: Format override; detected from the extension when omitted.

    Returns:
        Parsed documents.

    Raises:
        DumpFormatError: If the file is missing or invalid.
    """
    if not file_path.exists():
        raise DumpFormatError(f"Dump file not found: {file_path}")

    fmt = fmt or detect_format(file_path)
    with open(file_path, "r", encoding="utf-8") as f:
        return parse_documents(f, fmt)


def discover_dump_files(dump_dir: Path) -> list[Path]:
    """
    Discover all dump files in a directory.

    Args:
        dump_dir: Directory holding one dump file per table (or any split).

    Returns:
        Paths of recognized dump files, sorted by filename.
    """
    if not dump_dir.exists():
        return []

    return sorted(
        path for path in dump_dir.iterdir()
        if path.is_file() and path.suffix.lower() in FORMAT_BY_SUFFIX
    )
