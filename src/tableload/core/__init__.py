"""
Core abstractions for the table loader.
"""

from .connection import DatabaseConnection
from .errors import (
    ColumnNotFoundError,
    DumpFormatError,
    RecordShapeError,
    StatementError,
    TableLoadError,
    UnsupportedOperationError,
)
from .models import ColumnInfo, TableData

__all__ = [
    "DatabaseConnection",
    "ColumnInfo",
    "TableData",
    "TableLoadError",
    "StatementError",
    "ColumnNotFoundError",
    "RecordShapeError",
    "DumpFormatError",
    "UnsupportedOperationError",
]
