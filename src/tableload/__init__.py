"""
tableload: restore serialized table dumps into relational databases.

Dumps hold, per table, an ordered column list and row records. Loading a
table empties it, inserts every record with the destination's quoting rules
and resyncs its primary-key sequence on engines that keep one.
"""

from .connections import create_connection
from .core import ColumnInfo, DatabaseConnection, TableData
from .loader import Loader

__version__ = "0.1.0"

__all__ = [
    "ColumnInfo",
    "DatabaseConnection",
    "Loader",
    "TableData",
    "create_connection",
    "__version__",
]
