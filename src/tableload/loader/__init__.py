"""
Dump loading modules.

This package provides utilities for reading table dumps and restoring their
rows into existing database tables.
"""

from .dump_io import discover_dump_files, parse_documents, read_dump_file
from .load import Loader

__all__ = [
    "Loader",
    "parse_documents",
    "read_dump_file",
    "discover_dump_files",
]
