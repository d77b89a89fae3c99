"""
SQL literal rendering shared by the concrete connections.

Values are rendered according to the destination column's declared type:
numbers headed for text columns become string literals, numeric strings
headed for numeric columns stay unquoted, and boolean columns accept the
usual dump spellings ('t', 'f', '1', '0', ...).
"""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Optional

from .models import ColumnInfo


NUMERIC_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

TRUE_VALUES = {"t", "true", "1", "y", "yes", "on"}
FALSE_VALUES = {"f", "false", "0", "n", "no", "off"}


def quote_string(value: str) -> str:
    """Render a string literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def hex_binary_literal(value: bytes) -> str:
    """Standard SQL blob literal: X'0A1B'."""
    return f"X'{value.hex().upper()}'"


def is_nonfinite(value: Any) -> bool:
    """True for NaN and infinite floats or Decimals."""
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, Decimal):
        return not value.is_finite()
    return False


def nonfinite_string_literal(value: Any) -> str:
    """Quoted 'NaN'/'Infinity'/'-Infinity', as PostgreSQL spells them."""
    if is_nan(value):
        return "'NaN'"
    return "'Infinity'" if value > 0 else "'-Infinity'"


def is_nan(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_nan()
    return math.isnan(value)


def to_boolean(value: Any) -> Optional[bool]:
    """
    Interpret a dumped value as a boolean.

    Returns None when the value has no boolean reading.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    return None


def quote_value(
    value: Any,
    column: Optional[ColumnInfo] = None,
    true_literal: str = "TRUE",
    false_literal: str = "FALSE",
    binary_literal: Callable[[bytes], str] = hex_binary_literal,
    nonfinite_literal: Callable[[Any], str] = nonfinite_string_literal,
) -> str:
    """
    Render ``value`` as a SQL literal for ``column``.

    Args:
        value: Raw value from the dump
        column: Destination column metadata (None renders by Python type only)
        true_literal: Literal for boolean true on this engine
        false_literal: Literal for boolean false on this engine
        binary_literal: Renders raw bytes for this engine
        nonfinite_literal: Renders NaN and infinities for this engine

    Returns:
        SQL literal text
    """
    if value is None:
        return "NULL"

    if column is not None and column.is_boolean:
        flag = to_boolean(value)
        if flag is not None:
            return true_literal if flag else false_literal

    if isinstance(value, bool):
        # Integer columns holding flags (e.g. tinyint(1)) reject TRUE/FALSE
        if column is not None and column.is_numeric:
            return "1" if value else "0"
        return true_literal if value else false_literal

    if isinstance(value, (int, float, Decimal)):
        if column is not None and column.data_type and not column.is_numeric:
            return quote_string(str(value))
        if is_nonfinite(value):
            return nonfinite_literal(value)
        return str(value)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return binary_literal(bytes(value))

    if isinstance(value, datetime):
        return quote_string(value.isoformat(sep=" "))

    if isinstance(value, (date, time)):
        return quote_string(value.isoformat())

    if isinstance(value, (dict, list)):
        return quote_string(json.dumps(value, ensure_ascii=False))

    text = str(value)
    if column is not None and column.is_numeric and NUMERIC_PATTERN.match(text.strip()):
        return text.strip()
    return quote_string(text)
