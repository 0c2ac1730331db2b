"""
Utility functions for sheetaudit.

Provides A1 notation conversion, range parsing and timestamp formatting.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime
    from zoneinfo import ZoneInfo

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_CELL_RE = re.compile(r"^\$?([A-Za-z]+)\$?(\d+)$")
_ENDPOINT_RE = re.compile(r"^\$?([A-Za-z]*)\$?(\d*)$")


def column_index_to_letter(index: int) -> str:
    """Convert a zero-based column index to A1 notation letter(s).

    Examples:
        0 -> A, 1 -> B, 25 -> Z, 26 -> AA, 27 -> AB, 702 -> AAA
    """
    result = ""
    while True:
        result = chr(ord("A") + (index % 26)) + result
        index = index // 26 - 1
        if index < 0:
            break
    return result


def letter_to_column_index(letter: str) -> int:
    """Convert A1 notation letter(s) to a zero-based column index.

    Examples:
        A -> 0, B -> 1, Z -> 25, AA -> 26, AB -> 27, AAA -> 702
    """
    result = 0
    for char in letter.upper():
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result - 1


def cell_to_a1(row_index: int, col_index: int) -> str:
    """Convert zero-based row and column indices to A1 notation.

    Examples:
        (0, 0) -> A1, (0, 1) -> B1, (9, 2) -> C10
    """
    return f"{column_index_to_letter(col_index)}{row_index + 1}"


def a1_to_cell(a1: str) -> tuple[int, int]:
    """Convert A1 notation to zero-based (row_index, col_index).

    Absolute markers ($A$1) are accepted.
    """
    match = _CELL_RE.match(a1)
    if not match:
        raise ValueError(f"Invalid A1 notation: {a1}")
    col_letter, row_str = match.groups()
    return int(row_str) - 1, letter_to_column_index(col_letter)


def strip_sheet_prefix(a1: str) -> str:
    """Drop a leading sheet name from an A1 reference ('My Sheet'!B2 -> B2)."""
    if "!" in a1:
        return a1.rsplit("!", 1)[1]
    return a1


def range_dimensions(a1: str) -> tuple[int, int]:
    """Return (num_rows, num_cols) for a bounded A1 range.

    Examples:
        A1 -> (1, 1), B2:D5 -> (4, 3)
    """
    a1 = strip_sheet_prefix(a1)
    start, _, end = a1.partition(":")
    start_row, start_col = a1_to_cell(start)
    if not end:
        return 1, 1
    end_row, end_col = a1_to_cell(end)
    return abs(end_row - start_row) + 1, abs(end_col - start_col) + 1


def _parse_endpoint(ref: str) -> tuple[int | None, int | None]:
    """Parse one end of a range; either part may be missing (A, 3, A3)."""
    match = _ENDPOINT_RE.match(ref)
    if not match or not any(match.groups()):
        raise ValueError(f"Invalid A1 notation: {ref}")
    col_letter, row_str = match.groups()
    row = int(row_str) - 1 if row_str else None
    col = letter_to_column_index(col_letter) if col_letter else None
    return row, col


def top_left_cell(a1: str) -> str:
    """Return the first cell of an A1 range (B2:D5 -> B2).

    Whole-column and whole-row ranges start at their first row or column:
    A:C -> A1, 3:5 -> A3, B2:D -> B2.
    """
    a1 = strip_sheet_prefix(a1)
    if ":" not in a1:
        return cell_to_a1(*a1_to_cell(a1))
    start, _, end = a1.partition(":")
    endpoints = [_parse_endpoint(start), _parse_endpoint(end)]
    rows = [row for row, _ in endpoints if row is not None]
    cols = [col for _, col in endpoints if col is not None]
    return cell_to_a1(min(rows, default=0), min(cols, default=0))


def escape_sheet_title(title: str) -> str:
    """Escape sheet title for use in A1 notation ranges.

    Sheet names containing spaces, special characters, or starting with
    digits need to be wrapped in single quotes.
    """
    needs_quoting = (
        " " in title
        or "'" in title
        or "!" in title
        or ":" in title
        or (len(title) > 0 and title[0].isdigit())
    )
    if needs_quoting:
        escaped = title.replace("'", "''")
        return f"'{escaped}'"
    return title


def format_timestamp(moment: datetime, zone: ZoneInfo) -> str:
    """Format a moment as yyyy-MM-dd HH:mm:ss in the given zone."""
    return moment.astimezone(zone).strftime(TIMESTAMP_FORMAT)


def display_value(value: Any) -> str:
    """Render a cell value the way the spreadsheet displays it.

    Examples:
        True -> TRUE, 5.0 -> 5, None -> ""
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
