"""Turn edit notifications into log entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sheetaudit.models import BLANK, CLEARED, ActionType, CellSample, LogEntry
from sheetaudit.utils import display_value

if TYPE_CHECKING:
    from sheetaudit.notifications import EditNotification


def describe_content(sample: CellSample) -> str:
    """Formula (prefixed) or value of a cell, with empty shown as (cleared)."""
    content = f"Formula: {sample.formula}" if sample.is_formula else display_value(sample.value)
    return content if content != "" else CLEARED


def record_edit(
    notification: EditNotification,
    sample: CellSample,
    user: str,
    timestamp: str,
) -> LogEntry:
    """Build the log entry for an edit.

    Ranges spanning more than one row or column are bulk edits (paste, drag,
    clear) described by their top-left cell only.

    Args:
        notification: The edit notification
        sample: Content of the top-left cell after the edit
        user: Acting user
        timestamp: Formatted event time

    Returns:
        EDIT or BULK_EDIT LogEntry
    """
    rng = notification.range
    content = describe_content(sample)

    if not rng.is_single_cell:
        kind = "formulas" if sample.is_formula else "values"
        details = (
            f"{user} updated range {rng.a1} on '{rng.sheet}' with {kind} "
            f"(first cell: '{content}') at {timestamp}"
        )
        return LogEntry(timestamp, user, ActionType.BULK_EDIT, details)

    old_value = notification.old_value if notification.old_value is not None else BLANK
    details = (
        f"{user} edited {rng.a1} on '{rng.sheet}' from '{old_value}' "
        f"to '{content}' at {timestamp}"
    )
    return LogEntry(timestamp, user, ActionType.EDIT, details)
