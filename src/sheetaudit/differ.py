"""Structure diffing for change notifications.

Classification compares the snapshot saved after the previous notification
with one captured now. The transition is pure: persistence of the returned
snapshot is up to the caller.

Row and column deltas are only checked on the sheet that was active when the
forwarder fired, and the index it reports is the active range at delivery
time. Both are approximations; messages say "approx." accordingly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sheetaudit.models import (
    EMPTY_DIMENSIONS,
    ActionType,
    LogEntry,
    StructureSnapshot,
)

if TYPE_CHECKING:
    from sheetaudit.notifications import ChangeNotification

ROW_TAGS = frozenset({"INSERT_ROW", "REMOVE_ROW"})
COLUMN_TAGS = frozenset({"INSERT_COLUMN", "REMOVE_COLUMN"})


@dataclass(frozen=True)
class StructureDiff:
    """Result of comparing two snapshots."""

    snapshot: StructureSnapshot  # new baseline for the next notification
    entry: LogEntry | None  # None when there is nothing to describe


def added_sheets(previous: StructureSnapshot, current: StructureSnapshot) -> list[str]:
    """Sheet names in current but not previous, in current order."""
    return [name for name in current if name not in previous]


def removed_sheets(previous: StructureSnapshot, current: StructureSnapshot) -> list[str]:
    """Sheet names in previous but not current, in previous order."""
    return [name for name in previous if name not in current]


def _index_text(index: int | None) -> str:
    if index is None:
        return "approx. index unknown"
    return f"approx. at index {index}"


def _dimension_change(
    previous: StructureSnapshot,
    current: StructureSnapshot,
    notification: ChangeNotification,
    user: str,
    timestamp: str,
    *,
    rows: bool,
) -> LogEntry | None:
    sheet = notification.active_sheet
    if sheet is None:
        return None

    old = previous.get(sheet, EMPTY_DIMENSIONS)
    new = current.get(sheet, EMPTY_DIMENSIONS)
    old_count, new_count = (old.rows, new.rows) if rows else (old.cols, new.cols)
    if new_count == old_count:
        return None

    noun = "row(s)" if rows else "column(s)"
    index = _index_text(notification.active_row if rows else notification.active_column)
    if new_count > old_count:
        verb = "inserted"
        action = ActionType.INSERT_ROW if rows else ActionType.INSERT_COLUMN
    else:
        verb = "deleted"
        action = ActionType.REMOVE_ROW if rows else ActionType.REMOVE_COLUMN

    details = f"{user} {verb} {noun} ({index}) in '{sheet}' at {timestamp}"
    return LogEntry(timestamp, user, action, details)


def describe_change(
    previous: StructureSnapshot,
    current: StructureSnapshot,
    notification: ChangeNotification,
    user: str,
    timestamp: str,
) -> LogEntry | None:
    """Classify a change notification against two snapshots.

    Returns:
        LogEntry describing the change, or None when a row/column
        notification shows no delta on the active sheet.
    """
    tag = notification.tag

    if tag in ROW_TAGS:
        return _dimension_change(previous, current, notification, user, timestamp, rows=True)

    if tag in COLUMN_TAGS:
        return _dimension_change(previous, current, notification, user, timestamp, rows=False)

    if tag == "INSERT_GRID":
        added = added_sheets(previous, current)
        if added:
            details = f"{user} added a new sheet '{added[0]}' at {timestamp}"
        else:
            details = f"{user} added a new sheet at {timestamp}"
        return LogEntry(timestamp, user, ActionType.INSERT_GRID, details)

    if tag == "REMOVE_GRID":
        removed = removed_sheets(previous, current)
        if removed:
            details = f"{user} deleted sheet '{removed[0]}' at {timestamp}"
        else:
            details = f"{user} deleted a sheet at {timestamp}"
        return LogEntry(timestamp, user, ActionType.REMOVE_GRID, details)

    if tag == "RENAME_SHEET":
        renamed_from = removed_sheets(previous, current)
        renamed_to = added_sheets(previous, current)
        if renamed_from and renamed_to:
            details = (
                f"{user} renamed sheet '{renamed_from[0]}' to '{renamed_to[0]}' "
                f"at {timestamp}"
            )
        else:
            details = f"{user} renamed a sheet at {timestamp}"
        return LogEntry(timestamp, user, ActionType.RENAME_SHEET, details)

    details = f"{user} performed a '{tag}' action at {timestamp}"
    return LogEntry(timestamp, user, ActionType.UNKNOWN_CHANGE, details)


def diff_structure(
    previous: StructureSnapshot,
    current: StructureSnapshot,
    notification: ChangeNotification,
    user: str,
    timestamp: str,
) -> StructureDiff:
    """Advance the snapshot baseline by one notification.

    Args:
        previous: Snapshot saved after the previous notification ({} if none)
        current: Snapshot captured for this notification
        notification: The change notification
        user: Acting user
        timestamp: Formatted event time

    Returns:
        StructureDiff with current as the new baseline and the entry to log
    """
    entry = describe_change(previous, current, notification, user, timestamp)
    return StructureDiff(snapshot=current, entry=entry)
