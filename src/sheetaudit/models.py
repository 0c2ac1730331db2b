"""Core data types for sheetaudit."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

LOG_HEADER = ("Timestamp", "User", "Action Type", "Details")
UNKNOWN_USER = "Unknown User"
BLANK = "(blank)"
CLEARED = "(cleared)"


class ActionType(Enum):
    """Action Type column values."""

    EDIT = "EDIT"
    BULK_EDIT = "BULK_EDIT"
    INSERT_ROW = "INSERT_ROW"
    REMOVE_ROW = "REMOVE_ROW"
    INSERT_COLUMN = "INSERT_COLUMN"
    REMOVE_COLUMN = "REMOVE_COLUMN"
    INSERT_GRID = "INSERT_GRID"
    REMOVE_GRID = "REMOVE_GRID"
    RENAME_SHEET = "RENAME_SHEET"
    UNKNOWN_CHANGE = "UNKNOWN_CHANGE"


@dataclass(frozen=True)
class SheetDimensions:
    """Row and column counts of a single sheet."""

    rows: int = 0
    cols: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"rows": self.rows, "cols": self.cols}


# Sheet name -> dimensions, in sheet order
StructureSnapshot = dict[str, SheetDimensions]

EMPTY_DIMENSIONS = SheetDimensions()


def snapshot_to_dict(snapshot: StructureSnapshot) -> dict[str, dict[str, int]]:
    """Convert a snapshot to its JSON-serializable form."""
    return {name: dims.to_dict() for name, dims in snapshot.items()}


def snapshot_from_dict(data: dict[str, Any]) -> StructureSnapshot:
    """Parse the JSON form produced by snapshot_to_dict.

    Missing counts default to zero.
    """
    snapshot: StructureSnapshot = {}
    for name, dims in data.items():
        dims = dims or {}
        snapshot[name] = SheetDimensions(
            rows=int(dims.get("rows", 0)),
            cols=int(dims.get("cols", 0)),
        )
    return snapshot


@dataclass(frozen=True)
class LogEntry:
    """One row of the audit log."""

    timestamp: str
    user: str
    action_type: ActionType
    details: str

    def as_row(self) -> list[str]:
        """Values in log column order."""
        return [self.timestamp, self.user, self.action_type.value, self.details]


@dataclass(frozen=True)
class MonitoredSource:
    """A watched spreadsheet and the log sheet its entries go to."""

    document_id: str
    log_destination_name: str


@dataclass(frozen=True)
class CellSample:
    """Content of a single cell as read from the spreadsheet."""

    value: Any = ""
    formula: str | None = None

    @property
    def is_formula(self) -> bool:
        return bool(self.formula)
