"""sheetaudit - audit trail of edits and structural changes to Google Sheets.

Notifications from a bound forwarder script are classified (cell edit,
bulk edit, row/column/sheet change) and appended as rows to a log
spreadsheet.
"""

__version__ = "0.1.0"

from sheetaudit.differ import StructureDiff, diff_structure
from sheetaudit.models import (
    ActionType,
    CellSample,
    LogEntry,
    MonitoredSource,
    SheetDimensions,
    StructureSnapshot,
)
from sheetaudit.recorder import record_edit
from sheetaudit.service import AuditLogger, HandlerResult, Outcome
from sheetaudit.transport import (
    APIError,
    AuthenticationError,
    GoogleSheetsTransport,
    LocalTransport,
    NotFoundError,
    Transport,
    TransportError,
)

__all__ = [
    "APIError",
    "ActionType",
    "AuditLogger",
    "AuthenticationError",
    "CellSample",
    "GoogleSheetsTransport",
    "HandlerResult",
    "LocalTransport",
    "LogEntry",
    "MonitoredSource",
    "NotFoundError",
    "Outcome",
    "SheetDimensions",
    "StructureDiff",
    "StructureSnapshot",
    "Transport",
    "TransportError",
    "__version__",
    "diff_structure",
    "record_edit",
]
