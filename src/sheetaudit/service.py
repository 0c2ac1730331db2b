"""AuditLogger - notification handlers for sheetaudit.

Each handler processes one notification to completion:
classify -> build message -> append to the log sink -> save the snapshot.
Handlers never raise; failures are logged and reported as a FAILED result.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sheetaudit.differ import diff_structure
from sheetaudit.log_sink import LogSinkResolver
from sheetaudit.logging import (
    audit_baseline_saved,
    audit_entry_recorded,
    audit_entry_suppressed,
    audit_handler_failed,
    audit_source_skipped,
)
from sheetaudit.models import UNKNOWN_USER, LogEntry
from sheetaudit.recorder import record_edit
from sheetaudit.transport import TransportError
from sheetaudit.utils import format_timestamp

if TYPE_CHECKING:
    from collections.abc import Callable

    from sheetaudit.config import Settings
    from sheetaudit.notifications import (
        ChangeNotification,
        EditNotification,
        OpenNotification,
    )
    from sheetaudit.snapshot_store import SnapshotStore
    from sheetaudit.transport import Transport


class Outcome(Enum):
    """What a handler did with a notification."""

    RECORDED = "recorded"  # entry appended
    SUPPRESSED = "suppressed"  # nothing to describe
    SKIPPED = "skipped"  # document not monitored
    BASELINE = "baseline"  # snapshot saved, nothing logged
    FAILED = "failed"


@dataclass(frozen=True)
class HandlerResult:
    """Result of handling one notification."""

    outcome: Outcome
    entry: LogEntry | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "outcome": self.outcome.value,
            "action_type": self.entry.action_type.value if self.entry else None,
            "details": self.entry.details if self.entry else None,
            "error": self.error,
        }


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuditLogger:
    """Records edits and structural changes of monitored spreadsheets.

    Example:
        >>> transport = GoogleSheetsTransport(access_token="ya29...")
        >>> audit = AuditLogger(settings, transport, FileSnapshotStore(settings))
        >>> result = await audit.on_edit(notification)
        >>> result.outcome
        <Outcome.RECORDED: 'recorded'>
    """

    def __init__(
        self,
        settings: Settings,
        transport: Transport,
        store: SnapshotStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the audit logger.

        Args:
            settings: Application settings
            transport: Transport for reading documents and writing log rows
            store: Snapshot store holding the previous structure per document
            clock: Source of the current time (for tests)
        """
        self._settings = settings
        self._transport = transport
        self._store = store
        self._resolver = LogSinkResolver(settings, transport)
        self._clock = clock
        self.outcomes: Counter[str] = Counter()

    def _timestamp(self) -> str:
        return format_timestamp(self._clock(), self._settings.zone)

    def _is_monitored(self, document_id: str) -> bool:
        return self._resolver.destination_for(document_id) is not None

    def _finish(self, result: HandlerResult) -> HandlerResult:
        self.outcomes[result.outcome.value] += 1
        return result

    async def capture_baseline(self, document_id: str) -> int:
        """Capture and save the current structure of a document.

        Returns:
            Number of sheets in the saved snapshot
        """
        structure = await self._transport.get_structure(document_id)
        await self._store.save(document_id, structure)
        audit_baseline_saved(document_id, len(structure))
        return len(structure)

    async def _append(self, document_id: str, entry: LogEntry) -> bool:
        sink = await self._resolver.resolve(document_id)
        if sink is None:
            return False
        try:
            await sink.append(entry)
        except TransportError:
            self._resolver.forget(sink.sheet_name)
            raise
        audit_entry_recorded(
            document_id, entry.action_type.value, sink.sheet_name, entry.details
        )
        return True

    async def on_open(self, notification: OpenNotification) -> HandlerResult:
        """Save the structure of an opened document as the baseline."""
        document_id = notification.source
        if not self._is_monitored(document_id):
            audit_source_skipped(document_id, "open")
            return self._finish(HandlerResult(Outcome.SKIPPED))
        try:
            await self.capture_baseline(document_id)
        except Exception as e:
            audit_handler_failed(document_id, "open", str(e))
            return self._finish(HandlerResult(Outcome.FAILED, error=str(e)))
        return self._finish(HandlerResult(Outcome.BASELINE))

    async def on_edit(self, notification: EditNotification) -> HandlerResult:
        """Record a cell or range edit, then refresh the baseline."""
        document_id = notification.source
        if not self._is_monitored(document_id):
            audit_source_skipped(document_id, "edit")
            return self._finish(HandlerResult(Outcome.SKIPPED))
        try:
            rng = notification.range
            sample = await self._transport.get_cell(
                document_id, rng.sheet, rng.top_left
            )
            entry = record_edit(
                notification,
                sample,
                notification.user or UNKNOWN_USER,
                self._timestamp(),
            )
            if not await self._append(document_id, entry):
                return self._finish(HandlerResult(Outcome.SKIPPED))
            await self.capture_baseline(document_id)
        except Exception as e:
            audit_handler_failed(document_id, "edit", str(e))
            return self._finish(HandlerResult(Outcome.FAILED, error=str(e)))
        return self._finish(HandlerResult(Outcome.RECORDED, entry=entry))

    async def on_change(self, notification: ChangeNotification) -> HandlerResult:
        """Classify a change against the previous snapshot and record it."""
        document_id = notification.source
        if not self._is_monitored(document_id):
            audit_source_skipped(document_id, "change")
            return self._finish(HandlerResult(Outcome.SKIPPED))
        try:
            previous = await self._store.load(document_id)
            current = await self._transport.get_structure(document_id)
            diff = diff_structure(
                previous,
                current,
                notification,
                notification.user or UNKNOWN_USER,
                self._timestamp(),
            )
            if diff.entry is not None and not await self._append(document_id, diff.entry):
                return self._finish(HandlerResult(Outcome.SKIPPED))
            await self._store.save(document_id, diff.snapshot)
        except Exception as e:
            audit_handler_failed(document_id, "change", str(e))
            return self._finish(HandlerResult(Outcome.FAILED, error=str(e)))

        if diff.entry is None:
            audit_entry_suppressed(document_id, notification.tag)
            return self._finish(HandlerResult(Outcome.SUPPRESSED))
        return self._finish(HandlerResult(Outcome.RECORDED, entry=diff.entry))
