"""Locate (or create) the sheet a document's log entries are appended to."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from sheetaudit.models import LOG_HEADER, LogEntry

if TYPE_CHECKING:
    from sheetaudit.config import Settings
    from sheetaudit.transport import Transport


class LogSink:
    """An append-only log sheet."""

    def __init__(self, transport: Transport, spreadsheet_id: str, sheet_name: str) -> None:
        self._transport = transport
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    async def append(self, entry: LogEntry) -> None:
        """Append one entry as a row."""
        await self._transport.append_row(
            self.spreadsheet_id, self.sheet_name, entry.as_row()
        )

    def __repr__(self) -> str:
        return f"LogSink({self.spreadsheet_id!r}, {self.sheet_name!r})"


class LogSinkResolver:
    """Maps a source document to its log sheet.

    Single-document mode always resolves to `settings.log_sheet_name`.
    Multi-document mode resolves only listed documents; any other document
    gets None and must not be logged.

    Sheets found or created are remembered, so the log spreadsheet is only
    inspected the first time a sheet is resolved.
    """

    def __init__(self, settings: Settings, transport: Transport) -> None:
        self._settings = settings
        self._transport = transport
        # Log sheets known to exist
        self._confirmed: set[str] = set()

    def destination_for(self, document_id: str | None) -> str | None:
        """Name of the log sheet for a document, without touching the API."""
        if not self._settings.is_multi_document:
            return self._settings.log_sheet_name
        if document_id is None:
            return None
        source = self._settings.find_source(document_id)
        return source.log_destination_name if source else None

    async def resolve(self, document_id: str | None = None) -> LogSink | None:
        """Return the log sink for a document, creating the sheet if needed.

        Args:
            document_id: Source document (routing key in multi-document mode)

        Returns:
            LogSink, or None if the document is not monitored
        """
        sheet_name = self.destination_for(document_id)
        if sheet_name is None:
            return None

        spreadsheet_id = self._settings.log_spreadsheet_id
        if sheet_name not in self._confirmed:
            existing = await self._transport.get_structure(spreadsheet_id)
            if sheet_name not in existing:
                logger.info(f"Creating log sheet '{sheet_name}'")
                await self._transport.add_sheet(spreadsheet_id, sheet_name)
                await self._transport.append_row(
                    spreadsheet_id, sheet_name, list(LOG_HEADER)
                )
            self._confirmed.add(sheet_name)

        return LogSink(self._transport, spreadsheet_id, sheet_name)

    def forget(self, sheet_name: str) -> None:
        """Check the sheet again on the next resolve (after a failed append)."""
        self._confirmed.discard(sheet_name)
