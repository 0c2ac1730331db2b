"""Transport layer for reading spreadsheet state and writing log rows.

Defines the Transport protocol and implementations:
- GoogleSheetsTransport: Production transport using Google Sheets API
- LocalTransport: In-memory transport for tests and dry runs
"""

from __future__ import annotations

import ssl
import urllib.parse
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import certifi
import httpx

from sheetaudit.models import CellSample, SheetDimensions, StructureSnapshot
from sheetaudit.utils import a1_to_cell, escape_sheet_title

# API constants
API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_TIMEOUT = 60


class TransportError(Exception):
    """Base exception for transport errors."""


class AuthenticationError(TransportError):
    """Raised when authentication fails (401/403)."""


class NotFoundError(TransportError):
    """Raised when spreadsheet is not found (404)."""


class APIError(TransportError):
    """Raised when the API returns an error."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class DeveloperMetadata:
    """A spreadsheet-level developer metadata entry."""

    metadata_id: int
    key: str
    value: str


class Transport(ABC):
    """Abstract base class for spreadsheet transport.

    Implementations read sheet dimensions and cell contents of watched
    spreadsheets and append rows to the log spreadsheet.
    """

    @abstractmethod
    async def get_structure(self, spreadsheet_id: str) -> StructureSnapshot:
        """Fetch the row and column count of every sheet.

        Args:
            spreadsheet_id: The spreadsheet identifier

        Returns:
            Snapshot keyed by sheet title, in sheet order
        """
        ...

    @abstractmethod
    async def get_cell(self, spreadsheet_id: str, sheet: str, a1: str) -> CellSample:
        """Fetch the value and formula of a single cell.

        Args:
            spreadsheet_id: The spreadsheet identifier
            sheet: Sheet title
            a1: Cell in A1 notation

        Returns:
            CellSample with the formula set if the cell holds one
        """
        ...

    @abstractmethod
    async def add_sheet(self, spreadsheet_id: str, title: str) -> None:
        """Add a sheet with the given title."""
        ...

    @abstractmethod
    async def append_row(
        self, spreadsheet_id: str, sheet: str, values: list[str]
    ) -> None:
        """Append one row of raw values after the last row of a sheet."""
        ...

    @abstractmethod
    async def find_metadata(
        self, spreadsheet_id: str, key: str
    ) -> DeveloperMetadata | None:
        """Look up spreadsheet-level developer metadata by key."""
        ...

    @abstractmethod
    async def write_metadata(
        self,
        spreadsheet_id: str,
        key: str,
        value: str,
        existing: DeveloperMetadata | None = None,
    ) -> None:
        """Create or update spreadsheet-level developer metadata."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class GoogleSheetsTransport(Transport):
    """Production transport that talks to the Google Sheets API.

    Handles authentication, SSL, and HTTP communication.
    """

    def __init__(
        self,
        access_token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        *,
        auth: httpx.Auth | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            access_token: OAuth2 access token with the spreadsheets scope,
                sent unchanged on every request
            timeout: Request timeout in seconds
            auth: httpx auth used instead of a fixed token (the server
                passes GoogleCredentialsAuth so expired tokens are refreshed)
        """
        if access_token is None and auth is None:
            raise ValueError("Either access_token or auth is required")
        self._timeout = timeout
        headers = {"Accept": "application/json"}
        if auth is None:
            headers["Authorization"] = f"Bearer {access_token}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers=headers,
            auth=auth,
        )

    async def get_structure(self, spreadsheet_id: str) -> StructureSnapshot:
        """Fetch sheet titles and grid sizes from Google Sheets API."""
        fields = "sheets.properties(title,gridProperties(rowCount,columnCount))"
        url = f"{API_BASE}/{spreadsheet_id}?fields={urllib.parse.quote(fields)}"
        response = await self._request("GET", url)
        return _parse_structure(response)

    async def get_cell(self, spreadsheet_id: str, sheet: str, a1: str) -> CellSample:
        """Fetch one cell with FORMULA rendering.

        The FORMULA render option returns the formula text for formula cells
        and the unformatted value for everything else.
        """
        cell_range = urllib.parse.quote(f"{escape_sheet_title(sheet)}!{a1}", safe="")
        url = (
            f"{API_BASE}/{spreadsheet_id}/values/{cell_range}"
            "?valueRenderOption=FORMULA&dateTimeRenderOption=FORMATTED_STRING"
        )
        response = await self._request("GET", url)
        return _parse_cell(response)

    async def add_sheet(self, spreadsheet_id: str, title: str) -> None:
        """Add a sheet via batchUpdate."""
        await self._batch_update(
            spreadsheet_id,
            [{"addSheet": {"properties": {"title": title}}}],
        )

    async def append_row(
        self, spreadsheet_id: str, sheet: str, values: list[str]
    ) -> None:
        """Append a row via values.append, inserting rather than overwriting."""
        target = urllib.parse.quote(f"{escape_sheet_title(sheet)}!A1", safe="")
        url = (
            f"{API_BASE}/{spreadsheet_id}/values/{target}:append"
            "?valueInputOption=RAW&insertDataOption=INSERT_ROWS"
        )
        await self._request("POST", url, {"values": [values]})

    async def find_metadata(
        self, spreadsheet_id: str, key: str
    ) -> DeveloperMetadata | None:
        """Search spreadsheet-level developer metadata by key."""
        url = f"{API_BASE}/{spreadsheet_id}/developerMetadata:search"
        body = {
            "dataFilters": [
                {
                    "developerMetadataLookup": {
                        "metadataKey": key,
                        "locationType": "SPREADSHEET",
                    }
                }
            ]
        }
        response = await self._request("POST", url, body)
        for match in response.get("matchedDeveloperMetadata", []):
            meta = match.get("developerMetadata", {})
            if meta.get("metadataKey") == key:
                return DeveloperMetadata(
                    metadata_id=meta.get("metadataId", 0),
                    key=key,
                    value=meta.get("metadataValue", ""),
                )
        return None

    async def write_metadata(
        self,
        spreadsheet_id: str,
        key: str,
        value: str,
        existing: DeveloperMetadata | None = None,
    ) -> None:
        """Create the metadata entry, or update it in place if it exists."""
        if existing is None:
            request = {
                "createDeveloperMetadata": {
                    "developerMetadata": {
                        "metadataKey": key,
                        "metadataValue": value,
                        "location": {"spreadsheet": True},
                        "visibility": "PROJECT",
                    }
                }
            }
        else:
            request = {
                "updateDeveloperMetadata": {
                    "dataFilters": [
                        {
                            "developerMetadataLookup": {
                                "metadataId": existing.metadata_id,
                            }
                        }
                    ],
                    "developerMetadata": {"metadataValue": value},
                    "fields": "metadataValue",
                }
            }
        await self._batch_update(spreadsheet_id, [request])

    async def _batch_update(
        self, spreadsheet_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        url = f"{API_BASE}/{spreadsheet_id}:batchUpdate"
        return await self._request("POST", url, {"requests": requests})

    async def _request(
        self, method: str, url: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Make an authenticated request."""
        try:
            response = await self._client.request(method, url, json=body)
            response.raise_for_status()
            result: dict[str, Any] = response.json()
            return result
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationError("Invalid or expired access token") from e
            if status == 403:
                raise AuthenticationError(
                    "Access denied. Check your scopes and permissions."
                ) from e
            if status == 404:
                raise NotFoundError(
                    "Spreadsheet not found. Check the ID and sharing permissions."
                ) from e
            body_text = e.response.text
            raise APIError(
                f"API error ({status}): {body_text}", status_code=status
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


@dataclass
class _LocalSpreadsheet:
    sheets: StructureSnapshot = field(default_factory=dict)
    cells: dict[tuple[str, str], CellSample] = field(default_factory=dict)
    rows: dict[str, list[list[str]]] = field(default_factory=dict)
    metadata: dict[str, DeveloperMetadata] = field(default_factory=dict)


class LocalTransport(Transport):
    """In-memory transport for tests and dry runs.

    Spreadsheets are created on first use. Appended rows are kept per sheet
    and can be inspected through `rows()`.
    """

    def __init__(self) -> None:
        self._spreadsheets: dict[str, _LocalSpreadsheet] = {}
        self._next_metadata_id = 1

    def _get(self, spreadsheet_id: str) -> _LocalSpreadsheet:
        return self._spreadsheets.setdefault(spreadsheet_id, _LocalSpreadsheet())

    def set_structure(self, spreadsheet_id: str, structure: StructureSnapshot) -> None:
        """Replace the sheets of a spreadsheet."""
        self._get(spreadsheet_id).sheets = dict(structure)

    def set_cell(
        self,
        spreadsheet_id: str,
        sheet: str,
        a1: str,
        value: Any = "",
        formula: str | None = None,
    ) -> None:
        """Set the content of one cell."""
        a1_to_cell(a1)
        self._get(spreadsheet_id).cells[(sheet, a1.upper())] = CellSample(value, formula)

    def rows(self, spreadsheet_id: str, sheet: str) -> list[list[str]]:
        """Rows appended to a sheet so far, header included."""
        return self._get(spreadsheet_id).rows.get(sheet, [])

    async def get_structure(self, spreadsheet_id: str) -> StructureSnapshot:
        if spreadsheet_id not in self._spreadsheets:
            raise NotFoundError(f"Spreadsheet not found: {spreadsheet_id}")
        return dict(self._spreadsheets[spreadsheet_id].sheets)

    async def get_cell(self, spreadsheet_id: str, sheet: str, a1: str) -> CellSample:
        if spreadsheet_id not in self._spreadsheets:
            raise NotFoundError(f"Spreadsheet not found: {spreadsheet_id}")
        return self._spreadsheets[spreadsheet_id].cells.get(
            (sheet, a1.upper()), CellSample()
        )

    async def add_sheet(self, spreadsheet_id: str, title: str) -> None:
        spreadsheet = self._get(spreadsheet_id)
        if title in spreadsheet.sheets:
            raise APIError(
                f"A sheet with the name \"{title}\" already exists.", status_code=400
            )
        spreadsheet.sheets[title] = SheetDimensions(rows=1000, cols=26)
        spreadsheet.rows[title] = []

    async def append_row(
        self, spreadsheet_id: str, sheet: str, values: list[str]
    ) -> None:
        spreadsheet = self._get(spreadsheet_id)
        if sheet not in spreadsheet.sheets:
            raise APIError(f"Unable to parse range: {sheet}!A1", status_code=400)
        spreadsheet.rows.setdefault(sheet, []).append(list(values))

    async def find_metadata(
        self, spreadsheet_id: str, key: str
    ) -> DeveloperMetadata | None:
        return self._get(spreadsheet_id).metadata.get(key)

    async def write_metadata(
        self,
        spreadsheet_id: str,
        key: str,
        value: str,
        existing: DeveloperMetadata | None = None,
    ) -> None:
        spreadsheet = self._get(spreadsheet_id)
        if existing is None:
            metadata_id = self._next_metadata_id
            self._next_metadata_id += 1
        else:
            metadata_id = existing.metadata_id
        spreadsheet.metadata[key] = DeveloperMetadata(metadata_id, key, value)

    async def close(self) -> None:
        """No-op for local transport."""
        pass


def _parse_structure(response: dict[str, Any]) -> StructureSnapshot:
    structure: StructureSnapshot = {}
    for sheet in response.get("sheets", []):
        props = sheet.get("properties", {})
        grid_props = props.get("gridProperties", {})
        structure[props.get("title", "")] = SheetDimensions(
            rows=grid_props.get("rowCount", 0),
            cols=grid_props.get("columnCount", 0),
        )
    return structure


def _parse_cell(response: dict[str, Any]) -> CellSample:
    values = response.get("values") or [[]]
    row = values[0] if values else []
    raw: Any = row[0] if row else ""
    if isinstance(raw, str) and raw.startswith("="):
        return CellSample(value=raw, formula=raw)
    return CellSample(value=raw)

