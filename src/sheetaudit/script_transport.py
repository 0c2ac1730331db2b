"""Transport layer for installing the forwarder through the Apps Script API.

Defines the ScriptTransport protocol and implementations:
- GoogleAppsScriptTransport: Production transport using Google Apps Script API
- LocalScriptTransport: Test transport recording calls in memory
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import certifi
import httpx

from sheetaudit.transport import (
    APIError,
    AuthenticationError,
    NotFoundError,
    TransportError,
)

# API constants
API_BASE = "https://script.googleapis.com/v1"
DEFAULT_TIMEOUT = 60


class ScriptExecutionError(TransportError):
    """Raised when a function run through the API throws."""

    def __init__(self, function: str, message: str) -> None:
        super().__init__(f"{function}() failed: {message}")
        self.function = function


@dataclass(frozen=True)
class ScriptProject:
    """An Apps Script project."""

    script_id: str
    title: str
    parent_id: str = ""  # Non-empty for bound scripts
    raw: dict[str, Any] = field(default_factory=dict)


class ScriptTransport(ABC):
    """Abstract base class for Apps Script project transport."""

    @abstractmethod
    async def create_project(self, title: str, parent_id: str) -> ScriptProject:
        """Create a script project bound to a Drive file.

        Args:
            title: Project title
            parent_id: Drive file ID (the spreadsheet) to bind the script to

        Returns:
            ScriptProject for the new project
        """
        ...

    @abstractmethod
    async def update_content(
        self, script_id: str, files: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Replace all files in a project (atomic operation)."""
        ...

    @abstractmethod
    async def run_function(self, script_id: str, function: str) -> Any:
        """Run a function of the project's HEAD version and return its result.

        Raises:
            ScriptExecutionError: If the function throws
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class GoogleAppsScriptTransport(ScriptTransport):
    """Production transport that talks to the Google Apps Script API.

    Handles authentication, SSL, and HTTP communication.
    """

    def __init__(
        self,
        access_token: str,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the transport.

        Args:
            access_token: OAuth2 user access token with script.projects scope.
                Service accounts are not supported by the Apps Script API.
            timeout: Request timeout in seconds.
        """
        self._access_token = access_token
        self._timeout = timeout
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    async def create_project(self, title: str, parent_id: str) -> ScriptProject:
        """Create a bound project via API."""
        data = await self._send(
            "POST", f"{API_BASE}/projects", {"title": title, "parentId": parent_id}
        )
        return ScriptProject(
            script_id=data.get("scriptId", ""),
            title=data.get("title", title),
            parent_id=data.get("parentId", parent_id),
            raw=data,
        )

    async def update_content(
        self, script_id: str, files: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Replace all files in a project."""
        url = f"{API_BASE}/projects/{script_id}/content"
        return await self._send("PUT", url, {"files": files})

    async def run_function(self, script_id: str, function: str) -> Any:
        """Run a function in dev mode (latest saved code, owner only)."""
        url = f"{API_BASE}/scripts/{script_id}:run"
        data = await self._send("POST", url, {"function": function, "devMode": True})
        if "error" in data:
            raise ScriptExecutionError(function, _describe_run_error(data["error"]))
        return data.get("response", {}).get("result")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _send(self, method: str, url: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, url, json=body)
            resp.raise_for_status()
            result: dict[str, Any] = resp.json()
            return result
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> TransportError:
        """Convert HTTP errors to appropriate transport exceptions."""
        status = e.response.status_code
        if status == 401:
            return AuthenticationError("Invalid or expired access token")
        if status == 403:
            body = e.response.text
            return AuthenticationError(
                f"Access denied (403): {body}. "
                "The Apps Script API requires user OAuth tokens "
                "(service accounts are not supported). Check your scopes."
            )
        if status == 404:
            return NotFoundError(
                "Script project not found. Check the script ID and permissions."
            )
        body = e.response.text
        return APIError(f"API error ({status}): {body}", status_code=status)


def _describe_run_error(error: dict[str, Any]) -> str:
    for detail in error.get("details", []):
        message = detail.get("errorMessage")
        if message:
            return str(message)
    return str(error.get("message", "unknown error"))


class LocalScriptTransport(ScriptTransport):
    """Test transport that records calls instead of sending them."""

    def __init__(self, failing_functions: set[str] | None = None) -> None:
        self._failing = failing_functions or set()
        self._counter = 0
        self.projects: list[ScriptProject] = []
        self.updates: list[dict[str, Any]] = []
        self.runs: list[dict[str, str]] = []

    async def create_project(self, title: str, parent_id: str) -> ScriptProject:
        self._counter += 1
        project = ScriptProject(
            script_id=f"script_{self._counter}", title=title, parent_id=parent_id
        )
        self.projects.append(project)
        return project

    async def update_content(
        self, script_id: str, files: list[dict[str, Any]]
    ) -> dict[str, Any]:
        self.updates.append({"script_id": script_id, "files": files})
        return {"scriptId": script_id, "files": files}

    async def run_function(self, script_id: str, function: str) -> Any:
        self.runs.append({"script_id": script_id, "function": function})
        if function in self._failing:
            raise ScriptExecutionError(function, "simulated failure")
        return None

    async def close(self) -> None:
        """No-op for local transport."""
