"""Google credentials from Application Default Credentials.

Short-lived commands take a single access token. The server keeps the
credentials object and authenticates every request through
GoogleCredentialsAuth, which refreshes the token whenever it has expired.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Generator
from typing import Any

import google.auth
import httpx
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.auth.transport import requests as google_requests

from sheetaudit.transport import AuthenticationError

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Creating bound projects and running functions in them
SCRIPT_SCOPES = [
    "https://www.googleapis.com/auth/script.projects",
    "https://www.googleapis.com/auth/script.scriptapp",
    "https://www.googleapis.com/auth/script.external_request",
    "https://www.googleapis.com/auth/spreadsheets",
]


class CredentialsError(Exception):
    """Raised when no usable Google credentials are available."""


def get_credentials(scopes: list[str]) -> Any:
    """Load Application Default Credentials for the given scopes.

    Uses GOOGLE_APPLICATION_CREDENTIALS, gcloud user credentials, or the
    metadata server on Cloud Run. The returned credentials are not yet
    refreshed.

    Raises:
        CredentialsError: If no credentials are configured
    """
    try:
        credentials, _project = google.auth.default(scopes=scopes)
    except DefaultCredentialsError as e:
        raise CredentialsError(f"No Google credentials found: {e}") from e
    return credentials


def get_access_token(scopes: list[str]) -> str:
    """Return a fresh OAuth2 access token for the given scopes.

    Raises:
        CredentialsError: If credentials are missing or cannot be refreshed
    """
    credentials = get_credentials(scopes)
    try:
        credentials.refresh(google_requests.Request())
    except RefreshError as e:
        raise CredentialsError(f"Could not refresh Google credentials: {e}") from e

    token: str | None = credentials.token
    if not token:
        raise CredentialsError("Google credentials returned no access token")
    return token


class GoogleCredentialsAuth(httpx.Auth):
    """httpx auth that sends a Bearer token from google.auth credentials.

    The token is refreshed before a request when the credentials are no
    longer valid, and once more if the API still answers 401.
    """

    def __init__(self, credentials: Any) -> None:
        self._credentials = credentials

    def _refresh(self) -> None:
        try:
            self._credentials.refresh(google_requests.Request())
        except RefreshError as e:
            raise AuthenticationError(f"Could not refresh Google credentials: {e}") from e

    def _authorize(self, request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Bearer {self._credentials.token}"

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        if not self._credentials.valid:
            self._refresh()
        self._authorize(request)
        response = yield request
        if response.status_code == 401:
            self._refresh()
            self._authorize(request)
            yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        # Refresh does blocking HTTP
        if not self._credentials.valid:
            await asyncio.to_thread(self._refresh)
        self._authorize(request)
        response = yield request
        if response.status_code == 401:
            await asyncio.to_thread(self._refresh)
            self._authorize(request)
            yield request
