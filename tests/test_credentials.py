"""Tests for Google credentials handling."""

from __future__ import annotations

import google.auth
import httpx
import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError

from sheetaudit import credentials as credentials_module
from sheetaudit.credentials import (
    CredentialsError,
    GoogleCredentialsAuth,
    get_access_token,
    get_credentials,
)
from sheetaudit.transport import AuthenticationError, GoogleSheetsTransport


class FakeCredentials:
    """Credentials whose token can be expired on demand."""

    def __init__(self, fail: bool = False) -> None:
        self.token: str | None = None
        self.valid = False
        self.refreshes = 0
        self._fail = fail

    def refresh(self, _request: object) -> None:
        if self._fail:
            raise RefreshError("invalid_grant")
        self.refreshes += 1
        self.token = f"token-{self.refreshes}"
        self.valid = True

    def expire(self) -> None:
        self.valid = False


def make_client(
    creds: FakeCredentials, seen: list[str], statuses: list[int] | None = None
) -> httpx.AsyncClient:
    pending = list(statuses or [])

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        return httpx.Response(pending.pop(0) if pending else 200, json={})

    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), auth=GoogleCredentialsAuth(creds)
    )


class TestGoogleCredentialsAuth:
    async def test_refreshes_only_when_invalid(self) -> None:
        creds = FakeCredentials()
        seen: list[str] = []
        client = make_client(creds, seen)

        await client.get("https://sheets.example/a")
        await client.get("https://sheets.example/b")

        assert seen == ["Bearer token-1", "Bearer token-1"]
        assert creds.refreshes == 1

    async def test_expired_token_is_refreshed(self) -> None:
        creds = FakeCredentials()
        seen: list[str] = []
        client = make_client(creds, seen)

        await client.get("https://sheets.example/a")
        creds.expire()
        await client.get("https://sheets.example/b")

        assert seen == ["Bearer token-1", "Bearer token-2"]

    async def test_unauthorized_retried_once_with_new_token(self) -> None:
        creds = FakeCredentials()
        seen: list[str] = []
        client = make_client(creds, seen, statuses=[401])

        response = await client.get("https://sheets.example/a")

        assert response.status_code == 200
        assert seen == ["Bearer token-1", "Bearer token-2"]

    async def test_refresh_failure(self) -> None:
        client = make_client(FakeCredentials(fail=True), [])
        with pytest.raises(AuthenticationError, match="invalid_grant"):
            await client.get("https://sheets.example/a")


class TestSheetsTransportAuth:
    async def test_keeps_working_after_token_expiry(self) -> None:
        creds = FakeCredentials()
        seen: list[str] = []
        transport = GoogleSheetsTransport(auth=GoogleCredentialsAuth(creds))
        transport._client = make_client(creds, seen)

        await transport.get_structure("ss-1")
        creds.expire()
        await transport.append_row("log", "Logs", ["x"])

        assert seen == ["Bearer token-1", "Bearer token-2"]
        await transport.close()

    def test_requires_token_or_auth(self) -> None:
        with pytest.raises(ValueError):
            GoogleSheetsTransport()


class TestDefaultCredentials:
    def test_missing_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def no_credentials(scopes: list[str]) -> None:  # noqa: ARG001
            raise DefaultCredentialsError("not configured")

        monkeypatch.setattr(google.auth, "default", no_credentials)
        with pytest.raises(CredentialsError, match="No Google credentials"):
            get_credentials(["scope"])

    def test_access_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        creds = FakeCredentials()
        monkeypatch.setattr(credentials_module, "get_credentials", lambda _scopes: creds)
        assert get_access_token(["scope"]) == "token-1"
