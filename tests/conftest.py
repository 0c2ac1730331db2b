"""Shared test fixtures for sheetaudit."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from sheetaudit.config import Settings
from sheetaudit.models import SheetDimensions
from sheetaudit.service import AuditLogger
from sheetaudit.snapshot_store import MemorySnapshotStore
from sheetaudit.transport import LocalTransport

DOC_ID = "doc-1"
OTHER_DOC_ID = "doc-2"
LOG_ID = "log-spreadsheet"
USER = "alice@example.com"
FIXED_NOW = datetime(2024, 5, 1, 12, 30, 45, tzinfo=UTC)
TIMESTAMP = "2024-05-01 12:30:45"


def make_settings(**overrides: object) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: dict[str, object] = {"log_spreadsheet_id": LOG_ID}
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def multi_settings() -> Settings:
    return make_settings(
        monitored_sources=[
            {"document_id": DOC_ID, "log_destination_name": "Budget Log"},
            {"document_id": OTHER_DOC_ID, "log_destination_name": "Roster Log"},
        ]
    )


@pytest.fixture
def transport() -> LocalTransport:
    """LocalTransport with an empty log spreadsheet and one watched document."""
    local = LocalTransport()
    local.set_structure(LOG_ID, {})
    local.set_structure(DOC_ID, {"Sheet1": SheetDimensions(rows=1000, cols=26)})
    return local


@pytest.fixture
def store(settings: Settings) -> MemorySnapshotStore:
    return MemorySnapshotStore(settings)


@pytest.fixture
def audit(
    settings: Settings, transport: LocalTransport, store: MemorySnapshotStore
) -> AuditLogger:
    return AuditLogger(settings, transport, store, clock=lambda: FIXED_NOW)
