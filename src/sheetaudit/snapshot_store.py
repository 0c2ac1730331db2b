"""Persistence of structure snapshots between notifications.

Only the most recent snapshot per key is kept; saving overwrites it
(last writer wins).
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from sheetaudit.config import SNAPSHOT_KEY
from sheetaudit.models import (
    StructureSnapshot,
    snapshot_from_dict,
    snapshot_to_dict,
)

if TYPE_CHECKING:
    from sheetaudit.config import Settings
    from sheetaudit.transport import Transport

METADATA_KEY_PREFIX = "sheetaudit."


class SnapshotStore(ABC):
    """Loads and saves the last structure snapshot of a document."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def key_for(self, document_id: str) -> str:
        return self._settings.snapshot_key(document_id)

    @abstractmethod
    async def load(self, document_id: str) -> StructureSnapshot:
        """Return the last saved snapshot, or {} if none was saved."""
        ...

    @abstractmethod
    async def save(self, document_id: str, snapshot: StructureSnapshot) -> None:
        """Persist a snapshot as the baseline for the next notification."""
        ...


class MemorySnapshotStore(SnapshotStore):
    """Process-local store. Snapshots are lost on restart."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._data: dict[str, str] = {}

    async def load(self, document_id: str) -> StructureSnapshot:
        raw = self._data.get(self.key_for(document_id))
        return snapshot_from_dict(json.loads(raw)) if raw else {}

    async def save(self, document_id: str, snapshot: StructureSnapshot) -> None:
        self._data[self.key_for(document_id)] = json.dumps(snapshot_to_dict(snapshot))


class FileSnapshotStore(SnapshotStore):
    """One JSON file per document under a directory.

    Expected directory structure:
        snapshot_dir/
            sheetStructure_<document_id>.json
    """

    def __init__(self, settings: Settings, directory: Path | None = None) -> None:
        super().__init__(settings)
        self._directory = directory or Path(settings.snapshot_dir)

    def path_for(self, document_id: str) -> Path:
        filename = re.sub(r"[^A-Za-z0-9_.-]", "_", self.key_for(document_id))
        return self._directory / f"{filename}.json"

    async def load(self, document_id: str) -> StructureSnapshot:
        return await asyncio.to_thread(self._read, self.path_for(document_id))

    async def save(self, document_id: str, snapshot: StructureSnapshot) -> None:
        await asyncio.to_thread(
            self._write, self.path_for(document_id), snapshot_to_dict(snapshot)
        )

    @staticmethod
    def _read(path: Path) -> StructureSnapshot:
        if not path.exists():
            return {}
        return snapshot_from_dict(json.loads(path.read_text(encoding="utf-8")))

    @staticmethod
    def _write(path: Path, data: dict[str, dict[str, int]]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Replaced atomically
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(path)


class DeveloperMetadataSnapshotStore(SnapshotStore):
    """Stores snapshots as developer metadata on the watched spreadsheet.

    Metadata lives on the document itself, so the bare `sheetStructure`
    key is used in both modes.
    """

    def __init__(self, settings: Settings, transport: Transport) -> None:
        super().__init__(settings)
        self._transport = transport

    def key_for(self, document_id: str) -> str:  # noqa: ARG002
        return SNAPSHOT_KEY

    def metadata_key(self, document_id: str) -> str:
        return METADATA_KEY_PREFIX + self.key_for(document_id)

    async def load(self, document_id: str) -> StructureSnapshot:
        entry = await self._transport.find_metadata(
            document_id, self.metadata_key(document_id)
        )
        if entry is None or not entry.value:
            return {}
        return snapshot_from_dict(json.loads(entry.value))

    async def save(self, document_id: str, snapshot: StructureSnapshot) -> None:
        key = self.metadata_key(document_id)
        existing = await self._transport.find_metadata(document_id, key)
        await self._transport.write_metadata(
            document_id,
            key,
            json.dumps(snapshot_to_dict(snapshot), separators=(",", ":")),
            existing=existing,
        )


def create_snapshot_store(settings: Settings, transport: Transport) -> SnapshotStore:
    """Build the store selected by `settings.snapshot_backend`."""
    if settings.snapshot_backend == "metadata":
        return DeveloperMetadataSnapshotStore(settings, transport)
    if settings.snapshot_backend == "memory":
        return MemorySnapshotStore(settings)
    return FileSnapshotStore(settings)
