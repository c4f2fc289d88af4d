"""
Durable on-device key/value storage.

The pending list is the only copy of records captured in the field, so
every write goes to a temporary file that is fsynced and then moved over the
previous file; a crash mid-write leaves the last good content in place.
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from app.schemas.child_record import ChildRecordCreate

logger = logging.getLogger(__name__)

PENDING_KEY = "pendingChildRecords"
UPLOADED_KEY = "uploadedChildRecords"
SESSION_KEY = "authSession"


class LocalStorage:
    """A JSON file holding a flat mapping of keys to JSON values."""

    def __init__(self, path: str):
        self.path = path
        # Serializes read-modify-write cycles; every write goes through it
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as handle:
            return json.load(handle)

    def _write(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".store-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    def _apply(self, key: str, change: Callable[[Any], Any], default: Any) -> Any:
        data = self._read()
        value = change(data.get(key, default))
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write(data)
        return value

    async def get_item(self, key: str, default: Any = None) -> Any:
        data = await asyncio.to_thread(self._read)
        return data.get(key, default)

    async def update(self, key: str, change: Callable[[Any], Any], default: Any = None) -> Any:
        """Replace the value under ``key`` with ``change(current)``.

        The read and the write happen under one lock, so concurrent updates
        to the same store never overwrite each other. Returning ``None`` from
        ``change`` removes the key.
        """
        async with self._lock:
            return await asyncio.to_thread(self._apply, key, change, default)

    async def set_item(self, key: str, value: Any) -> None:
        await self.update(key, lambda _: value)

    async def remove_item(self, key: str) -> None:
        await self.update(key, lambda _: None)


def record_to_json(record: Union[ChildRecordCreate, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(record, ChildRecordCreate):
        return record.model_dump(mode="json", by_alias=True)
    return dict(record)


class PendingStore:
    """Ordered list of records that have not reached the server yet."""

    def __init__(self, storage: LocalStorage, key: str = PENDING_KEY):
        self.storage = storage
        self.key = key

    async def append(self, record: ChildRecordCreate) -> None:
        entry = record_to_json(record)
        records = await self.storage.update(self.key, lambda current: current + [entry], default=[])
        logger.debug("Stored pending record %s (%d pending)", record.health_id, len(records))

    async def list_all(self) -> List[Dict[str, Any]]:
        """Records exactly as stored, in wire format, oldest first."""
        return await self.storage.get_item(self.key, [])

    async def count(self) -> int:
        return len(await self.storage.get_item(self.key, []))

    async def clear(self) -> None:
        await self.storage.remove_item(self.key)

    async def remove(self, health_ids: Iterable[str]) -> int:
        """Drop the records with the given keys, keeping the order of the rest."""
        health_ids = set(health_ids)
        removed = 0

        def drop(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            nonlocal removed
            kept = [record for record in records if record.get("healthId") not in health_ids]
            removed = len(records) - len(kept)
            return kept

        await self.storage.update(self.key, drop, default=[])
        return removed


class UploadedHistory:
    """Records confirmed by the server, kept for display."""

    def __init__(self, storage: LocalStorage, key: str = UPLOADED_KEY):
        self.storage = storage
        self.key = key

    async def extend(self, records: Iterable[Union[ChildRecordCreate, Dict[str, Any]]], uploaded_at: Optional[datetime] = None) -> None:
        stamp = (uploaded_at or datetime.now(timezone.utc)).isoformat()
        entries = [{**record_to_json(record), "uploadedAt": stamp} for record in records]
        await self.storage.update(self.key, lambda history: history + entries, default=[])

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self.storage.get_item(self.key, [])
