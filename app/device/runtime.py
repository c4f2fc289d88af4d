from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import Settings, settings as default_settings
from app.device.api_client import ApiClient
from app.device.connectivity import ConnectivityGate, HttpConnectivityGate
from app.device.records import new_child_record
from app.device.session import SessionManager
from app.device.storage import LocalStorage, PendingStore, UploadedHistory
from app.device.sync import SyncEngine
from app.schemas.child_record import ChildRecordCreate


@dataclass
class FieldApp:
    """Everything the screens need, wired to one local store."""

    storage: LocalStorage
    pending: PendingStore
    uploaded: UploadedHistory
    gate: ConnectivityGate
    api: ApiClient
    sessions: SessionManager
    sync_engine: SyncEngine

    async def capture(self, **fields) -> ChildRecordCreate:
        """Create a record and keep it on the device until the next upload."""
        if "is_offline" not in fields and "isOffline" not in fields:
            fields["is_offline"] = not await self.gate.is_reachable()
        record = new_child_record(**fields)
        await self.pending.append(record)
        return record


def create_field_app(
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        gate: Optional[ConnectivityGate] = None,
) -> FieldApp:
    config = config or default_settings
    storage = LocalStorage(config.LOCAL_STORE_PATH)
    pending = PendingStore(storage)
    uploaded = UploadedHistory(storage)
    gate = gate or HttpConnectivityGate(config.API_BASE_URL, config.CONNECTIVITY_TIMEOUT_SECONDS, transport=transport)
    api = ApiClient(config.API_BASE_URL, config.REQUEST_TIMEOUT_SECONDS, transport=transport)
    sessions = SessionManager(storage, api, gate, window_seconds=config.SESSION_WINDOW_SECONDS)
    sync_engine = SyncEngine(pending, uploaded, gate, sessions, api, partial_clear=config.SYNC_PARTIAL_CLEAR)
    return FieldApp(storage, pending, uploaded, gate, api, sessions, sync_engine)
