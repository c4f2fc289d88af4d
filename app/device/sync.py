"""
Batch upload of pending records.

The whole pending list goes to the server in one request. The response is
matched back to the submitted records by ``healthId``; the submitted records
leave the local list only when every one is confirmed as created or updated.
Records captured while the request is in flight stay pending for the next
run. Any transport problem, server fault or rejected record keeps the
records on the device, and a retry is safe because the server upserts by
``healthId``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.device.api_client import ApiClient
from app.device.connectivity import ConnectivityGate
from app.device.exceptions import (
    Offline, PartialBatchFailure, SyncInProgress, TransportFailure, Unauthenticated,
)
from app.device.session import SessionManager
from app.device.storage import PendingStore, UploadedHistory
from app.schemas.child_record import BulkUploadResponse

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    total: int
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def confirmed(self) -> List[str]:
        return self.created + self.updated

    @property
    def fully_synced(self) -> bool:
        return not self.failed and len(self.confirmed) == self.total


def reconcile(submitted: List[str], response: BulkUploadResponse) -> BatchResult:
    """Partition the submitted keys using the server's itemized outcome."""
    summary = response.summary
    if summary.total != len(submitted) or summary.created + summary.updated + summary.failed != summary.total:
        raise TransportFailure("The server response does not cover the uploaded batch. Your records are kept.")

    outcome: Dict[str, str] = {}
    reasons: Dict[str, str] = {}
    for item in response.details.created:
        outcome.setdefault(item.health_id, "created")
    for item in response.details.updated:
        outcome.setdefault(item.health_id, "updated")
    for item in response.details.failed:
        if item.health_id is not None:
            # A failure for a key outranks a success reported for it
            outcome[item.health_id] = "failed"
            reasons[item.health_id] = item.error

    result = BatchResult(total=len(submitted))
    for health_id in dict.fromkeys(submitted):
        status = outcome.get(health_id)
        if status == "created":
            result.created.append(health_id)
        elif status == "updated":
            result.updated.append(health_id)
        else:
            result.failed[health_id] = reasons.get(health_id, "No result reported for this record")
    # Repeated keys in one batch count once per submission
    result.total = len(result.created) + len(result.updated) + len(result.failed)
    return result


class SyncEngine:
    def __init__(
            self,
            pending: PendingStore,
            uploaded: UploadedHistory,
            gate: ConnectivityGate,
            sessions: SessionManager,
            api: ApiClient,
            partial_clear: bool = False,
    ):
        self.pending = pending
        self.uploaded = uploaded
        self.gate = gate
        self.sessions = sessions
        self.api = api
        self.partial_clear = partial_clear
        self.in_progress = False

    async def sync(self) -> Optional[BatchResult]:
        """Upload every pending record. Returns ``None`` when nothing is pending."""
        if self.in_progress:
            raise SyncInProgress()

        self.in_progress = True
        try:
            return await self._sync()
        finally:
            self.in_progress = False

    async def _sync(self) -> Optional[BatchResult]:
        records = await self.pending.list_all()
        if not records:
            return None

        if not await self.gate.is_reachable():
            raise Offline()

        token = await self.sessions.require_token()
        try:
            response = await self.api.upload_batch(records, token)
        except Unauthenticated:
            await self.sessions.logout()
            raise

        submitted = [record.get("healthId") for record in records]
        result = reconcile(submitted, response)
        logger.info(
            "Uploaded %d records: %d created, %d updated, %d failed",
            result.total, len(result.created), len(result.updated), len(result.failed),
        )

        if result.fully_synced:
            await self.uploaded.extend(records)
            await self.pending.remove(submitted)
            return result

        if self.partial_clear and result.confirmed:
            confirmed = set(result.confirmed)
            await self.uploaded.extend(record for record in records if record.get("healthId") in confirmed)
            await self.pending.remove(confirmed)

        for health_id, reason in result.failed.items():
            logger.warning("Record %s was not accepted: %s", health_id, reason)
        raise PartialBatchFailure(result)
