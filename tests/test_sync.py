"""Tests for the batch sync engine, end to end and against scripted servers."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from app.core.config import Settings
from app.device import (
    AuthSession, ConnectivityGate, Offline, PartialBatchFailure, ServerFault, SyncInProgress,
    TransportFailure, Unauthenticated, create_field_app, reconcile,
)
from app.device.storage import PENDING_KEY, SESSION_KEY
from app.schemas.child_record import BulkUploadResponse
from main import app

BASE_URL = "http://testserver/api"
DEMO_UIN = "1234567890"

CHILD_FIELDS = {
    "child_name": "Asha Kumari",
    "age": 4,
    "gender": "Female",
    "weight": 14.2,
    "height": 98.5,
    "guardian_name": "Meena Kumari",
    "relation": "Mother",
    "phone": "9876543210",
    "parents_consent": True,
}


class StaticGate(ConnectivityGate):
    def __init__(self, reachable: bool = True):
        self.reachable = reachable

    async def is_reachable(self) -> bool:
        return self.reachable


def make_config(tmp_path: Path, **overrides) -> Settings:
    return Settings(LOCAL_STORE_PATH=str(tmp_path / "store.json"), API_BASE_URL=BASE_URL, **overrides)


def bulk_response(created=(), updated=(), failed=()) -> dict:
    failed = dict(failed)
    return {
        "success": True,
        "summary": {
            "total": len(created) + len(updated) + len(failed),
            "created": len(created),
            "updated": len(updated),
            "failed": len(failed),
        },
        "details": {
            "created": [{"healthId": h, "action": "created"} for h in created],
            "updated": [{"healthId": h, "action": "updated"} for h in updated],
            "failed": [{"healthId": h, "error": e} for h, e in failed.items()],
        },
    }


async def store_session(field_app) -> None:
    now = datetime.now(timezone.utc)
    session = AuthSession(
        uin=DEMO_UIN, access_token="scripted-token", token_type="Bearer",
        issued_at=now, expires_in_seconds=86400, authenticated_at=now,
    )
    await field_app.storage.set_item(SESSION_KEY, session.model_dump(mode="json", by_alias=True))


def scripted_app(tmp_path: Path, handler, **overrides):
    transport = httpx.MockTransport(handler)
    return create_field_app(make_config(tmp_path, **overrides), transport=transport, gate=StaticGate(True))


class TestAgainstBackend:
    """The field app talking to the real FastAPI app in-process."""

    @pytest.fixture
    def field_app(self, database, tmp_path: Path):
        return create_field_app(make_config(tmp_path), transport=httpx.ASGITransport(app=app))

    async def sign_in(self, field_app) -> None:
        verification = await field_app.sessions.request_code(DEMO_UIN)
        await field_app.sessions.authenticate(DEMO_UIN, "123456", verification.transaction_id)

    def test_full_success_clears_pending(self, field_app):
        async def scenario():
            await self.sign_in(field_app)
            captured = [await field_app.capture(**CHILD_FIELDS) for _ in range(3)]
            result = await field_app.sync_engine.sync()
            return captured, result, await field_app.pending.list_all(), await field_app.uploaded.list_all()

        captured, result, pending, uploaded = asyncio.run(scenario())
        assert sorted(result.created) == sorted(r.health_id for r in captured)
        assert result.fully_synced
        assert pending == []
        assert [entry["healthId"] for entry in uploaded] == [r.health_id for r in captured]
        assert all(entry["isOffline"] is False for entry in uploaded)

    def test_retry_after_ambiguous_failure_does_not_duplicate(self, field_app):
        async def scenario():
            await self.sign_in(field_app)
            records = [await field_app.capture(**CHILD_FIELDS) for _ in range(2)]
            token = await field_app.sessions.require_token()
            # First delivery reached the server but the device never saw the answer
            await field_app.api.upload_batch(records, token)
            return await field_app.sync_engine.sync()

        result = asyncio.run(scenario())
        assert result.created == []
        assert len(result.updated) == 2
        assert result.fully_synced

    def test_rejected_record_keeps_everything_pending(self, field_app):
        async def scenario():
            await self.sign_in(field_app)
            await field_app.capture(**CHILD_FIELDS)
            await field_app.capture(**CHILD_FIELDS)
            # Bypass the capture validation to get a record the server refuses
            raw = await field_app.storage.get_item(PENDING_KEY)
            raw[1]["idType"] = "passport"
            await field_app.storage.set_item(PENDING_KEY, raw)
            before = await field_app.storage.get_item(PENDING_KEY)
            with pytest.raises(PartialBatchFailure) as excinfo:
                await field_app.sync_engine.sync()
            return before, await field_app.storage.get_item(PENDING_KEY), excinfo.value.result

        before, after, result = asyncio.run(scenario())
        assert after == before
        assert len(result.created) == 1
        assert list(result.failed) == [before[1]["healthId"]]

    def test_expired_token_is_rejected_and_session_cleared(self, field_app):
        async def scenario():
            await self.sign_in(field_app)
            await field_app.capture(**CHILD_FIELDS)
            data = await field_app.storage.get_item(SESSION_KEY)
            data["accessToken"] = "forged"
            await field_app.storage.set_item(SESSION_KEY, data)
            with pytest.raises(Unauthenticated):
                await field_app.sync_engine.sync()
            return await field_app.storage.get_item(SESSION_KEY), await field_app.pending.count()

        session, pending = asyncio.run(scenario())
        assert session is None
        assert pending == 1

    def test_connectivity_probe(self, field_app):
        assert asyncio.run(field_app.gate.is_reachable()) is True


class TestPreconditions:

    def test_nothing_pending_is_a_no_op(self, tmp_path: Path):
        requests = []
        field_app = scripted_app(tmp_path, lambda request: requests.append(request))
        assert asyncio.run(field_app.sync_engine.sync()) is None
        assert requests == []

    def test_offline_makes_no_network_attempt(self, tmp_path: Path):
        requests = []
        field_app = create_field_app(
            make_config(tmp_path),
            transport=httpx.MockTransport(lambda request: requests.append(request)),
            gate=StaticGate(False),
        )

        async def scenario():
            await store_session(field_app)
            await field_app.capture(**CHILD_FIELDS)
            with pytest.raises(Offline):
                await field_app.sync_engine.sync()
            return await field_app.pending.count()

        assert asyncio.run(scenario()) == 1
        assert requests == []

    def test_captured_offline_is_flagged(self, tmp_path: Path):
        field_app = create_field_app(make_config(tmp_path), gate=StaticGate(False))
        record = asyncio.run(field_app.capture(**CHILD_FIELDS))
        assert record.is_offline is True

    def test_requires_a_session(self, tmp_path: Path):
        field_app = scripted_app(tmp_path, lambda request: httpx.Response(207, json={}))

        async def scenario():
            await field_app.capture(**CHILD_FIELDS)
            await field_app.sync_engine.sync()

        with pytest.raises(Unauthenticated):
            asyncio.run(scenario())

    def test_concurrent_sync_is_refused(self, tmp_path: Path):
        field_app = scripted_app(tmp_path, lambda request: httpx.Response(207, json={}))
        field_app.sync_engine.in_progress = True
        with pytest.raises(SyncInProgress):
            asyncio.run(field_app.sync_engine.sync())


class TestFailureHandling:

    def run_failing_sync(self, field_app, error):
        async def scenario():
            await store_session(field_app)
            for _ in range(3):
                await field_app.capture(**CHILD_FIELDS)
            before = await field_app.storage.get_item(PENDING_KEY)
            with pytest.raises(error):
                await field_app.sync_engine.sync()
            return before, await field_app.storage.get_item(PENDING_KEY)

        return asyncio.run(scenario())

    def test_timeout_preserves_pending_exactly(self, tmp_path: Path):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        before, after = self.run_failing_sync(scripted_app(tmp_path, handler), TransportFailure)
        assert after == before

    def test_connection_error_preserves_pending(self, tmp_path: Path):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        before, after = self.run_failing_sync(scripted_app(tmp_path, handler), TransportFailure)
        assert after == before

    def test_server_fault_preserves_pending(self, tmp_path: Path):
        handler = lambda request: httpx.Response(500, json={"success": False, "error": "boom"})
        before, after = self.run_failing_sync(scripted_app(tmp_path, handler), ServerFault)
        assert after == before

    def test_malformed_body_preserves_pending(self, tmp_path: Path):
        handler = lambda request: httpx.Response(207, content=b"<html>proxy error</html>")
        before, after = self.run_failing_sync(scripted_app(tmp_path, handler), TransportFailure)
        assert after == before

    def test_incomplete_summary_preserves_pending(self, tmp_path: Path):
        handler = lambda request: httpx.Response(207, json=bulk_response(created=["CHBONLYONE"]))
        before, after = self.run_failing_sync(scripted_app(tmp_path, handler), TransportFailure)
        assert after == before


class TestReconciliation:

    def test_matches_by_key_not_position(self, tmp_path: Path):
        def handler(request):
            submitted = [item["healthId"] for item in json.loads(request.content)]
            assert request.headers["Authorization"] == "Bearer scripted-token"
            return httpx.Response(207, json=bulk_response(created=list(reversed(submitted))))

        field_app = scripted_app(tmp_path, handler)

        async def scenario():
            await store_session(field_app)
            for _ in range(3):
                await field_app.capture(**CHILD_FIELDS)
            return await field_app.sync_engine.sync(), await field_app.pending.count()

        result, pending = asyncio.run(scenario())
        assert len(result.created) == 3
        assert pending == 0

    def test_partial_clear_keeps_only_failures(self, tmp_path: Path):
        def handler(request):
            submitted = [item["healthId"] for item in json.loads(request.content)]
            return httpx.Response(207, json=bulk_response(
                created=submitted[:1], updated=submitted[1:2], failed={submitted[2]: "phone: Field required"},
            ))

        field_app = scripted_app(tmp_path, handler, SYNC_PARTIAL_CLEAR=True)

        async def scenario():
            await store_session(field_app)
            captured = [await field_app.capture(**CHILD_FIELDS) for _ in range(3)]
            with pytest.raises(PartialBatchFailure):
                await field_app.sync_engine.sync()
            return captured, await field_app.pending.list_all(), await field_app.uploaded.list_all()

        captured, pending, uploaded = asyncio.run(scenario())
        assert [r["healthId"] for r in pending] == [captured[2].health_id]
        assert [entry["healthId"] for entry in uploaded] == [r.health_id for r in captured[:2]]

    def test_unreported_key_counts_as_failed(self):
        response = BulkUploadResponse.model_validate(bulk_response(created=["A", "X"]))
        result = reconcile(["A", "B"], response)
        assert result.created == ["A"]
        assert "B" in result.failed
        assert not result.fully_synced

    def test_failure_outranks_success_for_same_key(self):
        response = BulkUploadResponse.model_validate(bulk_response(created=["A"], failed={"A": "bad"}))
        result = reconcile(["A", "A"], response)
        assert result.failed == {"A": "bad"}
        assert result.total == 1


class TestCaptureDuringSync:

    def test_record_captured_mid_upload_stays_pending(self, tmp_path: Path):
        async def scenario():
            started, release = asyncio.Event(), asyncio.Event()

            async def handler(request):
                submitted = [item["healthId"] for item in json.loads(request.content)]
                started.set()
                await release.wait()
                return httpx.Response(207, json=bulk_response(created=submitted))

            field_app = scripted_app(tmp_path, handler)
            await store_session(field_app)
            first = await field_app.capture(**CHILD_FIELDS)

            upload = asyncio.create_task(field_app.sync_engine.sync())
            await started.wait()
            late = await field_app.capture(**CHILD_FIELDS)
            release.set()
            result = await upload

            pending = [r["healthId"] for r in await field_app.pending.list_all()]
            uploaded = [entry["healthId"] for entry in await field_app.uploaded.list_all()]
            return first, late, result, pending, uploaded

        first, late, result, pending, uploaded = asyncio.run(scenario())
        assert result.created == [first.health_id]
        assert uploaded == [first.health_id]
        assert pending == [late.health_id]

    def test_overlapping_captures_are_all_kept(self, tmp_path: Path):
        field_app = create_field_app(make_config(tmp_path), gate=StaticGate(True))

        async def scenario():
            captured = await asyncio.gather(*(field_app.capture(**CHILD_FIELDS) for _ in range(5)))
            return captured, await field_app.pending.list_all()

        captured, pending = asyncio.run(scenario())
        assert sorted(r["healthId"] for r in pending) == sorted(r.health_id for r in captured)
