"""Shared pytest fixtures."""
from __future__ import annotations

import asyncio
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="child-health-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from app.db.seed import seed_principals
from app.db.session import drop_db, init_db
from main import app

DEMO_UIN = "1234567890"


async def reset_database() -> None:
    await drop_db()
    await init_db()
    await seed_principals()


def _sign_in(client: TestClient, uin: str = DEMO_UIN) -> dict:
    transaction_id = client.get(f"/api/auth/verify-principal/{uin}").json()["data"]["transactionId"]
    response = client.post(
        "/api/auth/verify-code",
        json={"uin": uin, "code": "123456", "transactionId": transaction_id},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


@pytest.fixture
def database():
    """Fresh schema with the demo principals."""
    asyncio.run(reset_database())
    yield


@pytest.fixture
def client(database) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    grant = _sign_in(client)
    return {"Authorization": f"Bearer {grant['accessToken']}"}


@pytest.fixture
def child_payload():
    """Build a wire-format child record, overriding any field."""
    counter = iter(range(1, 10_000))

    def build(**overrides) -> dict:
        payload = {
            "healthId": f"CHBTEST{next(counter):05d}",
            "childName": "Asha Kumari",
            "age": 4,
            "gender": "Female",
            "weight": 14.2,
            "height": 98.5,
            "guardianName": "Meena Kumari",
            "relation": "Mother",
            "phone": "9876543210",
            "parentsConsent": True,
            "idType": "local",
            "localId": "LOC-22",
            "malnutritionSigns": "",
            "recentIllnesses": "Fever last month",
            "isOffline": True,
            "location": {"latitude": 28.61, "longitude": 77.2, "address": "New Delhi", "accuracy": 12.5},
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def sign_in():
    """Run the UIN + code flow and return the token grant."""
    return _sign_in
