import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError as SchemaValidationError

from app.device.exceptions import NotFound, ServerFault, TransportFailure, Unauthenticated, ValidationError
from app.schemas.auth import PrincipalVerification, PrincipalVerificationResponse, TokenGrant, TokenGrantResponse
from app.device.storage import record_to_json
from app.schemas.child_record import BulkUploadResponse, ChildRecordCreate

logger = logging.getLogger(__name__)


def error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return fallback


class ApiClient:
    """Talks to the backend; every failure leaves as a ``FieldAppError``."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, token: Optional[str] = None, json: Any = None):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise TransportFailure("The server took too long to respond. Your records are kept.") from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e.__class__.__name__)
            raise TransportFailure() from e

        if response.status_code >= 500:
            logger.warning("%s %s returned %d", method, path, response.status_code)
            raise ServerFault()

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure("The server sent a malformed response. Your records are kept.") from e

        if response.status_code == 401:
            raise Unauthenticated(error_message(body, Unauthenticated.__doc__))
        if response.status_code == 404 and isinstance(body, dict) and body.get("code") == NotFound.code:
            raise NotFound(error_message(body, NotFound.__doc__))
        if response.status_code in (400, 422):
            raise ValidationError(error_message(body, "The server rejected the request"))
        if response.status_code >= 400:
            raise ServerFault(error_message(body, f"Unexpected response status {response.status_code}"))
        return body

    @staticmethod
    def _parse(model, body: Any):
        try:
            return model.model_validate(body)
        except SchemaValidationError as e:
            raise TransportFailure("The server sent a malformed response. Your records are kept.") from e

    async def verify_principal(self, uin: str) -> PrincipalVerification:
        body = await self._request("GET", f"/auth/verify-principal/{uin}")
        response = self._parse(PrincipalVerificationResponse, body)
        if response.data is None:
            raise TransportFailure("The server sent a malformed response.")
        return response.data

    async def verify_code(self, uin: str, code: str, transaction_id: Optional[str] = None) -> TokenGrant:
        payload = {"uin": uin, "code": code, "transactionId": transaction_id}
        body = await self._request("POST", "/auth/verify-code", json=payload)
        response = self._parse(TokenGrantResponse, body)
        if response.data is None:
            raise TransportFailure("The server sent a malformed response.")
        return response.data

    async def upload_batch(self, records: Sequence[Union[ChildRecordCreate, Dict[str, Any]]], token: str) -> BulkUploadResponse:
        payload: List[dict] = [record_to_json(record) for record in records]
        body = await self._request("POST", "/records/bulk", token=token, json=payload)
        return self._parse(BulkUploadResponse, body)
