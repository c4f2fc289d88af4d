"""
Authentication session kept on the device.

A session has two independent clocks: the server token lifetime and the
client-side session window measured from sign-in. It is usable only while
both are running, and the check happens each time a token is requested.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import Field

from app.device.api_client import ApiClient
from app.device.connectivity import ConnectivityGate
from app.device.exceptions import Offline, Unauthenticated, ValidationError
from app.device.storage import SESSION_KEY, LocalStorage
from app.schemas.auth import PrincipalVerification
from app.schemas.generic_response import CamelModel
from app.utils.clock import utc_now

logger = logging.getLogger(__name__)

UIN_PATTERN = re.compile(r"^\d{10}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


def clean_uin(uin: str) -> str:
    uin = re.sub(r"\s", "", uin or "")
    if not UIN_PATTERN.match(uin):
        raise ValidationError("Invalid UIN format. Please enter a valid 10-digit UIN.")
    return uin


class AuthSession(CamelModel):
    """Stored under ``authSession``; both clocks are UTC."""

    uin: str
    access_token: str
    issued_at: datetime
    expires_in_seconds: int
    authenticated_at: datetime
    token_type: str = "Bearer"
    principal: Dict[str, Any] = Field(default_factory=dict)

    @property
    def token_expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in_seconds)

    def token_expired(self, now: datetime) -> bool:
        return now >= self.token_expires_at

    def window_expired(self, now: datetime, window: timedelta) -> bool:
        return now >= self.authenticated_at + window

    def is_valid(self, now: datetime, window: timedelta) -> bool:
        return not self.token_expired(now) and not self.window_expired(now, window)


class SessionManager:
    def __init__(
            self,
            storage: LocalStorage,
            api: ApiClient,
            gate: ConnectivityGate,
            window_seconds: int = 30 * 60,
            clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage
        self.api = api
        self.gate = gate
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock

    async def _require_online(self) -> None:
        if not await self.gate.is_reachable():
            raise Offline()

    async def request_code(self, uin: str) -> PrincipalVerification:
        """Step one: confirm the UIN and get masked contact details back."""
        uin = clean_uin(uin)
        await self._require_online()
        return await self.api.verify_principal(uin)

    async def authenticate(self, uin: str, code: str, transaction_id: Optional[str] = None) -> AuthSession:
        """Step two: trade the one-time code for a bearer token and store it."""
        uin = clean_uin(uin)
        code = (code or "").strip()
        if not CODE_PATTERN.match(code):
            raise ValidationError("Invalid code format. Please enter 6 digits.")
        await self._require_online()

        grant = await self.api.verify_code(uin, code, transaction_id)
        session = AuthSession(
            uin=uin,
            access_token=grant.access_token,
            token_type=grant.token_type,
            issued_at=grant.issued_at,
            expires_in_seconds=grant.expires_in_seconds,
            authenticated_at=self.clock(),
            principal=grant.principal_snapshot.model_dump(mode="json", by_alias=True),
        )
        await self.storage.set_item(SESSION_KEY, session.model_dump(mode="json", by_alias=True))
        logger.info("Signed in UIN ending %s", uin[-4:])
        return session

    async def current(self) -> Optional[AuthSession]:
        data = await self.storage.get_item(SESSION_KEY)
        if not data:
            return None

        session = AuthSession.model_validate(data)
        if not session.is_valid(self.clock(), self.window):
            logger.info("Stored session expired, clearing it")
            await self.logout()
            return None
        return session

    async def require_token(self) -> str:
        session = await self.current()
        if session is None:
            raise Unauthenticated()
        return session.access_token

    async def logout(self) -> None:
        await self.storage.remove_item(SESSION_KEY)
