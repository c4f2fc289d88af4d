import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)

TOKEN_TYPE = "access"


class TokenError(Exception):
    """The bearer token could not be trusted."""


def create_access_token(principal_id: int, uin: str, issued_at: Optional[datetime] = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS)
    payload = {
        "sub": str(principal_id),
        "uin": uin,
        "type": TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except JWTError as e:
        raise TokenError("Invalid token") from e

    if claims.get("type") != TOKEN_TYPE or not str(claims.get("sub", "")).isdigit():
        raise TokenError("Invalid token payload")
    return claims
