from typing import AsyncGenerator, Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import UnauthenticatedError
from app.core.security import TokenError, decode_access_token
from app.db.session import SessionLocal
from app.models.principal import Principal


async def get_db() -> AsyncGenerator:
    async with SessionLocal() as db:
        yield db


async def get_current_principal(
        authorization: Optional[str] = Header(None),
        db: AsyncSession = Depends(get_db),
) -> Principal:
    if not authorization:
        raise UnauthenticatedError("Access denied. No token provided.")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Access denied. Invalid token format.")

    try:
        claims = decode_access_token(token.strip())
    except TokenError as e:
        raise UnauthenticatedError(str(e)) from e

    result = await db.execute(select(Principal).filter(Principal.id == int(claims["sub"])))
    principal = result.scalars().first()
    if principal is None or not principal.is_active:
        raise UnauthenticatedError("Invalid token. User not found or deactivated.")
    return principal
