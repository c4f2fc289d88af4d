import logging
import re
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.config import settings
from app.core.errors import InvalidFormatError, NotFoundError, UnauthenticatedError, VerificationRequiredError
from app.core.security import create_access_token
from app.models.principal import Principal
from app.schemas.auth import (
    PrincipalSnapshot, PrincipalVerification, PrincipalVerificationResponse, ProfileSummary,
    ProfileSummaryResponse, ProfileUpdate, TokenGrant, TokenGrantResponse, VerifyCodeRequest,
)
from app.utils.clock import as_utc, utc_now
from app.utils.code_verifier import CODE_PATTERN, CodeVerifier, get_code_verifier
from app.utils.masking import mask_email, mask_phone

logger = logging.getLogger(__name__)

UIN_PATTERN = re.compile(r"^\d{10}$")

router = APIRouter()


def employee_id_for(principal: Principal) -> str:
    return principal.employee_id or f"HW-{principal.uin[-6:]}"


async def get_active_principal(db: AsyncSession, uin: str) -> Principal:
    result = await db.execute(select(Principal).filter(Principal.uin == uin, Principal.is_active == True))
    principal = result.scalars().first()
    if principal is None:
        raise NotFoundError("UIN not found. Please contact your local administration for registration.")
    return principal


@router.get("/verify-principal/{uin}", response_model=PrincipalVerificationResponse)
async def verify_principal(uin: str, db: AsyncSession = Depends(deps.get_db)):
    if not UIN_PATTERN.match(uin):
        raise InvalidFormatError("Invalid UIN format. Please enter a valid 10-digit UIN.")

    principal = await get_active_principal(db, uin)

    # No code is dispatched; the pending verification only gates verify-code
    transaction_id = uuid.uuid4().hex
    principal.pending_transaction_id = transaction_id
    principal.verification_requested_at = utc_now()
    await db.commit()

    return PrincipalVerificationResponse(
        message="UIN verified successfully",
        data=PrincipalVerification(
            name=principal.name,
            masked_phone=mask_phone(principal.phone),
            masked_email=mask_email(principal.email),
            exists=True,
            transaction_id=transaction_id,
        ),
    )


@router.post("/verify-code", response_model=TokenGrantResponse)
async def verify_code(
        body: VerifyCodeRequest,
        db: AsyncSession = Depends(deps.get_db),
        verifier: CodeVerifier = Depends(get_code_verifier),
):
    if not UIN_PATTERN.match(body.uin):
        raise InvalidFormatError("Invalid UIN format")
    if not CODE_PATTERN.match(body.code):
        raise InvalidFormatError("Invalid code format. Please enter 6 digits.")

    principal = await get_active_principal(db, body.uin)

    requested_at = principal.verification_requested_at
    window = timedelta(seconds=settings.OTP_WINDOW_SECONDS)
    if requested_at is None or utc_now() - as_utc(requested_at) > window:
        raise VerificationRequiredError("Verification session expired. Please start authentication again.")

    if body.transaction_id and body.transaction_id != principal.pending_transaction_id:
        logger.info("verify-code for UIN ending %s used a stale transaction id", body.uin[-4:])

    if not verifier.verify(body.code):
        raise UnauthenticatedError("Invalid verification code.", code="INVALID_CODE")

    issued_at = utc_now()
    access_token = create_access_token(principal.id, principal.uin, issued_at)

    principal.pending_transaction_id = None
    principal.verification_requested_at = None
    await db.commit()

    snapshot = PrincipalSnapshot.model_validate(principal)
    snapshot.employee_id = employee_id_for(principal)

    logger.info("Issued access token for principal %s", principal.id)
    return TokenGrantResponse(
        message="Authentication successful",
        data=TokenGrant(
            access_token=access_token,
            token_type="Bearer",
            expires_in_seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
            principal_snapshot=snapshot,
            issued_at=issued_at,
        ),
    )


@router.post("/profile-upload", response_model=ProfileSummaryResponse)
async def upload_profile(
        body: ProfileUpdate,
        principal: Principal = Depends(deps.get_current_principal),
        db: AsyncSession = Depends(deps.get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidFormatError("Profile data is required")
    if any(value is None for value in changes.values()):
        raise InvalidFormatError("Profile fields cannot be cleared")

    for field, value in changes.items():
        setattr(principal, field, value)
    principal.last_profile_update = utc_now()
    await db.commit()

    logger.info("Principal %s updated profile fields %s", principal.id, sorted(changes))
    return ProfileSummaryResponse(
        message="Profile uploaded successfully",
        data=ProfileSummary(
            name=principal.name,
            email=principal.email,
            phone=principal.phone,
            employee_id=employee_id_for(principal),
        ),
    )
