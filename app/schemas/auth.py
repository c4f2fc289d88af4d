from datetime import datetime
from typing import Optional

from pydantic import Field

from .generic_response import ApiResponse, CamelModel


class PrincipalVerification(CamelModel):
    name: str
    masked_phone: str
    masked_email: str
    exists: bool = True
    transaction_id: str


class VerifyCodeRequest(CamelModel):
    uin: str
    code: str
    transaction_id: Optional[str] = None


class PrincipalSnapshot(CamelModel):
    id: int
    uin: str
    name: str
    email: str
    phone: str
    address: str
    date_of_birth: str
    gender: str
    photo: Optional[str] = None
    employee_id: Optional[str] = None

    class Config:
        from_attributes = True


class TokenGrant(CamelModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in_seconds: int
    principal_snapshot: PrincipalSnapshot
    issued_at: datetime


class PrincipalVerificationResponse(ApiResponse[PrincipalVerification]):
    pass


class TokenGrantResponse(ApiResponse[TokenGrant]):
    pass


class ProfileUpdate(CamelModel):
    """Fields a signed-in worker may change on their own profile."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    date_of_birth: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    gender: Optional[str] = Field(None, max_length=10)
    photo: Optional[str] = Field(None, max_length=500)


class ProfileSummary(CamelModel):
    name: str
    email: str
    phone: str
    employee_id: Optional[str] = None


class ProfileSummaryResponse(ApiResponse[ProfileSummary]):
    pass
