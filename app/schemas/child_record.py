from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, ValidationError

from app.utils.clock import utc_now

from .generic_response import ApiResponse, CamelModel

GENDER_PATTERN = "^(Male|Female)$"
ID_TYPE_PATTERN = "^(none|local|national)$"


class LocationSnapshot(CamelModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    accuracy: Optional[float] = Field(None, ge=0)
    timestamp: Optional[datetime] = None


class ChildRecordBase(CamelModel):
    child_name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0)
    gender: str = Field(..., pattern=GENDER_PATTERN)
    weight: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    guardian_name: str = Field(..., min_length=1)
    relation: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    parents_consent: bool

    id_type: Optional[str] = Field(None, pattern=ID_TYPE_PATTERN)
    local_id: Optional[str] = None
    country_code: Optional[str] = "+91"
    malnutrition_signs: Optional[str] = ""
    recent_illnesses: Optional[str] = ""
    skip_malnutrition: bool = False
    skip_illnesses: bool = False
    date_collected: Optional[datetime] = Field(default_factory=utc_now)
    is_offline: bool = False
    location: Optional[LocationSnapshot] = None


class ChildRecordCreate(ChildRecordBase):
    health_id: str = Field(..., min_length=1, max_length=64)


class ChildRecordUpdate(CamelModel):
    """Partial payload; only the fields actually sent are written."""

    child_name: Optional[str] = Field(None, min_length=1)
    age: Optional[int] = Field(None, ge=0)
    gender: Optional[str] = Field(None, pattern=GENDER_PATTERN)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    guardian_name: Optional[str] = Field(None, min_length=1)
    relation: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    parents_consent: Optional[bool] = None
    id_type: Optional[str] = Field(None, pattern=ID_TYPE_PATTERN)
    local_id: Optional[str] = None
    country_code: Optional[str] = None
    malnutrition_signs: Optional[str] = None
    recent_illnesses: Optional[str] = None
    skip_malnutrition: Optional[bool] = None
    skip_illnesses: Optional[bool] = None
    date_collected: Optional[datetime] = None
    is_offline: Optional[bool] = None
    location: Optional[LocationSnapshot] = None
    health_id: Optional[str] = None


class ChildRecord(ChildRecordBase):
    health_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaginatedRecords(CamelModel):
    total_data: int = Field(..., ge=0)
    current_page: int = Field(..., ge=1)
    next_page: int = Field(..., ge=0)
    prev_page: int = Field(..., ge=0)
    total_page: int = Field(..., ge=0)
    items: List[ChildRecord] = Field(default_factory=list)


class RecordsSummary(CamelModel):
    total_data: int = Field(..., ge=0)
    total_male: int = Field(..., ge=0)
    total_female: int = Field(..., ge=0)
    total_offline: int = Field(..., ge=0)
    average_height: Optional[float] = Field(None, ge=0)  # None when there is no data
    average_weight: Optional[float] = Field(None, ge=0)
    average_age: Optional[float] = Field(None, ge=0)


class ChildRecordResponse(ApiResponse[ChildRecord]):
    pass


class BulkItemResult(CamelModel):
    health_id: str
    action: Literal["created", "updated"]
    data: Optional[ChildRecord] = None


class BulkItemFailure(CamelModel):
    health_id: Optional[str] = None
    error: str


class BulkSummary(CamelModel):
    total: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)


class BulkDetails(CamelModel):
    created: List[BulkItemResult] = Field(default_factory=list)
    updated: List[BulkItemResult] = Field(default_factory=list)
    failed: List[BulkItemFailure] = Field(default_factory=list)


class BulkUploadResponse(CamelModel):
    success: bool = True
    summary: BulkSummary
    details: BulkDetails


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one line a field worker can act on."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts)
