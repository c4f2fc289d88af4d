"""
Create-or-update of child records keyed by ``healthId``.

Every item of a bulk upload is handled and committed on its own, so a bad
record is reported as ``failed`` and the rest of the batch carries on.
Running the same batch twice reports every item as ``updated`` the second
time, because identity is the client-generated natural key.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.child_record import ChildRecord as ChildRecordModel
from app.schemas.child_record import (
    BulkDetails, BulkItemFailure, BulkItemResult, BulkSummary, BulkUploadResponse,
    ChildRecord, ChildRecordCreate, ChildRecordUpdate, describe_validation_error,
)

logger = logging.getLogger(__name__)


class RecordRejected(Exception):
    """A single payload could not be stored; the message is shown to the client."""


def to_columns(payload, exclude_unset: bool = False) -> Dict[str, Any]:
    data = payload.model_dump(exclude_unset=exclude_unset)
    if "location" in data:
        data["location"] = payload.location.model_dump(mode="json") if payload.location else None
    return data


async def get_record(db: AsyncSession, health_id: str) -> Optional[ChildRecordModel]:
    result = await db.execute(select(ChildRecordModel).filter(ChildRecordModel.health_id == health_id))
    return result.scalars().first()


async def create_record(db: AsyncSession, payload: ChildRecordCreate) -> ChildRecordModel:
    db_record = ChildRecordModel(**to_columns(payload))
    db.add(db_record)
    await db.commit()
    await db.refresh(db_record)
    return db_record


async def update_record(db: AsyncSession, db_record: ChildRecordModel, payload: ChildRecordUpdate) -> ChildRecordModel:
    for key, value in to_columns(payload, exclude_unset=True).items():
        if key == "health_id":
            continue  # the natural key never changes
        setattr(db_record, key, value)

    await db.commit()
    await db.refresh(db_record)
    return db_record


async def upsert_record(db: AsyncSession, raw: Dict[str, Any]):
    """Apply one payload. Returns ``(action, db_record)``."""
    health_id = raw.get("healthId", raw.get("health_id"))
    if not isinstance(health_id, str) or not health_id.strip():
        raise RecordRejected("healthId is required")

    try:
        existing = await get_record(db, health_id)
        if existing is not None:
            return "updated", await update_record(db, existing, ChildRecordUpdate.model_validate(raw))

        payload = ChildRecordCreate.model_validate(raw)
        try:
            return "created", await create_record(db, payload)
        except IntegrityError:
            # Another writer created the same key first; apply ours as an update
            await db.rollback()
            logger.info("healthId %s created concurrently, retrying as update", health_id)
            existing = await get_record(db, health_id)
            if existing is None:
                raise RecordRejected("Record violates a storage constraint")
            return "updated", await update_record(db, existing, ChildRecordUpdate.model_validate(raw))
    except ValidationError as e:
        raise RecordRejected(describe_validation_error(e)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("Storing healthId %s failed: %s", health_id, e)
        raise RecordRejected(f"Could not store record: {e.__class__.__name__}") from e


async def bulk_upsert(db: AsyncSession, items: List[Any]) -> BulkUploadResponse:
    details = BulkDetails()

    for raw in items:
        if not isinstance(raw, dict):
            details.failed.append(BulkItemFailure(health_id=None, error="Record must be a JSON object"))
            continue

        try:
            action, db_record = await upsert_record(db, raw)
        except RecordRejected as e:
            health_id = raw.get("healthId")
            details.failed.append(BulkItemFailure(
                health_id=health_id if isinstance(health_id, str) else None,
                error=str(e),
            ))
            continue

        result = BulkItemResult(health_id=db_record.health_id, action=action, data=ChildRecord.model_validate(db_record))
        getattr(details, action).append(result)

    summary = BulkSummary(
        total=len(items),
        created=len(details.created),
        updated=len(details.updated),
        failed=len(details.failed),
    )
    logger.info(
        "Bulk upload processed %d records: %d created, %d updated, %d failed",
        summary.total, summary.created, summary.updated, summary.failed,
    )
    return BulkUploadResponse(success=True, summary=summary, details=details)
