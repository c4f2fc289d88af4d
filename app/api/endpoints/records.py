from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import DuplicateKeyError, InvalidFormatError, NotFoundError
from app.models.child_record import ChildRecord as ChildRecordModel
from app.schemas.child_record import (
    BulkUploadResponse, ChildRecord, ChildRecordCreate, ChildRecordResponse,
    ChildRecordUpdate, PaginatedRecords, RecordsSummary,
)
from app.services import upsert

# Every record route needs a bearer token
router = APIRouter(dependencies=[Depends(deps.get_current_principal)])


@router.get("/summary", response_model=RecordsSummary)
async def get_summary(db: AsyncSession = Depends(deps.get_db)):
    query = select(
        func.count(ChildRecordModel.id).label("total_data"),
        func.sum(case((ChildRecordModel.gender == "Male", 1), else_=0)).label("total_male"),
        func.sum(case((ChildRecordModel.gender == "Female", 1), else_=0)).label("total_female"),
        func.sum(case((ChildRecordModel.is_offline == True, 1), else_=0)).label("total_offline"),
        func.avg(ChildRecordModel.height).label("average_height"),
        func.avg(ChildRecordModel.weight).label("average_weight"),
        func.avg(ChildRecordModel.age).label("average_age"),
    )

    result = await db.execute(query)
    metrics = result.one()

    return RecordsSummary(
        total_data=metrics.total_data or 0,
        total_male=metrics.total_male or 0,
        total_female=metrics.total_female or 0,
        total_offline=metrics.total_offline or 0,
        average_height=round(float(metrics.average_height), 2) if metrics.average_height is not None else None,
        average_weight=round(float(metrics.average_weight), 2) if metrics.average_weight is not None else None,
        average_age=round(float(metrics.average_age), 2) if metrics.average_age is not None else None,
    )


@router.post("/bulk", response_model=BulkUploadResponse, status_code=207)
async def bulk_upload(items: List[Any] = Body(...), db: AsyncSession = Depends(deps.get_db)):
    return await upsert.bulk_upsert(db, items)


@router.post("", response_model=ChildRecordResponse, status_code=201)
async def create_record(record: ChildRecordCreate, db: AsyncSession = Depends(deps.get_db)):
    if await upsert.get_record(db, record.health_id) is not None:
        raise DuplicateKeyError(f"Record {record.health_id} already exists")

    try:
        db_record = await upsert.create_record(db, record)
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateKeyError(f"Record {record.health_id} already exists") from e

    return ChildRecordResponse(data=ChildRecord.model_validate(db_record))


@router.get("", response_model=PaginatedRecords)
async def list_records(
        page: int = 1,
        page_size: int = 10,
        search: str = Query(None, description="Search for child name"),
        db: AsyncSession = Depends(deps.get_db)
):
    if page < 1 or page_size < 1:
        raise InvalidFormatError("Page and page_size must be greater than 0")

    query = select(ChildRecordModel)
    if search:
        query = query.filter(ChildRecordModel.child_name.ilike(f"%{search}%"))

    total_data = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    total_page = (total_data + page_size - 1) // page_size

    offset = (page - 1) * page_size
    if offset >= total_data > 0:
        raise NotFoundError("Page out of range")

    result = await db.execute(query.order_by(ChildRecordModel.id.desc()).offset(offset).limit(page_size))
    items = result.scalars().all()

    prev_page = page - 1 if page > 1 else 0
    next_page = page + 1 if page < total_page else 0

    return PaginatedRecords(
        total_data=total_data,
        current_page=page,
        next_page=next_page,
        prev_page=prev_page,
        total_page=total_page,
        items=[ChildRecord.model_validate(item) for item in items],
    )


@router.get("/{health_id}", response_model=ChildRecordResponse)
async def get_record(health_id: str, db: AsyncSession = Depends(deps.get_db)):
    db_record = await upsert.get_record(db, health_id)
    if db_record is None:
        raise NotFoundError("Child not found")
    return ChildRecordResponse(data=ChildRecord.model_validate(db_record))


@router.put("/{health_id}", response_model=ChildRecordResponse)
async def update_record(health_id: str, record: ChildRecordUpdate, db: AsyncSession = Depends(deps.get_db)):
    if record.health_id is not None and record.health_id != health_id:
        raise InvalidFormatError("healthId cannot be changed")

    db_record = await upsert.get_record(db, health_id)
    if db_record is None:
        raise NotFoundError("Child not found")

    try:
        db_record = await upsert.update_record(db, db_record, record)
    except IntegrityError as e:
        await db.rollback()
        raise InvalidFormatError("Required fields cannot be cleared") from e

    return ChildRecordResponse(data=ChildRecord.model_validate(db_record))


@router.delete("/{health_id}", response_model=ChildRecordResponse)
async def delete_record(health_id: str, db: AsyncSession = Depends(deps.get_db)):
    db_record = await upsert.get_record(db, health_id)
    if db_record is None:
        raise NotFoundError("Child not found")

    deleted = ChildRecord.model_validate(db_record)
    await db.delete(db_record)
    await db.commit()

    return ChildRecordResponse(message="Record deleted", data=deleted)
