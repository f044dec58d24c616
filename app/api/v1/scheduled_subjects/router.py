from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.core.exceptions import ServiceError
from app.core.pagination import Page, PaginationParams, build_page, pagination_params
from app.db.session import get_db

from .schemas import (
    ScheduledClassSubjectBulkDelete,
    ScheduledClassSubjectCreate,
    ScheduledClassSubjectResponse,
    ScheduledClassSubjectUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/timetables/scheduled-class-subjects", tags=["scheduled-class-subjects"])


@router.post(
    "",
    response_model=ScheduledClassSubjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def schedule_class_subject(
    payload: ScheduledClassSubjectCreate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Schedule a class subject into a timetable entry (cell).

    Rejected with CELL_OCCUPIED, TEACHER_CONFLICT, CLASS_MISMATCH or UPSTREAM_NOT_FOUND;
    TRANSACTION_CONFLICT means a concurrent write won and the request may be retried.
    """
    try:
        return await service.schedule_class_subject(db, school_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=Page[ScheduledClassSubjectResponse])
async def list_scheduled_class_subjects(
    request: Request,
    timetable_entry_id: Optional[UUID] = Query(None),
    class_subject_id: Optional[UUID] = Query(None),
    class_timetable_id: Optional[UUID] = Query(None),
    pagination: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    count, results = await service.list_scheduled_class_subjects(
        db,
        school_id,
        timetable_entry_id=timetable_entry_id,
        class_subject_id=class_subject_id,
        class_timetable_id=class_timetable_id,
        pagination=pagination,
    )
    return build_page(request, pagination, count, results)


@router.post("/bulk-delete", status_code=status.HTTP_204_NO_CONTENT)
async def unschedule_many(
    payload: ScheduledClassSubjectBulkDelete,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Unschedule a block as one unit; nothing is removed if any id is unknown."""
    try:
        await service.unschedule_many(db, school_id, payload.ids)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{scheduled_id}", response_model=ScheduledClassSubjectResponse)
async def get_scheduled_class_subject(
    scheduled_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.get_scheduled_class_subject(db, school_id, scheduled_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{scheduled_id}", response_model=ScheduledClassSubjectResponse)
async def update_scheduled_class_subject(
    scheduled_id: UUID,
    payload: ScheduledClassSubjectUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.update_scheduled_class_subject(db, school_id, scheduled_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{scheduled_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unschedule_class_subject(
    scheduled_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        await service.unschedule_class_subject(db, school_id, scheduled_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
