from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.core.exceptions import ServiceError
from app.core.pagination import Page, PaginationParams, build_page, pagination_params
from app.db.session import get_db

from .schemas import TimetableEntryCreate, TimetableEntryResponse, TimetableEntryUpdate
from . import service

router = APIRouter(prefix="/api/v1/timetables/timetable-entries", tags=["timetable-entries"])


@router.post(
    "",
    response_model=TimetableEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_timetable_entry(
    payload: TimetableEntryCreate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Create an empty cell (slot on a day) in a class timetable."""
    try:
        return await service.create_timetable_entry(db, school_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=Page[TimetableEntryResponse])
async def list_timetable_entries(
    request: Request,
    class_timetable_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    pagination: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    count, results = await service.list_timetable_entries(
        db,
        school_id,
        class_timetable_id=class_timetable_id,
        academic_year_id=academic_year_id,
        day_of_week=day_of_week,
        pagination=pagination,
    )
    return build_page(request, pagination, count, results)


@router.get("/{entry_id}", response_model=TimetableEntryResponse)
async def get_timetable_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.get_timetable_entry(db, school_id, entry_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{entry_id}", response_model=TimetableEntryResponse)
async def update_timetable_entry(
    entry_id: UUID,
    payload: TimetableEntryUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.update_timetable_entry(db, school_id, entry_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timetable_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Delete a cell; its scheduled subject goes with it."""
    try:
        await service.delete_timetable_entry(db, school_id, entry_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
