from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.core.exceptions import ServiceError
from app.core.pagination import Page, PaginationParams, build_page, pagination_params
from app.db.session import get_db

from .schemas import (
    ClassTimetableCreate,
    ClassTimetableDetailResponse,
    ClassTimetableResponse,
    ClassTimetableUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/timetables/class-timetables", tags=["class-timetables"])


@router.post(
    "",
    response_model=ClassTimetableResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_class_timetable(
    payload: ClassTimetableCreate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Create a timetable version for a class/year. With is_active=true it replaces the current active one."""
    try:
        return await service.create_class_timetable(db, school_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=Page[ClassTimetableResponse])
async def list_class_timetables(
    request: Request,
    school_class_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    count, results = await service.list_class_timetables(
        db,
        school_id,
        school_class_id=school_class_id,
        academic_year_id=academic_year_id,
        is_active=is_active,
        pagination=pagination,
    )
    return build_page(request, pagination, count, results)


@router.get("/{class_timetable_id}", response_model=ClassTimetableResponse)
async def get_class_timetable(
    class_timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.get_class_timetable(db, school_id, class_timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{class_timetable_id}", response_model=ClassTimetableResponse)
async def update_class_timetable(
    class_timetable_id: UUID,
    payload: ClassTimetableUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Activate a version, or re-target an empty draft to another class/year."""
    try:
        return await service.update_class_timetable(db, school_id, class_timetable_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{class_timetable_id}/set-active", response_model=ClassTimetableResponse)
async def set_class_timetable_active(
    class_timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.set_class_timetable_active(db, school_id, class_timetable_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{class_timetable_id}/duplicate",
    response_model=ClassTimetableDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_class_timetable(
    class_timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Copy a version into a new draft, keeping every cell and assignment."""
    try:
        return await service.duplicate_class_timetable(db, school_id, class_timetable_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{class_timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class_timetable(
    class_timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        await service.delete_class_timetable(db, school_id, class_timetable_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
