from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.core.enums import TimeSlotOrdering
from app.core.exceptions import ServiceError
from app.core.pagination import Page, PaginationParams, build_page, pagination_params
from app.db.session import get_db

from .schemas import TimeSlotCreate, TimeSlotResponse, TimeSlotUpdate
from . import service

router = APIRouter(prefix="/api/v1/timetables/time-slots", tags=["time-slots"])


@router.post(
    "",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_time_slot(
    payload: TimeSlotCreate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.create_time_slot(db, school_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=Page[TimeSlotResponse])
async def list_time_slots(
    request: Request,
    ordering: Optional[TimeSlotOrdering] = Query(None, description="order, -order, start_time, -start_time, name, -name"),
    pagination: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Slots of the school's day, ordered by (order, start_time) unless asked otherwise."""
    count, results = await service.list_time_slots(db, school_id, ordering=ordering, pagination=pagination)
    return build_page(request, pagination, count, results)


@router.get("/{time_slot_id}", response_model=TimeSlotResponse)
async def get_time_slot(
    time_slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.get_time_slot(db, school_id, time_slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{time_slot_id}", response_model=TimeSlotResponse)
async def update_time_slot(
    time_slot_id: UUID,
    payload: TimeSlotUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Partial update. Slots already used by timetable entries accept only a new name."""
    try:
        return await service.update_time_slot(db, school_id, time_slot_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{time_slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_slot(
    time_slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        await service.delete_time_slot(db, school_id, time_slot_id)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
