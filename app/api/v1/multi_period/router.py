from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.api.v1.scheduled_subjects.schemas import ScheduledClassSubjectResponse
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import MultiPeriodScheduleCreate
from . import service

router = APIRouter(prefix="/api/v1/timetables/timetable-entries", tags=["timetable-entries"])


@router.post(
    "/bulk-add-multi-period",
    response_model=List[ScheduledClassSubjectResponse],
    status_code=status.HTTP_201_CREATED,
)
async def bulk_add_multi_period(
    payload: MultiPeriodScheduleCreate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Schedule one class subject over consecutive periods of a day.

    All periods are scheduled or none; the error message names the failing period.
    """
    try:
        return await service.schedule_block(db, school_id, payload)
    except ServiceError as e:
        await db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
