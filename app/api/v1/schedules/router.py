from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_school_id
from app.api.v1.class_timetables.schemas import ClassTimetableDetailResponse
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import StudentTimetableResponse, TeacherScheduleEntry
from . import service

router = APIRouter(prefix="/api/v1/timetables", tags=["schedules"])


@router.get("/class-timetables/{class_timetable_id}/schedule-grid", response_model=ClassTimetableDetailResponse)
async def schedule_grid(
    class_timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    """Full grid of one timetable version, draft or active."""
    try:
        return await service.schedule_grid(db, school_id, class_timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/class-active-schedules", response_model=ClassTimetableDetailResponse)
async def class_active_schedule(
    class_id: UUID = Query(..., description="School class"),
    academic_year_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.class_active_schedule(db, school_id, class_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/teacher-schedules", response_model=List[TeacherScheduleEntry])
async def teacher_schedule(
    teacher_id: UUID = Query(...),
    academic_year_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.teacher_schedule(db, school_id, teacher_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/student-schedules", response_model=StudentTimetableResponse)
async def student_schedule(
    student_id: UUID = Query(...),
    academic_year_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_school_id),
):
    try:
        return await service.student_schedule(db, school_id, student_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
