"""
Read-only schedule views: class grid, teacher agenda, student agenda.

Only active timetables are visible here, except through `schedule_grid`, which is
asked for one specific version (drafts included).
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.core.models import ClassSubject, ClassTimetable, ScheduledClassSubject, TimeSlot, TimetableEntry
from app.core.schemas import day_display

from app.api.v1.class_subjects import service as catalog
from app.api.v1.class_timetables import service as class_timetables_service
from app.api.v1.class_timetables.schemas import ClassTimetableDetailResponse
from app.api.v1.enrollments import service as enrollments
from app.api.v1.scheduled_subjects import service as scheduled_service
from app.api.v1.timetable_entries import service as entries_service

from .schemas import StudentTimetableResponse, TeacherScheduleEntry


async def find_active_timetable_id(
    db: AsyncSession,
    school_id: UUID,
    school_class_id: UUID,
    academic_year_id: UUID,
) -> Optional[UUID]:
    result = await db.execute(
        select(ClassTimetable.id).where(
            ClassTimetable.school_id == school_id,
            ClassTimetable.school_class_id == school_class_id,
            ClassTimetable.academic_year_id == academic_year_id,
            ClassTimetable.is_active.is_(True),
        )
    )
    return result.scalars().first()


async def schedule_grid(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> ClassTimetableDetailResponse:
    return await class_timetables_service.build_detail(db, school_id, class_timetable_id)


async def class_active_schedule(
    db: AsyncSession,
    school_id: UUID,
    school_class_id: UUID,
    academic_year_id: UUID,
) -> ClassTimetableDetailResponse:
    timetable_id = await find_active_timetable_id(db, school_id, school_class_id, academic_year_id)
    if timetable_id is None:
        raise NotFound("This class has no active timetable for the academic year")
    return await class_timetables_service.build_detail(db, school_id, timetable_id)


async def teacher_schedule(
    db: AsyncSession,
    school_id: UUID,
    teacher_id: UUID,
    academic_year_id: UUID,
) -> List[TeacherScheduleEntry]:
    """Every period the teacher actually teaches (as effective teacher) in active timetables."""
    await catalog.resolve_teacher(db, school_id, teacher_id)
    result = await db.execute(
        select(ScheduledClassSubject, TimeSlot, TimetableEntry.notes)
        .join(TimetableEntry, TimetableEntry.id == ScheduledClassSubject.timetable_entry_id)
        .join(ClassTimetable, ClassTimetable.id == TimetableEntry.class_timetable_id)
        .join(ClassSubject, ClassSubject.id == ScheduledClassSubject.class_subject_id)
        .join(TimeSlot, TimeSlot.id == ScheduledClassSubject.time_slot_id)
        .where(
            ScheduledClassSubject.school_id == school_id,
            ScheduledClassSubject.academic_year_id == academic_year_id,
            scheduled_service.effective_teacher_column() == teacher_id,
            ClassTimetable.is_active.is_(True),
        )
        .order_by(ScheduledClassSubject.day_of_week, TimeSlot.order, TimeSlot.start_time)
    )
    rows = []
    for scs, slot, slot_notes in result.all():
        cs = scs.class_subject
        teaching = scs.effective_teacher
        rows.append(
            TeacherScheduleEntry(
                id=scs.id,
                day_of_week=scs.day_of_week,
                day_of_week_display=day_display(scs.day_of_week),
                time_slot_name=slot.name,
                start_time=slot.start_time,
                end_time=slot.end_time,
                school_class_id=cs.school_class.id,
                school_class_name=cs.school_class.name,
                class_subject_id=cs.id,
                subject_name=cs.subject.name,
                subject_code=cs.subject.code,
                slot_notes=slot_notes,
                teaching_teacher_id=scs.effective_teacher_id,
                teaching_teacher_name=teaching.full_name if teaching is not None else None,
            )
        )
    return rows


async def student_schedule(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    academic_year_id: UUID,
) -> StudentTimetableResponse:
    """Active timetable of the class the student is enrolled in for the year."""
    record = await enrollments.resolve_current_enrollment(db, school_id, student_id, academic_year_id)
    response = StudentTimetableResponse(
        student_id=student_id,
        student_name=record.student.full_name,
        class_name=record.school_class.name,
        academic_year_name=record.academic_year.name,
    )
    timetable_id = await find_active_timetable_id(db, school_id, record.class_id, academic_year_id)
    if timetable_id is None:
        response.message = (
            f"No active timetable has been published for class {record.school_class.name} "
            f"in {record.academic_year.name}"
        )
        return response
    result = await db.execute(
        entries_service.entries_query()
        .where(TimetableEntry.class_timetable_id == timetable_id)
        .order_by(*entries_service.grid_ordering())
    )
    response.timetable_id = timetable_id
    response.entries = [entries_service.to_response(e) for e in result.scalars().all()]
    return response
