"""Builders for catalog and timetable rows; each returns ids only."""

import uuid
from datetime import date
from types import SimpleNamespace
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.class_timetables import service as class_timetables_service
from app.api.v1.class_timetables.schemas import ClassTimetableCreate
from app.api.v1.scheduled_subjects import service as scheduled_service
from app.api.v1.scheduled_subjects.schemas import ScheduledClassSubjectCreate
from app.api.v1.time_slots import service as time_slots_service
from app.api.v1.time_slots.schemas import TimeSlotCreate
from app.api.v1.timetable_entries import service as entries_service
from app.api.v1.timetable_entries.schemas import TimetableEntryCreate
from app.core.enums import EnrollmentStatus
from app.core.models import (
    AcademicYear,
    ClassSubject,
    School,
    SchoolClass,
    SchoolSubject,
    Student,
    StudentAcademicRecord,
    Teacher,
)


async def seed_school(db: AsyncSession) -> SimpleNamespace:
    """
    One school with catalog data for academic year 2024:
    classes 10A and 10B, subjects Math and Physics, teachers A and B.
    Math is taught by Teacher A in both classes; Physics by Teacher B in 10A.
    One student enrolled (ACTIVE) in 10A.
    """
    ids = SimpleNamespace(
        school_id=uuid.uuid4(),
        other_school_id=uuid.uuid4(),
        year_id=uuid.uuid4(),
        class_10a_id=uuid.uuid4(),
        class_10b_id=uuid.uuid4(),
        math_id=uuid.uuid4(),
        physics_id=uuid.uuid4(),
        teacher_a_id=uuid.uuid4(),
        teacher_b_id=uuid.uuid4(),
        cs_math_10a_id=uuid.uuid4(),
        cs_physics_10a_id=uuid.uuid4(),
        cs_math_10b_id=uuid.uuid4(),
        student_id=uuid.uuid4(),
        unenrolled_student_id=uuid.uuid4(),
    )
    db.add_all(
        [
            School(id=ids.school_id, name="Riverside High"),
            School(id=ids.other_school_id, name="Hillside High"),
        ]
    )
    await db.flush()
    db.add(
        AcademicYear(
            id=ids.year_id,
            school_id=ids.school_id,
            name="2024",
            start_date=date(2024, 9, 1),
            end_date=date(2025, 6, 30),
        )
    )
    db.add_all(
        [
            SchoolClass(id=ids.class_10a_id, school_id=ids.school_id, name="10A", display_order=1),
            SchoolClass(id=ids.class_10b_id, school_id=ids.school_id, name="10B", display_order=2),
            SchoolSubject(id=ids.math_id, school_id=ids.school_id, name="Math", code="MATH"),
            SchoolSubject(id=ids.physics_id, school_id=ids.school_id, name="Physics", code="PHY"),
            Teacher(id=ids.teacher_a_id, school_id=ids.school_id, full_name="Teacher A"),
            Teacher(id=ids.teacher_b_id, school_id=ids.school_id, full_name="Teacher B"),
            Student(id=ids.student_id, school_id=ids.school_id, full_name="Ada Student"),
            Student(id=ids.unenrolled_student_id, school_id=ids.school_id, full_name="Ben Visitor"),
        ]
    )
    await db.flush()
    db.add_all(
        [
            ClassSubject(
                id=ids.cs_math_10a_id,
                school_id=ids.school_id,
                academic_year_id=ids.year_id,
                class_id=ids.class_10a_id,
                subject_id=ids.math_id,
                teacher_id=ids.teacher_a_id,
            ),
            ClassSubject(
                id=ids.cs_physics_10a_id,
                school_id=ids.school_id,
                academic_year_id=ids.year_id,
                class_id=ids.class_10a_id,
                subject_id=ids.physics_id,
                teacher_id=ids.teacher_b_id,
            ),
            ClassSubject(
                id=ids.cs_math_10b_id,
                school_id=ids.school_id,
                academic_year_id=ids.year_id,
                class_id=ids.class_10b_id,
                subject_id=ids.math_id,
                teacher_id=ids.teacher_a_id,
            ),
            StudentAcademicRecord(
                student_id=ids.student_id,
                academic_year_id=ids.year_id,
                class_id=ids.class_10a_id,
                roll_number="1",
                status=EnrollmentStatus.ACTIVE.value,
            ),
        ]
    )
    await db.commit()
    return ids


async def make_slot(
    db: AsyncSession,
    school_id: UUID,
    name: str,
    start: str,
    end: str,
    order: int,
    is_break: bool = False,
) -> UUID:
    slot = await time_slots_service.create_time_slot(
        db,
        school_id,
        TimeSlotCreate(name=name, start_time=start, end_time=end, order=order, is_break=is_break),
    )
    return slot.id


async def make_timetable(
    db: AsyncSession,
    school_id: UUID,
    school_class_id: UUID,
    academic_year_id: UUID,
    is_active: bool = False,
) -> UUID:
    timetable = await class_timetables_service.create_class_timetable(
        db,
        school_id,
        ClassTimetableCreate(
            school_class_id=school_class_id,
            academic_year_id=academic_year_id,
            is_active=is_active,
        ),
    )
    return timetable.id


async def make_entry(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
    day_of_week: int,
    time_slot_id: UUID,
    notes: Optional[str] = None,
) -> UUID:
    entry = await entries_service.create_timetable_entry(
        db,
        school_id,
        TimetableEntryCreate(
            class_timetable_id=class_timetable_id,
            day_of_week=day_of_week,
            time_slot_id=time_slot_id,
            notes=notes,
        ),
    )
    return entry.id


async def schedule(
    db: AsyncSession,
    school_id: UUID,
    timetable_entry_id: UUID,
    class_subject_id: UUID,
    assigned_teacher_id: Optional[UUID] = None,
):
    return await scheduled_service.schedule_class_subject(
        db,
        school_id,
        ScheduledClassSubjectCreate(
            timetable_entry_id=timetable_entry_id,
            class_subject_id=class_subject_id,
            assigned_teacher_id=assigned_teacher_id,
        ),
    )
