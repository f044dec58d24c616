"""Read-only lookups into the class-subject catalog and teacher directory.

The timetable core never writes these tables; a missing id is an upstream failure.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UpstreamNotFound
from app.core.models import AcademicYear, ClassSubject, SchoolClass, Teacher


async def resolve_class_subject(
    db: AsyncSession,
    school_id: UUID,
    class_subject_id: UUID,
) -> ClassSubject:
    """class_subject_id -> (teacher_id, class_id, subject_id, academic_year_id) with names loaded."""
    result = await db.execute(
        select(ClassSubject).where(
            ClassSubject.id == class_subject_id,
            ClassSubject.school_id == school_id,
        )
        # The catalog teacher may change underneath a long-lived session.
        .execution_options(populate_existing=True)
    )
    cs = result.scalar_one_or_none()
    if not cs:
        raise UpstreamNotFound(f"Class subject {class_subject_id} not found in catalog")
    return cs


async def resolve_teacher(
    db: AsyncSession,
    school_id: UUID,
    teacher_id: UUID,
) -> Teacher:
    teacher = await db.get(Teacher, teacher_id)
    if not teacher or teacher.school_id != school_id:
        raise UpstreamNotFound(f"Teacher {teacher_id} not found")
    return teacher


async def resolve_school_class(
    db: AsyncSession,
    school_id: UUID,
    school_class_id: UUID,
) -> SchoolClass:
    cl = await db.get(SchoolClass, school_class_id)
    if not cl or cl.school_id != school_id:
        raise UpstreamNotFound(f"Class {school_class_id} not found")
    return cl


def effective_teacher_id(cs: ClassSubject, assigned_teacher_id: Optional[UUID]) -> Optional[UUID]:
    """Substitute teacher if given, else the class subject's own teacher (may be None)."""
    return assigned_teacher_id if assigned_teacher_id is not None else cs.teacher_id


async def resolve_academic_year(
    db: AsyncSession,
    school_id: UUID,
    academic_year_id: UUID,
) -> AcademicYear:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay or ay.school_id != school_id:
        raise UpstreamNotFound(f"Academic year {academic_year_id} not found")
    return ay
