"""Read-only enrollment lookup: which class a student attends in an academic year."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus
from app.core.exceptions import UpstreamNotFound
from app.core.models import Student, StudentAcademicRecord


async def resolve_student(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
) -> Student:
    student = await db.get(Student, student_id)
    if not student or student.school_id != school_id:
        raise UpstreamNotFound(f"Student {student_id} not found")
    return student


async def resolve_current_enrollment(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    academic_year_id: UUID,
) -> StudentAcademicRecord:
    """The student's ACTIVE record for the year (class is taken from it)."""
    await resolve_student(db, school_id, student_id)
    result = await db.execute(
        select(StudentAcademicRecord).where(
            StudentAcademicRecord.student_id == student_id,
            StudentAcademicRecord.academic_year_id == academic_year_id,
            StudentAcademicRecord.status == EnrollmentStatus.ACTIVE.value,
        )
    )
    record = result.scalars().first()
    if not record:
        raise UpstreamNotFound(
            f"Student {student_id} has no active enrollment for academic year {academic_year_id}"
        )
    return record
