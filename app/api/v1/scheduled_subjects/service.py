"""
Scheduled-subject assignment engine.

Binds a class subject (subject + teacher) into a timetable entry while keeping:
  - one subject per cell,
  - one class per teacher per (day, slot) within an academic year,
  - assignments inside the grid of the class they belong to.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CellOccupied,
    ClassMismatch,
    InvalidOperation,
    NotFound,
    TeacherConflict,
    TransactionConflict,
)
from app.core.models import (
    ClassSubject,
    ClassTimetable,
    ScheduledClassSubject,
    Teacher,
    TimeSlot,
    TimetableEntry,
)
from app.core.pagination import PaginationParams, paginate
from app.core.schemas import SimpleRef, SimpleSubject, day_display, format_time_24
from app.db.locking import commit_or_conflict, lock_rows

from app.api.v1.class_subjects import service as catalog

from .schemas import (
    NestedClassSubject,
    ScheduledClassSubjectCreate,
    ScheduledClassSubjectResponse,
    ScheduledClassSubjectUpdate,
)

logger = logging.getLogger(__name__)


def _teacher_ref(t: Optional[Teacher]) -> Optional[SimpleRef]:
    return SimpleRef(id=t.id, name=t.full_name) if t is not None else None


def to_response(scs: ScheduledClassSubject) -> ScheduledClassSubjectResponse:
    cs = scs.class_subject
    effective = scs.effective_teacher
    return ScheduledClassSubjectResponse(
        id=scs.id,
        timetable_entry_id=scs.timetable_entry_id,
        class_subject=NestedClassSubject(
            id=cs.id,
            subject=SimpleSubject(id=cs.subject.id, name=cs.subject.name, code=cs.subject.code),
            teacher=_teacher_ref(cs.teacher),
            coefficient=cs.coefficient,
            mandatory=cs.mandatory,
        ),
        assigned_teacher=_teacher_ref(scs.assigned_teacher),
        effective_teacher=_teacher_ref(effective),
        effective_teacher_id=scs.effective_teacher_id,
        effective_teacher_name=effective.full_name if effective is not None else None,
        academic_year_id=scs.academic_year_id,
        school_class_id=scs.school_class_id,
        day_of_week=scs.day_of_week,
        time_slot_id=scs.time_slot_id,
        notes=scs.notes,
        created_at=scs.created_at,
    )


async def get_entry_model(db: AsyncSession, school_id: UUID, entry_id: UUID) -> TimetableEntry:
    result = await db.execute(
        select(TimetableEntry)
        .where(TimetableEntry.id == entry_id, TimetableEntry.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise NotFound("Timetable entry not found")
    return entry


async def lock_entry_cell(db: AsyncSession, school_id: UUID, entry_id: UUID) -> TimetableEntry:
    """Lock the entry's slot, then the entry, and return the entry as re-read under both locks.

    A move committed between the first read and the locks would leave us holding the old
    slot's lock; that is reported as a conflict instead of placing against the stale slot.
    """
    entry = await get_entry_model(db, school_id, entry_id)
    slot_id = entry.time_slot_id
    # Every writer placing anything into this slot (any class, any day) takes the slot lock first.
    await lock_rows(db, TimeSlot, [slot_id])
    await lock_rows(db, TimetableEntry, [entry_id])
    entry = await get_entry_model(db, school_id, entry_id)
    if entry.time_slot_id != slot_id:
        await db.rollback()
        logger.warning("Entry %s moved to another slot while it was being locked", entry_id)
        raise TransactionConflict("Timetable entry was moved concurrently; please retry")
    return entry


def effective_teacher_column():
    """SQL form of ScheduledClassSubject.effective_teacher_id; the query must join ClassSubject."""
    return func.coalesce(ScheduledClassSubject.assigned_teacher_id, ClassSubject.teacher_id)


async def get_entry_occupant_id(db: AsyncSession, entry_id: UUID) -> Optional[UUID]:
    result = await db.execute(
        select(ScheduledClassSubject.id).where(ScheduledClassSubject.timetable_entry_id == entry_id)
    )
    return result.scalar_one_or_none()


async def find_teacher_clash(
    db: AsyncSession,
    academic_year_id: UUID,
    teacher_id: Optional[UUID],
    day_of_week: int,
    time_slot_id: UUID,
    school_class_id: UUID,
    exclude_id: Optional[UUID] = None,
) -> Optional[ScheduledClassSubject]:
    """Assignment of `teacher_id` in another class at the same (day, slot) of the year, if any.

    Other timetable versions of the same class never clash.
    """
    if teacher_id is None:
        return None
    stmt = (
        select(ScheduledClassSubject)
        .join(ClassSubject, ClassSubject.id == ScheduledClassSubject.class_subject_id)
        .where(
            ScheduledClassSubject.academic_year_id == academic_year_id,
            effective_teacher_column() == teacher_id,
        ScheduledClassSubject.day_of_week == day_of_week,
            ScheduledClassSubject.time_slot_id == time_slot_id,
            ScheduledClassSubject.school_class_id != school_class_id,
        )
    )
    if exclude_id is not None:
        stmt = stmt.where(ScheduledClassSubject.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalars().first()


async def teacher_conflict_error(db: AsyncSession, clash: ScheduledClassSubject) -> TeacherConflict:
    slot = await db.get(TimeSlot, clash.time_slot_id)
    cs = clash.class_subject
    teacher = clash.effective_teacher
    teacher_name = teacher.full_name if teacher is not None else str(clash.effective_teacher_id)
    return TeacherConflict(
        f"Teacher {teacher_name} already teaches {cs.subject.name} to class {cs.school_class.name} "
        f"on {day_display(clash.day_of_week)} during {slot.name} "
        f"({format_time_24(slot.start_time)}-{format_time_24(slot.end_time)})"
    )


async def check_teacher_free(
    db: AsyncSession,
    academic_year_id: UUID,
    teacher_id: Optional[UUID],
    day_of_week: int,
    time_slot_id: UUID,
    school_class_id: UUID,
    exclude_id: Optional[UUID] = None,
) -> None:
    clash = await find_teacher_clash(
        db, academic_year_id, teacher_id, day_of_week, time_slot_id, school_class_id, exclude_id=exclude_id
    )
    if clash is not None:
        raise await teacher_conflict_error(db, clash)


def check_class_subject_matches(cs: ClassSubject, timetable: ClassTimetable) -> None:
    if cs.class_id != timetable.school_class_id:
        raise ClassMismatch(
            f"Class subject belongs to class {cs.school_class.name}, "
            f"not to the class owning this timetable"
        )
    if cs.academic_year_id != timetable.academic_year_id:
        raise ClassMismatch("Class subject belongs to a different academic year than this timetable")


async def build_assignment(
    db: AsyncSession,
    entry: TimetableEntry,
    timetable: ClassTimetable,
    cs: ClassSubject,
    assigned_teacher_id: Optional[UUID] = None,
    notes: Optional[str] = None,
) -> ScheduledClassSubject:
    """Run every placement check for one cell and return the unsaved row.

    Caller holds the slot/entry locks and owns the transaction.
    """
    check_class_subject_matches(cs, timetable)
    if entry.time_slot.is_break:
        raise InvalidOperation(f"'{entry.time_slot.name}' is a break; nothing can be scheduled in it")
    if entry.id is not None and await get_entry_occupant_id(db, entry.id) is not None:
        raise CellOccupied(
            f"{day_display(entry.day_of_week)} {entry.time_slot.name} already has a subject scheduled"
        )
    teacher_id = catalog.effective_teacher_id(cs, assigned_teacher_id)
    await check_teacher_free(
        db, timetable.academic_year_id, teacher_id, entry.day_of_week, entry.time_slot_id, timetable.school_class_id
    )
    return ScheduledClassSubject(
        school_id=entry.school_id,
        timetable_entry_id=entry.id,
        class_subject_id=cs.id,
        assigned_teacher_id=assigned_teacher_id,
        notes=notes,
        academic_year_id=timetable.academic_year_id,
        school_class_id=timetable.school_class_id,
        day_of_week=entry.day_of_week,
        time_slot_id=entry.time_slot_id,
    )


async def load_scheduled_class_subject(
    db: AsyncSession,
    school_id: UUID,
    scheduled_id: UUID,
) -> ScheduledClassSubject:
    result = await db.execute(
        select(ScheduledClassSubject)
        .where(
            ScheduledClassSubject.id == scheduled_id,
            ScheduledClassSubject.school_id == school_id,
        )
        .execution_options(populate_existing=True)
    )
    scs = result.scalar_one_or_none()
    if not scs:
        raise NotFound("Scheduled class subject not found")
    return scs


async def schedule_class_subject(
    db: AsyncSession,
    school_id: UUID,
    payload: ScheduledClassSubjectCreate,
) -> ScheduledClassSubjectResponse:
    entry = await lock_entry_cell(db, school_id, payload.timetable_entry_id)

    cs = await catalog.resolve_class_subject(db, school_id, payload.class_subject_id)
    if payload.assigned_teacher_id is not None:
        await catalog.resolve_teacher(db, school_id, payload.assigned_teacher_id)
    timetable = await db.get(ClassTimetable, entry.class_timetable_id)

    try:
        scs = await build_assignment(
            db, entry, timetable, cs,
            assigned_teacher_id=payload.assigned_teacher_id,
            notes=payload.notes,
        )
    except (CellOccupied, TeacherConflict) as e:
        logger.info("Rejected scheduling into entry %s: %s", entry.id, e.message)
        raise
    db.add(scs)
    await commit_or_conflict(db, "schedule")
    logger.info(
        "Scheduled class subject %s into entry %s (day=%s slot=%s teacher=%s)",
        cs.id, entry.id, entry.day_of_week, entry.time_slot_id,
        catalog.effective_teacher_id(cs, payload.assigned_teacher_id),
    )
    return to_response(await load_scheduled_class_subject(db, school_id, scs.id))


async def update_scheduled_class_subject(
    db: AsyncSession,
    school_id: UUID,
    scheduled_id: UUID,
    payload: ScheduledClassSubjectUpdate,
) -> ScheduledClassSubjectResponse:
    scs = await load_scheduled_class_subject(db, school_id, scheduled_id)
    changes = payload.model_dump(exclude_unset=True)
    if "assigned_teacher_id" in changes:
        assigned = changes["assigned_teacher_id"]
        if assigned is not None:
            await catalog.resolve_teacher(db, school_id, assigned)
        await lock_rows(db, TimeSlot, [scs.time_slot_id])
        teacher_id = catalog.effective_teacher_id(scs.class_subject, assigned)
        await check_teacher_free(
            db, scs.academic_year_id, teacher_id, scs.day_of_week, scs.time_slot_id,
            scs.school_class_id, exclude_id=scs.id,
        )
        scs.assigned_teacher_id = assigned
    if "notes" in changes:
        scs.notes = changes["notes"]
    await commit_or_conflict(db, "update scheduled subject")
    return to_response(await load_scheduled_class_subject(db, school_id, scs.id))


async def get_scheduled_class_subject(
    db: AsyncSession,
    school_id: UUID,
    scheduled_id: UUID,
) -> ScheduledClassSubjectResponse:
    return to_response(await load_scheduled_class_subject(db, school_id, scheduled_id))


async def list_scheduled_class_subjects(
    db: AsyncSession,
    school_id: UUID,
    timetable_entry_id: Optional[UUID] = None,
    class_subject_id: Optional[UUID] = None,
    class_timetable_id: Optional[UUID] = None,
    pagination: Optional[PaginationParams] = None,
) -> Tuple[int, List[ScheduledClassSubjectResponse]]:
    stmt = (
        select(ScheduledClassSubject)
        .join(TimeSlot, TimeSlot.id == ScheduledClassSubject.time_slot_id)
        .where(ScheduledClassSubject.school_id == school_id)
    )
    if timetable_entry_id is not None:
        stmt = stmt.where(ScheduledClassSubject.timetable_entry_id == timetable_entry_id)
    if class_subject_id is not None:
        stmt = stmt.where(ScheduledClassSubject.class_subject_id == class_subject_id)
    if class_timetable_id is not None:
        stmt = stmt.join(
            TimetableEntry, TimetableEntry.id == ScheduledClassSubject.timetable_entry_id
        ).where(TimetableEntry.class_timetable_id == class_timetable_id)
    stmt = stmt.order_by(
        ScheduledClassSubject.day_of_week, TimeSlot.order, TimeSlot.start_time, ScheduledClassSubject.id
    )
    count, rows = await paginate(db, stmt, pagination)
    return count, [to_response(scs) for scs in rows]


async def unschedule_class_subject(
    db: AsyncSession,
    school_id: UUID,
    scheduled_id: UUID,
) -> None:
    """Remove an assignment. A missing id is NotFound, never a silent success."""
    scs = await db.get(ScheduledClassSubject, scheduled_id)
    if not scs or scs.school_id != school_id:
        raise NotFound("Scheduled class subject not found")
    entry_id = scs.timetable_entry_id
    await db.delete(scs)
    await db.commit()
    logger.info("Unscheduled %s from entry %s", scheduled_id, entry_id)


async def unschedule_many(
    db: AsyncSession,
    school_id: UUID,
    scheduled_ids: List[UUID],
) -> int:
    """Remove a set of assignments (e.g. a multi-period block) as one unit."""
    wanted = set(scheduled_ids)
    result = await db.execute(
        select(ScheduledClassSubject.id).where(
            ScheduledClassSubject.id.in_(wanted),
            ScheduledClassSubject.school_id == school_id,
        )
    )
    found = set(result.scalars().all())
    missing = wanted - found
    if missing:
        raise NotFound(
            "Scheduled class subjects not found: " + ", ".join(sorted(str(m) for m in missing))
        )
    await db.execute(
        delete(ScheduledClassSubject)
        .where(ScheduledClassSubject.id.in_(found))
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    logger.info("Unscheduled %d assignments as one unit", len(found))
    return len(found)
