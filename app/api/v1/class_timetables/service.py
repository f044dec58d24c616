"""
Class timetable versions. Any number of drafts per (class, academic year); at most
one active. Activation is the only way an active version goes back to draft.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidOperation, NotFound
from app.core.models import ClassTimetable, ScheduledClassSubject, TimetableEntry
from app.core.pagination import PaginationParams, paginate
from app.core.schemas import SimpleRef
from app.db.locking import commit_or_conflict, lock_rows

from app.api.v1.class_subjects import service as catalog
from app.api.v1.timetable_entries import service as entries_service

from .schemas import (
    ClassTimetableCreate,
    ClassTimetableDetailResponse,
    ClassTimetableResponse,
    ClassTimetableUpdate,
)

logger = logging.getLogger(__name__)


def to_response(t: ClassTimetable) -> ClassTimetableResponse:
    return ClassTimetableResponse(
        id=t.id,
        school_id=t.school_id,
        school_class=SimpleRef(id=t.school_class.id, name=t.school_class.name),
        academic_year=SimpleRef(id=t.academic_year.id, name=t.academic_year.name),
        is_active=t.is_active,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


async def load_class_timetable(db: AsyncSession, school_id: UUID, class_timetable_id: UUID) -> ClassTimetable:
    result = await db.execute(
        select(ClassTimetable)
        .where(ClassTimetable.id == class_timetable_id, ClassTimetable.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    timetable = result.scalar_one_or_none()
    if not timetable:
        raise NotFound("Class timetable not found")
    return timetable


async def _activate(db: AsyncSession, timetable: ClassTimetable) -> None:
    """Deactivate every version of the class/year, then activate `timetable`. Caller commits."""
    siblings = await db.execute(
        select(ClassTimetable.id).where(
            ClassTimetable.school_class_id == timetable.school_class_id,
            ClassTimetable.academic_year_id == timetable.academic_year_id,
        )
    )
    await lock_rows(db, ClassTimetable, list(siblings.scalars().all()))
    await db.execute(
        update(ClassTimetable)
        .where(
            ClassTimetable.school_class_id == timetable.school_class_id,
            ClassTimetable.academic_year_id == timetable.academic_year_id,
            ClassTimetable.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(
        update(ClassTimetable)
        .where(ClassTimetable.id == timetable.id)
        .values(is_active=True)
        .execution_options(synchronize_session="fetch")
    )


async def create_class_timetable(
    db: AsyncSession,
    school_id: UUID,
    payload: ClassTimetableCreate,
) -> ClassTimetableResponse:
    await catalog.resolve_school_class(db, school_id, payload.school_class_id)
    await catalog.resolve_academic_year(db, school_id, payload.academic_year_id)
    timetable = ClassTimetable(
        school_id=school_id,
        school_class_id=payload.school_class_id,
        academic_year_id=payload.academic_year_id,
        is_active=False,
    )
    db.add(timetable)
    await db.flush()
    if payload.is_active:
        await _activate(db, timetable)
    await commit_or_conflict(db, "create class timetable")
    logger.info(
        "Created class timetable %s for class %s / year %s (active=%s)",
        timetable.id, payload.school_class_id, payload.academic_year_id, payload.is_active,
    )
    return to_response(await load_class_timetable(db, school_id, timetable.id))


async def list_class_timetables(
    db: AsyncSession,
    school_id: UUID,
    school_class_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
    pagination: Optional[PaginationParams] = None,
) -> Tuple[int, List[ClassTimetableResponse]]:
    stmt = select(ClassTimetable).where(ClassTimetable.school_id == school_id)
    if school_class_id is not None:
        stmt = stmt.where(ClassTimetable.school_class_id == school_class_id)
    if academic_year_id is not None:
        stmt = stmt.where(ClassTimetable.academic_year_id == academic_year_id)
    if is_active is not None:
        stmt = stmt.where(ClassTimetable.is_active.is_(is_active))
    stmt = stmt.order_by(ClassTimetable.created_at.desc(), ClassTimetable.id).execution_options(populate_existing=True)
    count, rows = await paginate(db, stmt, pagination)
    return count, [to_response(t) for t in rows]


async def get_class_timetable(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> ClassTimetableResponse:
    return to_response(await load_class_timetable(db, school_id, class_timetable_id))


async def set_class_timetable_active(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> ClassTimetableResponse:
    """Make this version the active one; every sibling becomes a draft in the same transaction."""
    timetable = await load_class_timetable(db, school_id, class_timetable_id)
    await _activate(db, timetable)
    await commit_or_conflict(db, "set timetable active")
    logger.info(
        "Activated class timetable %s for class %s / year %s",
        timetable.id, timetable.school_class_id, timetable.academic_year_id,
    )
    return to_response(await load_class_timetable(db, school_id, class_timetable_id))


async def update_class_timetable(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
    payload: ClassTimetableUpdate,
) -> ClassTimetableResponse:
    timetable = await load_class_timetable(db, school_id, class_timetable_id)
    changes = payload.model_dump(exclude_unset=True)
    new_class_id = changes.get("school_class_id") or timetable.school_class_id
    new_year_id = changes.get("academic_year_id") or timetable.academic_year_id

    if (new_class_id, new_year_id) != (timetable.school_class_id, timetable.academic_year_id):
        if timetable.is_active:
            raise InvalidOperation("The active timetable cannot be moved to another class or academic year")
        has_entries = await db.execute(
            select(TimetableEntry.id).where(TimetableEntry.class_timetable_id == timetable.id).limit(1)
        )
        if has_entries.first() is not None:
            raise InvalidOperation(
                "Only an empty draft can be moved to another class or academic year; duplicate it instead"
            )
        await catalog.resolve_school_class(db, school_id, new_class_id)
        await catalog.resolve_academic_year(db, school_id, new_year_id)
        timetable.school_class_id = new_class_id
        timetable.academic_year_id = new_year_id
        await db.flush()

    is_active = changes.get("is_active")
    if is_active is True and not timetable.is_active:
        await _activate(db, timetable)
    elif is_active is False and timetable.is_active:
        raise InvalidOperation("The active timetable returns to draft only when another version is activated")

    await commit_or_conflict(db, "update class timetable")
    logger.info("Updated class timetable %s (%s)", timetable.id, ", ".join(sorted(changes)))
    return to_response(await load_class_timetable(db, school_id, class_timetable_id))


async def delete_class_timetable(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> None:
    """Delete a version with its entries and scheduled subjects.

    The active version cannot be deleted while it is the only version of its class/year.
    """
    timetable = await load_class_timetable(db, school_id, class_timetable_id)
    if timetable.is_active:
        count = await db.execute(
            select(func.count(ClassTimetable.id)).where(
                ClassTimetable.school_class_id == timetable.school_class_id,
                ClassTimetable.academic_year_id == timetable.academic_year_id,
            )
        )
        if count.scalar_one() <= 1:
            raise InvalidOperation(
                "Cannot delete the only timetable of this class and academic year while it is active; "
                "create a replacement first"
            )
    entry_ids = select(TimetableEntry.id).where(TimetableEntry.class_timetable_id == timetable.id)
    await db.execute(
        delete(ScheduledClassSubject)
        .where(ScheduledClassSubject.timetable_entry_id.in_(entry_ids))
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(
        delete(TimetableEntry)
        .where(TimetableEntry.class_timetable_id == timetable.id)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(
        delete(ClassTimetable)
        .where(ClassTimetable.id == timetable.id)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    logger.info("Deleted class timetable %s", class_timetable_id)


async def duplicate_class_timetable(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> ClassTimetableDetailResponse:
    """Copy a version (cells, notes and scheduled subjects) into a new draft of the same class/year."""
    source = await load_class_timetable(db, school_id, class_timetable_id)
    result = await db.execute(
        entries_service.entries_query().where(TimetableEntry.class_timetable_id == source.id)
    )
    source_entries = list(result.scalars().all())

    copy = ClassTimetable(
        school_id=school_id,
        school_class_id=source.school_class_id,
        academic_year_id=source.academic_year_id,
        is_active=False,
    )
    db.add(copy)
    await db.flush()
    for src in source_entries:
        entry = TimetableEntry(
            school_id=school_id,
            class_timetable_id=copy.id,
            day_of_week=src.day_of_week,
            time_slot_id=src.time_slot_id,
            notes=src.notes,
        )
        db.add(entry)
        await db.flush()
        scheduled = src.scheduled_subject
        if scheduled is not None:
            db.add(
                ScheduledClassSubject(
                    school_id=school_id,
                    timetable_entry_id=entry.id,
                    class_subject_id=scheduled.class_subject_id,
                    assigned_teacher_id=scheduled.assigned_teacher_id,
                    notes=scheduled.notes,
                    academic_year_id=scheduled.academic_year_id,
                    school_class_id=scheduled.school_class_id,
                    day_of_week=scheduled.day_of_week,
                    time_slot_id=scheduled.time_slot_id,
                )
            )
    await commit_or_conflict(db, "duplicate class timetable")
    logger.info("Duplicated class timetable %s into draft %s (%d entries)", source.id, copy.id, len(source_entries))
    return await build_detail(db, school_id, copy.id)


async def build_detail(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: UUID,
) -> ClassTimetableDetailResponse:
    """Grid of one version: timetable header plus entries ordered by (day, slot order, start)."""
    timetable = await load_class_timetable(db, school_id, class_timetable_id)
    result = await db.execute(
        entries_service.entries_query()
        .where(TimetableEntry.class_timetable_id == timetable.id)
        .order_by(*entries_service.grid_ordering())
    )
    header = to_response(timetable)
    return ClassTimetableDetailResponse(
        **header.model_dump(),
        entries=[entries_service.to_response(e) for e in result.scalars().all()],
    )
