import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import DuplicateCell, InvalidOperation, NotFound, TransactionConflict
from app.core.models import ClassTimetable, ScheduledClassSubject, TimeSlot, TimetableEntry
from app.core.pagination import PaginationParams, paginate
from app.core.schemas import day_display
from app.db.locking import commit_or_conflict, lock_rows

from app.api.v1.scheduled_subjects import service as scheduled_service
from app.api.v1.time_slots import service as time_slots_service

from .schemas import TimetableEntryCreate, TimetableEntryResponse, TimetableEntryUpdate

logger = logging.getLogger(__name__)


def to_response(entry: TimetableEntry) -> TimetableEntryResponse:
    scheduled = entry.scheduled_subject
    return TimetableEntryResponse(
        id=entry.id,
        class_timetable_id=entry.class_timetable_id,
        day_of_week=entry.day_of_week,
        day_of_week_display=day_display(entry.day_of_week),
        time_slot=time_slots_service.to_response(entry.time_slot),
        notes=entry.notes,
        scheduled_subjects=[scheduled_service.to_response(scheduled)] if scheduled is not None else [],
        created_at=entry.created_at,
    )


def grid_ordering():
    """(day_of_week, slot.order, slot.start_time); statement must join TimeSlot."""
    return (TimetableEntry.day_of_week, TimeSlot.order, TimeSlot.start_time)


def entries_query():
    return (
        select(TimetableEntry)
        .join(TimeSlot, TimeSlot.id == TimetableEntry.time_slot_id)
        .options(selectinload(TimetableEntry.scheduled_subject))
        .execution_options(populate_existing=True)
    )


async def get_class_timetable_model(db: AsyncSession, school_id: UUID, class_timetable_id: UUID) -> ClassTimetable:
    timetable = await db.get(ClassTimetable, class_timetable_id)
    if not timetable or timetable.school_id != school_id:
        raise NotFound("Class timetable not found")
    return timetable


async def load_entry(db: AsyncSession, school_id: UUID, entry_id: UUID) -> TimetableEntry:
    result = await db.execute(
        entries_query().where(TimetableEntry.id == entry_id, TimetableEntry.school_id == school_id)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise NotFound("Timetable entry not found")
    return entry


async def find_entry(
    db: AsyncSession,
    class_timetable_id: UUID,
    day_of_week: int,
    time_slot_id: UUID,
) -> Optional[TimetableEntry]:
    result = await db.execute(
        select(TimetableEntry).where(
            TimetableEntry.class_timetable_id == class_timetable_id,
            TimetableEntry.day_of_week == day_of_week,
            TimetableEntry.time_slot_id == time_slot_id,
        )
    )
    return result.scalar_one_or_none()


def _duplicate_cell(day_of_week: int, slot: TimeSlot) -> DuplicateCell:
    return DuplicateCell(
        f"This timetable already has an entry for {day_display(day_of_week)} {slot.name}"
    )


async def get_or_create_entry(
    db: AsyncSession,
    timetable: ClassTimetable,
    day_of_week: int,
    slot: TimeSlot,
    notes: Optional[str] = None,
) -> Tuple[TimetableEntry, bool]:
    """Existing cell, or a new flushed (uncommitted) one. Returns (entry, created)."""
    entry = await find_entry(db, timetable.id, day_of_week, slot.id)
    if entry is not None:
        return entry, False
    entry = TimetableEntry(
        school_id=timetable.school_id,
        class_timetable_id=timetable.id,
        day_of_week=day_of_week,
        time_slot_id=slot.id,
        notes=notes,
    )
    entry.time_slot = slot
    db.add(entry)
    await db.flush()
    return entry, True


async def create_timetable_entry(
    db: AsyncSession,
    school_id: UUID,
    payload: TimetableEntryCreate,
) -> TimetableEntryResponse:
    timetable = await get_class_timetable_model(db, school_id, payload.class_timetable_id)
    slot = await time_slots_service.get_time_slot_model(db, school_id, payload.time_slot_id)
    if await find_entry(db, timetable.id, payload.day_of_week, slot.id) is not None:
        raise _duplicate_cell(payload.day_of_week, slot)
    entry = TimetableEntry(
        school_id=school_id,
        class_timetable_id=timetable.id,
        day_of_week=payload.day_of_week,
        time_slot_id=slot.id,
        notes=payload.notes,
    )
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise _duplicate_cell(payload.day_of_week, slot)
    return to_response(await load_entry(db, school_id, entry.id))


async def list_timetable_entries(
    db: AsyncSession,
    school_id: UUID,
    class_timetable_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    day_of_week: Optional[int] = None,
    pagination: Optional[PaginationParams] = None,
) -> Tuple[int, List[TimetableEntryResponse]]:
    stmt = entries_query().where(TimetableEntry.school_id == school_id)
    if class_timetable_id is not None:
        stmt = stmt.where(TimetableEntry.class_timetable_id == class_timetable_id)
    if academic_year_id is not None:
        stmt = stmt.join(
            ClassTimetable, ClassTimetable.id == TimetableEntry.class_timetable_id
        ).where(ClassTimetable.academic_year_id == academic_year_id)
    if day_of_week is not None:
        stmt = stmt.where(TimetableEntry.day_of_week == day_of_week)
    count, rows = await paginate(db, stmt.order_by(*grid_ordering(), TimetableEntry.id), pagination)
    return count, [to_response(e) for e in rows]


async def get_timetable_entry(
    db: AsyncSession,
    school_id: UUID,
    entry_id: UUID,
) -> TimetableEntryResponse:
    return to_response(await load_entry(db, school_id, entry_id))


async def update_timetable_entry(
    db: AsyncSession,
    school_id: UUID,
    entry_id: UUID,
    payload: TimetableEntryUpdate,
) -> TimetableEntryResponse:
    """Edit notes or move the cell. A moved cell carries its assignment along, re-checked at the new position."""
    entry = await load_entry(db, school_id, entry_id)
    changes = payload.model_dump(exclude_unset=True)
    new_day = changes.get("day_of_week")
    new_day = entry.day_of_week if new_day is None else new_day
    new_slot_id = changes.get("time_slot_id") or entry.time_slot_id

    if (new_day, new_slot_id) != (entry.day_of_week, entry.time_slot_id):
        new_slot = await time_slots_service.get_time_slot_model(db, school_id, new_slot_id)
        old_slot_id = entry.time_slot_id
        await lock_rows(db, TimeSlot, [old_slot_id, new_slot.id])
        await lock_rows(db, TimetableEntry, [entry.id])
        entry = await load_entry(db, school_id, entry_id)
        if entry.time_slot_id != old_slot_id:
            await db.rollback()
            raise TransactionConflict("Timetable entry was moved concurrently; please retry")
        if await find_entry(db, entry.class_timetable_id, new_day, new_slot.id) is not None:
            raise _duplicate_cell(new_day, new_slot)
        occupant: Optional[ScheduledClassSubject] = entry.scheduled_subject
        if occupant is not None:
            if new_slot.is_break:
                raise InvalidOperation(
                    f"Cannot move a scheduled subject onto break '{new_slot.name}'"
                )
            await scheduled_service.check_teacher_free(
                db, occupant.academic_year_id, occupant.effective_teacher_id, new_day, new_slot.id,
                occupant.school_class_id, exclude_id=occupant.id,
            )
            occupant.day_of_week = new_day
            occupant.time_slot_id = new_slot.id
        entry.day_of_week = new_day
        entry.time_slot_id = new_slot.id
        entry.time_slot = new_slot
    if "notes" in changes:
        entry.notes = changes["notes"]
    await commit_or_conflict(db, "update timetable entry")
    logger.info("Updated timetable entry %s (day=%s slot=%s)", entry.id, entry.day_of_week, entry.time_slot_id)
    return to_response(await load_entry(db, school_id, entry.id))


async def delete_timetable_entry(
    db: AsyncSession,
    school_id: UUID,
    entry_id: UUID,
) -> None:
    """Delete a cell together with its scheduled subject."""
    entry = await db.get(TimetableEntry, entry_id)
    if not entry or entry.school_id != school_id:
        raise NotFound("Timetable entry not found")
    await db.execute(
        delete(ScheduledClassSubject)
        .where(ScheduledClassSubject.timetable_entry_id == entry_id)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(
        delete(TimetableEntry)
        .where(TimetableEntry.id == entry_id)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
