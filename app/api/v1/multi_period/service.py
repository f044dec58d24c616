"""
Multi-period bulk scheduling: one class subject across consecutive teaching periods
of a day, all or nothing.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CellOccupied,
    InsufficientSlots,
    InvalidOperation,
    TeacherConflict,
    TransactionConflict,
)
from app.core.models import TimeSlot, TimetableEntry
from app.core.schemas import day_display
from app.db.locking import commit_or_conflict, lock_rows

from app.api.v1.class_subjects import service as catalog
from app.api.v1.scheduled_subjects import service as scheduled_service
from app.api.v1.scheduled_subjects.schemas import ScheduledClassSubjectResponse
from app.api.v1.time_slots import service as time_slots_service
from app.api.v1.timetable_entries import service as entries_service

from .schemas import MultiPeriodScheduleCreate

logger = logging.getLogger(__name__)


def pick_block_slots(ordered_slots: List[TimeSlot], start_slot: TimeSlot, num_periods: int) -> List[TimeSlot]:
    """From the school day (ordered), the first `num_periods` teaching slots starting at `start_slot`.

    Breaks inside the span are skipped.
    """
    if start_slot.is_break:
        raise InvalidOperation(f"Cannot start a block on break '{start_slot.name}'")
    position = next(i for i, slot in enumerate(ordered_slots) if slot.id == start_slot.id)
    teaching = [slot for slot in ordered_slots[position:] if not slot.is_break]
    if len(teaching) < num_periods:
        raise InsufficientSlots(
            f"Only {len(teaching)} teaching period(s) remain from '{start_slot.name}'; "
            f"{num_periods} requested"
        )
    return teaching[:num_periods]


async def schedule_block(
    db: AsyncSession,
    school_id: UUID,
    payload: MultiPeriodScheduleCreate,
) -> List[ScheduledClassSubjectResponse]:
    """Get-or-create the entries of the block and schedule the class subject into each.

    Every cell is validated before anything is committed; a failure on any period
    rolls back the whole block, including entries created by this call.
    """
    timetable = await entries_service.get_class_timetable_model(db, school_id, payload.class_timetable_id)
    start_slot = await time_slots_service.get_time_slot_model(db, school_id, payload.start_time_slot_id)
    ordered = await time_slots_service.list_ordered_time_slots(db, school_id)
    block = pick_block_slots(ordered, start_slot, payload.num_periods)

    cs = await catalog.resolve_class_subject(db, school_id, payload.class_subject_id)
    if payload.assigned_teacher_id is not None:
        await catalog.resolve_teacher(db, school_id, payload.assigned_teacher_id)
    scheduled_service.check_class_subject_matches(cs, timetable)

    await lock_rows(db, TimeSlot, [slot.id for slot in block])
    entries: List[TimetableEntry] = []
    for slot in block:
        entry, _ = await entries_service.get_or_create_entry(
            db, timetable, payload.day_of_week, slot, notes=payload.notes
        )
        entries.append(entry)
    await lock_rows(db, TimetableEntry, [entry.id for entry in entries])
    # Existing cells were found before their locks were taken; make sure none moved since.
    fresh = await db.execute(
        select(TimetableEntry.id, TimetableEntry.day_of_week, TimetableEntry.time_slot_id)
        .where(TimetableEntry.id.in_([entry.id for entry in entries]))
    )
    placed = {row.id: (row.day_of_week, row.time_slot_id) for row in fresh}
    if any(placed.get(entry.id) != (payload.day_of_week, slot.id) for slot, entry in zip(block, entries)):
        await db.rollback()
        logger.warning("Block entries of timetable %s moved while being locked", timetable.id)
        raise TransactionConflict("A timetable entry of the block was moved concurrently; please retry")

    rows = []
    for period, (slot, entry) in enumerate(zip(block, entries), start=1):
        try:
            rows.append(
                await scheduled_service.build_assignment(
                    db, entry, timetable, cs,
                    assigned_teacher_id=payload.assigned_teacher_id,
                )
            )
        except (CellOccupied, TeacherConflict) as e:
            error = type(e)(f"Period {period} ({slot.name}): {e.message}")
            await db.rollback()
            logger.info("Rejected block scheduling of class subject %s: %s", payload.class_subject_id, error.message)
            raise error from e

    db.add_all(rows)
    await db.flush()
    scheduled_ids = [row.id for row in rows]
    await commit_or_conflict(db, "multi-period schedule")
    logger.info(
        "Scheduled class subject %s over %d period(s) on %s in timetable %s",
        payload.class_subject_id, len(scheduled_ids), day_display(payload.day_of_week), payload.class_timetable_id,
    )
    return [
        scheduled_service.to_response(
            await scheduled_service.load_scheduled_class_subject(db, school_id, scheduled_id)
        )
        for scheduled_id in scheduled_ids
    ]
