from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import TimeSlotOrdering
from app.core.exceptions import InvalidOperation, NotFound, ReferentialConflict
from app.core.models import TimeSlot, TimetableEntry
from app.core.pagination import PaginationParams, paginate
from app.core.schemas import duration_display

from .schemas import TimeSlotCreate, TimeSlotResponse, TimeSlotUpdate

# Fields that shape the grid; frozen once any timetable entry uses the slot.
STRUCTURAL_FIELDS = ("start_time", "end_time", "order", "is_break")


def to_response(ts: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(
        id=ts.id,
        school_id=ts.school_id,
        name=ts.name,
        start_time=ts.start_time,
        end_time=ts.end_time,
        order=ts.order,
        is_break=ts.is_break,
        duration_display=duration_display(ts.start_time, ts.end_time),
        created_at=ts.created_at,
    )


def _validate_times(start_time, end_time) -> None:
    if end_time <= start_time:
        raise InvalidOperation("end_time must be after start_time")


def day_ordering():
    """Display order of a school day: (order, start_time)."""
    return (TimeSlot.order, TimeSlot.start_time)


async def get_time_slot_model(db: AsyncSession, school_id: UUID, time_slot_id: UUID) -> TimeSlot:
    ts = await db.get(TimeSlot, time_slot_id)
    if not ts or ts.school_id != school_id:
        raise NotFound("Time slot not found")
    return ts


async def is_time_slot_in_use(db: AsyncSession, time_slot_id: UUID) -> bool:
    result = await db.execute(
        select(TimetableEntry.id).where(TimetableEntry.time_slot_id == time_slot_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_ordered_time_slots(db: AsyncSession, school_id: UUID) -> List[TimeSlot]:
    result = await db.execute(
        select(TimeSlot).where(TimeSlot.school_id == school_id).order_by(*day_ordering())
    )
    return list(result.scalars().all())


async def create_time_slot(
    db: AsyncSession,
    school_id: UUID,
    payload: TimeSlotCreate,
) -> TimeSlotResponse:
    _validate_times(payload.start_time, payload.end_time)
    ts = TimeSlot(
        school_id=school_id,
        name=payload.name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        order=payload.order,
        is_break=payload.is_break,
    )
    db.add(ts)
    await db.commit()
    await db.refresh(ts)
    return to_response(ts)


async def list_time_slots(
    db: AsyncSession,
    school_id: UUID,
    ordering: Optional[TimeSlotOrdering] = None,
    pagination: Optional[PaginationParams] = None,
) -> Tuple[int, List[TimeSlotResponse]]:
    stmt = select(TimeSlot).where(TimeSlot.school_id == school_id)
    order_by = []
    if ordering is not None:
        column = getattr(TimeSlot, ordering.value.lstrip("-"))
        order_by.append(column.desc() if ordering.value.startswith("-") else column.asc())
    # (order, start_time) always breaks ties
    order_by.extend(day_ordering())
    order_by.append(TimeSlot.id)
    count, rows = await paginate(db, stmt.order_by(*order_by), pagination)
    return count, [to_response(ts) for ts in rows]


async def get_time_slot(
    db: AsyncSession,
    school_id: UUID,
    time_slot_id: UUID,
) -> TimeSlotResponse:
    return to_response(await get_time_slot_model(db, school_id, time_slot_id))


async def update_time_slot(
    db: AsyncSession,
    school_id: UUID,
    time_slot_id: UUID,
    payload: TimeSlotUpdate,
) -> TimeSlotResponse:
    ts = await get_time_slot_model(db, school_id, time_slot_id)
    changes = payload.model_dump(exclude_unset=True)
    structural = [
        field for field in STRUCTURAL_FIELDS
        if field in changes and changes[field] != getattr(ts, field)
    ]
    if structural and await is_time_slot_in_use(db, ts.id):
        raise ReferentialConflict(
            f"Time slot '{ts.name}' is used by timetable entries; only its name can change "
            f"(attempted: {', '.join(structural)})"
        )
    new_start = changes.get("start_time") or ts.start_time
    new_end = changes.get("end_time") or ts.end_time
    _validate_times(new_start, new_end)
    if changes.get("name") is not None:
        ts.name = changes["name"].strip()
    for field in STRUCTURAL_FIELDS:
        if changes.get(field) is not None:
            setattr(ts, field, changes[field])
    await db.commit()
    await db.refresh(ts)
    return to_response(ts)


async def delete_time_slot(
    db: AsyncSession,
    school_id: UUID,
    time_slot_id: UUID,
) -> None:
    ts = await get_time_slot_model(db, school_id, time_slot_id)
    if await is_time_slot_in_use(db, ts.id):
        raise ReferentialConflict(
            f"Time slot '{ts.name}' is used by timetable entries and cannot be deleted"
        )
    await db.delete(ts)
    await db.commit()
