import asyncio
import uuid
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.scheduled_subjects import service as scheduled_service
from app.api.v1.scheduled_subjects.schemas import ScheduledClassSubjectUpdate
from app.core.exceptions import (
    CellOccupied,
    ClassMismatch,
    InvalidOperation,
    NotFound,
    TeacherConflict,
    TransactionConflict,
    UpstreamNotFound,
)
from app.core.models import ClassSubject, ScheduledClassSubject, TimetableEntry
from app.db.session import Base, use_immediate_transactions

from factories import make_entry, make_slot, make_timetable, schedule, seed_school


@pytest.fixture()
async def grid(db_session: AsyncSession, school: SimpleNamespace) -> SimpleNamespace:
    p1 = await make_slot(db_session, school.school_id, "P1", "08:00", "09:00", 1)
    p2 = await make_slot(db_session, school.school_id, "P2", "09:00", "10:00", 2)
    tt_10a = await make_timetable(db_session, school.school_id, school.class_10a_id, school.year_id, is_active=True)
    tt_10b = await make_timetable(db_session, school.school_id, school.class_10b_id, school.year_id, is_active=True)
    mon_p1_10a = await make_entry(db_session, school.school_id, tt_10a, 0, p1)
    mon_p1_10b = await make_entry(db_session, school.school_id, tt_10b, 0, p1)
    return SimpleNamespace(p1=p1, p2=p2, tt_10a=tt_10a, tt_10b=tt_10b, mon_p1_10a=mon_p1_10a, mon_p1_10b=mon_p1_10b)


async def _count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(ScheduledClassSubject.id)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_schedule_into_empty_cell(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    scheduled = await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    assert scheduled.timetable_entry_id == grid.mon_p1_10a
    assert scheduled.class_subject.subject.name == "Math"
    assert scheduled.class_subject.teacher.name == "Teacher A"
    assert scheduled.assigned_teacher is None
    assert scheduled.effective_teacher_id == school.teacher_a_id
    assert scheduled.effective_teacher_name == "Teacher A"
    assert (scheduled.day_of_week, scheduled.time_slot_id) == (0, grid.p1)
    assert scheduled.school_class_id == school.class_10a_id
    assert await _count(db_session) == 1


@pytest.mark.asyncio
async def test_occupied_cell_is_rejected(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    with pytest.raises(CellOccupied):
        await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_physics_10a_id)
    await db_session.rollback()
    assert await _count(db_session) == 1


@pytest.mark.asyncio
async def test_teacher_clash_across_classes(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    with pytest.raises(TeacherConflict) as exc_info:
        await schedule(db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id)
    message = exc_info.value.message
    assert "Teacher A" in message
    assert "10A" in message
    assert "Math" in message
    assert "Monday" in message
    assert "08:00-09:00" in message
    await db_session.rollback()
    assert await _count(db_session) == 1


@pytest.mark.asyncio
async def test_substitute_teacher_avoids_clash(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    scheduled = await schedule(
        db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id,
        assigned_teacher_id=school.teacher_b_id,
    )
    assert scheduled.assigned_teacher.name == "Teacher B"
    assert scheduled.effective_teacher_id == school.teacher_b_id
    assert scheduled.class_subject.teacher.id == school.teacher_a_id


@pytest.mark.asyncio
async def test_clearing_substitute_rechecks_clash(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)
    covered = await schedule(
        db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id,
        assigned_teacher_id=school.teacher_b_id,
    )

    with pytest.raises(TeacherConflict):
        await scheduled_service.update_scheduled_class_subject(
            db_session, school.school_id, covered.id, ScheduledClassSubjectUpdate(assigned_teacher_id=None)
        )
    await db_session.rollback()

    updated = await scheduled_service.update_scheduled_class_subject(
        db_session, school.school_id, covered.id, ScheduledClassSubjectUpdate(notes="Covering")
    )
    assert updated.notes == "Covering"
    assert updated.effective_teacher_id == school.teacher_b_id


@pytest.mark.asyncio
async def test_catalog_teacher_change_applies_to_scheduled_subjects(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    # The catalog hands 10A Math over to Teacher B.
    await db_session.execute(
        update(ClassSubject)
        .where(ClassSubject.id == school.cs_math_10a_id)
        .values(teacher_id=school.teacher_b_id)
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()
    db_session.expire_all()

    _, listed = await scheduled_service.list_scheduled_class_subjects(
        db_session, school.school_id, class_timetable_id=grid.tt_10a
    )
    assert [s.effective_teacher_id for s in listed] == [school.teacher_b_id]

    # Teacher A is free at Monday P1 now.
    freed = await schedule(db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id)
    assert freed.effective_teacher_id == school.teacher_a_id


@pytest.mark.asyncio
async def test_entry_moved_before_its_lock_is_a_conflict(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_lock_rows = scheduled_service.lock_rows

    async def move_then_lock(db, model, ids):
        if model is TimetableEntry:
            # A concurrent move of the cell to P2 lands right before the entry lock.
            await db.execute(
                update(TimetableEntry)
                .where(TimetableEntry.id == grid.mon_p1_10a)
                .values(time_slot_id=grid.p2)
                .execution_options(synchronize_session=False)
            )
        await original_lock_rows(db, model, ids)

    monkeypatch.setattr(scheduled_service, "lock_rows", move_then_lock)

    with pytest.raises(TransactionConflict):
        await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)
    assert await _count(db_session) == 0


@pytest.mark.asyncio
async def test_concurrent_sessions_cannot_double_book_a_teacher(tmp_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'timetable.db'}")
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with sessions() as db:
            ids = await seed_school(db)
            p1 = await make_slot(db, ids.school_id, "P1", "08:00", "09:00", 1)
            tt_10a = await make_timetable(db, ids.school_id, ids.class_10a_id, ids.year_id, is_active=True)
            tt_10b = await make_timetable(db, ids.school_id, ids.class_10b_id, ids.year_id, is_active=True)
            entry_10a = await make_entry(db, ids.school_id, tt_10a, 0, p1)
            entry_10b = await make_entry(db, ids.school_id, tt_10b, 0, p1)

        # Teacher A teaches Math in both classes; each request runs in its own session.
        async def attempt(entry_id, class_subject_id) -> str:
            async with sessions() as db:
                try:
                    await schedule(db, ids.school_id, entry_id, class_subject_id)
                except TeacherConflict:
                    return "conflict"
                return "scheduled"

        outcomes = await asyncio.gather(
            attempt(entry_10a, ids.cs_math_10a_id),
            attempt(entry_10b, ids.cs_math_10b_id),
        )
        assert sorted(outcomes) == ["conflict", "scheduled"]
        async with sessions() as db:
            assert await _count(db) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_other_version_of_same_class_does_not_clash(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)
    draft_id = await make_timetable(db_session, school.school_id, school.class_10a_id, school.year_id)
    draft_entry = await make_entry(db_session, school.school_id, draft_id, 0, grid.p1)

    scheduled = await schedule(db_session, school.school_id, draft_entry, school.cs_math_10a_id)
    assert scheduled.effective_teacher_id == school.teacher_a_id


@pytest.mark.asyncio
async def test_draft_of_other_class_still_clashes(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    draft_id = await make_timetable(db_session, school.school_id, school.class_10a_id, school.year_id)
    draft_entry = await make_entry(db_session, school.school_id, draft_id, 0, grid.p1)
    await schedule(db_session, school.school_id, draft_entry, school.cs_math_10a_id)

    with pytest.raises(TeacherConflict):
        await schedule(db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id)


@pytest.mark.asyncio
async def test_class_subject_of_other_class(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    with pytest.raises(ClassMismatch):
        await schedule(db_session, school.school_id, grid.mon_p1_10b, school.cs_physics_10a_id)


@pytest.mark.asyncio
async def test_unknown_class_subject(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    with pytest.raises(UpstreamNotFound):
        await schedule(db_session, school.school_id, grid.mon_p1_10a, uuid.uuid4())


@pytest.mark.asyncio
async def test_unknown_substitute_teacher(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    with pytest.raises(UpstreamNotFound):
        await schedule(
            db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id, assigned_teacher_id=uuid.uuid4()
        )


@pytest.mark.asyncio
async def test_break_slot_is_not_assignable(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    lunch = await make_slot(db_session, school.school_id, "Lunch", "12:00", "12:30", 5, is_break=True)
    entry_id = await make_entry(db_session, school.school_id, grid.tt_10a, 0, lunch)

    with pytest.raises(InvalidOperation):
        await schedule(db_session, school.school_id, entry_id, school.cs_math_10a_id)


@pytest.mark.asyncio
async def test_unschedule_then_reschedule(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    scheduled = await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)

    await scheduled_service.unschedule_class_subject(db_session, school.school_id, scheduled.id)
    assert await _count(db_session) == 0

    again = await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_physics_10a_id)
    assert again.class_subject.subject.name == "Physics"
    assert await _count(db_session) == 1


@pytest.mark.asyncio
async def test_unschedule_unknown_id(db_session: AsyncSession, school: SimpleNamespace) -> None:
    with pytest.raises(NotFound):
        await scheduled_service.unschedule_class_subject(db_session, school.school_id, uuid.uuid4())


@pytest.mark.asyncio
async def test_unschedule_many_is_all_or_nothing(
    db_session: AsyncSession, school: SimpleNamespace, grid: SimpleNamespace
) -> None:
    first = await schedule(db_session, school.school_id, grid.mon_p1_10a, school.cs_math_10a_id)
    second = await schedule(db_session, school.school_id, grid.mon_p1_10b, school.cs_math_10b_id,
                            assigned_teacher_id=school.teacher_b_id)

    with pytest.raises(NotFound):
        await scheduled_service.unschedule_many(db_session, school.school_id, [first.id, uuid.uuid4()])
    await db_session.rollback()
    assert await _count(db_session) == 2

    removed = await scheduled_service.unschedule_many(db_session, school.school_id, [first.id, second.id])
    assert removed == 2
    assert await _count(db_session) == 0


@pytest.mark.asyncio
async def test_schedule_api_error_codes(
    client: AsyncClient, school: SimpleNamespace, grid: SimpleNamespace, headers: dict
) -> None:
    url = "/api/v1/timetables/scheduled-class-subjects"
    payload = {"timetable_entry_id": str(grid.mon_p1_10a), "class_subject_id": str(school.cs_math_10a_id)}

    response = await client.post(url, json=payload, headers=headers)
    assert response.status_code == 201
    scheduled_id = response.json()["id"]

    response = await client.post(url, json=payload, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "CELL_OCCUPIED"

    clash = {"timetable_entry_id": str(grid.mon_p1_10b), "class_subject_id": str(school.cs_math_10b_id)}
    response = await client.post(url, json=clash, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "TEACHER_CONFLICT"

    response = await client.get(url, params={"class_timetable_id": str(grid.tt_10a)}, headers=headers)
    assert response.json()["count"] == 1
    assert [s["id"] for s in response.json()["results"]] == [scheduled_id]

    response = await client.delete(f"{url}/{scheduled_id}", headers=headers)
    assert response.status_code == 204
    response = await client.delete(f"{url}/{scheduled_id}", headers=headers)
    assert response.status_code == 404
