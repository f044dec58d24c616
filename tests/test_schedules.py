import uuid
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.class_timetables import service as class_timetables_service
from app.api.v1.schedules import service as schedules_service
from app.core.exceptions import NotFound, UpstreamNotFound
from app.core.models import ClassSubject

from factories import make_entry, make_slot, make_timetable, schedule


@pytest.fixture()
async def published(db_session: AsyncSession, school: SimpleNamespace) -> SimpleNamespace:
    """10A active timetable with Math (Teacher A) on Monday P1 and an empty Monday P2."""
    p1 = await make_slot(db_session, school.school_id, "P1", "08:00", "09:00", 1)
    p2 = await make_slot(db_session, school.school_id, "P2", "09:00", "10:00", 2)
    tt_10a = await make_timetable(db_session, school.school_id, school.class_10a_id, school.year_id, is_active=True)
    mon_p2 = await make_entry(db_session, school.school_id, tt_10a, 0, p2)
    mon_p1 = await make_entry(db_session, school.school_id, tt_10a, 0, p1, notes="Room 12")
    math = await schedule(db_session, school.school_id, mon_p1, school.cs_math_10a_id)
    return SimpleNamespace(p1=p1, p2=p2, tt_10a=tt_10a, mon_p1=mon_p1, mon_p2=mon_p2, math_id=math.id)


@pytest.mark.asyncio
async def test_teacher_schedule_after_single_assignment(
    db_session: AsyncSession, school: SimpleNamespace, published: SimpleNamespace
) -> None:
    rows = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_a_id, school.year_id)

    assert len(rows) == 1
    row = rows[0]
    assert row.id == published.math_id
    assert (row.day_of_week, row.day_of_week_display) == (0, "Monday")
    assert row.time_slot_name == "P1"
    assert row.school_class_id == school.class_10a_id
    assert row.school_class_name == "10A"
    assert (row.subject_name, row.subject_code) == ("Math", "MATH")
    assert row.slot_notes == "Room 12"
    assert row.teaching_teacher_name == "Teacher A"


@pytest.mark.asyncio
async def test_teacher_schedule_ignores_drafts(
    db_session: AsyncSession, school: SimpleNamespace, published: SimpleNamespace
) -> None:
    draft_10b = await make_timetable(db_session, school.school_id, school.class_10b_id, school.year_id)
    entry = await make_entry(db_session, school.school_id, draft_10b, 2, published.p1)
    await schedule(db_session, school.school_id, entry, school.cs_math_10b_id)

    rows = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_a_id, school.year_id)
    assert [r.school_class_name for r in rows] == ["10A"]


@pytest.mark.asyncio
async def test_teacher_schedule_follows_substitute(
    db_session: AsyncSession, school: SimpleNamespace, published: SimpleNamespace
) -> None:
    tt_10b = await make_timetable(db_session, school.school_id, school.class_10b_id, school.year_id, is_active=True)
    entry = await make_entry(db_session, school.school_id, tt_10b, 0, published.p1)
    await schedule(db_session, school.school_id, entry, school.cs_math_10b_id, assigned_teacher_id=school.teacher_b_id)

    rows_a = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_a_id, school.year_id)
    rows_b = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_b_id, school.year_id)
    assert [r.school_class_name for r in rows_a] == ["10A"]
    assert [(r.school_class_name, r.subject_name) for r in rows_b] == [("10B", "Math")]


@pytest.mark.asyncio
async def test_teacher_schedule_follows_catalog_teacher(
    db_session: AsyncSession, school: SimpleNamespace, published: SimpleNamespace
) -> None:
    await db_session.execute(
        update(ClassSubject)
        .where(ClassSubject.id == school.cs_math_10a_id)
        .values(teacher_id=school.teacher_b_id)
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()
    db_session.expire_all()

    rows_a = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_a_id, school.year_id)
    rows_b = await schedules_service.teacher_schedule(db_session, school.school_id, school.teacher_b_id, school.year_id)
    assert rows_a == []
    assert [(r.school_class_name, r.teaching_teacher_name) for r in rows_b] == [("10A", "Teacher B")]


@pytest.mark.asyncio
async def test_teacher_schedule_unknown_teacher(db_session: AsyncSession, school: SimpleNamespace) -> None:
    with pytest.raises(UpstreamNotFound):
        await schedules_service.teacher_schedule(db_session, school.school_id, uuid.uuid4(), school.year_id)


@pytest.mark.asyncio
async def test_class_active_schedule(
    client: AsyncClient, school: SimpleNamespace, published: SimpleNamespace, headers: dict
) -> None:
    response = await client.get(
        "/api/v1/timetables/class-active-schedules",
        params={"class_id": str(school.class_10a_id), "academic_year_id": str(school.year_id)},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(published.tt_10a)
    assert data["is_active"] is True
    assert [e["time_slot"]["name"] for e in data["entries"]] == ["P1", "P2"]
    math = data["entries"][0]["scheduled_subjects"][0]
    assert math["class_subject"]["subject"]["code"] == "MATH"
    assert math["effective_teacher"]["name"] == "Teacher A"
    assert data["entries"][1]["scheduled_subjects"] == []


@pytest.mark.asyncio
async def test_class_without_active_timetable(
    client: AsyncClient, db_session: AsyncSession, school: SimpleNamespace, headers: dict
) -> None:
    await make_timetable(db_session, school.school_id, school.class_10b_id, school.year_id)

    response = await client.get(
        "/api/v1/timetables/class-active-schedules",
        params={"class_id": str(school.class_10b_id), "academic_year_id": str(school.year_id)},
        headers=headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_schedule_grid_shows_drafts(
    client: AsyncClient, db_session: AsyncSession, school: SimpleNamespace, published: SimpleNamespace, headers: dict
) -> None:
    draft = await class_timetables_service.duplicate_class_timetable(db_session, school.school_id, published.tt_10a)

    response = await client.get(f"/api/v1/timetables/class-timetables/{draft.id}/schedule-grid", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["is_active"] is False
    assert len(data["entries"]) == 2


@pytest.mark.asyncio
async def test_student_schedule(
    client: AsyncClient, school: SimpleNamespace, published: SimpleNamespace, headers: dict
) -> None:
    response = await client.get(
        "/api/v1/timetables/student-schedules",
        params={"student_id": str(school.student_id), "academic_year_id": str(school.year_id)},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["student_name"] == "Ada Student"
    assert data["class_name"] == "10A"
    assert data["academic_year_name"] == "2024"
    assert data["timetable_id"] == str(published.tt_10a)
    assert data["message"] is None
    assert [e["time_slot"]["name"] for e in data["entries"]] == ["P1", "P2"]


@pytest.mark.asyncio
async def test_student_schedule_without_active_timetable(db_session: AsyncSession, school: SimpleNamespace) -> None:
    view = await schedules_service.student_schedule(db_session, school.school_id, school.student_id, school.year_id)

    assert view.timetable_id is None
    assert view.entries == []
    assert "10A" in view.message


@pytest.mark.asyncio
async def test_student_not_enrolled(db_session: AsyncSession, school: SimpleNamespace) -> None:
    with pytest.raises(UpstreamNotFound):
        await schedules_service.student_schedule(
            db_session, school.school_id, school.unenrolled_student_id, school.year_id
        )
    with pytest.raises(UpstreamNotFound):
        await schedules_service.student_schedule(db_session, school.school_id, uuid.uuid4(), school.year_id)


@pytest.mark.asyncio
async def test_schedule_grid_unknown_timetable(db_session: AsyncSession, school: SimpleNamespace) -> None:
    with pytest.raises(NotFound):
        await schedules_service.schedule_grid(db_session, school.school_id, uuid.uuid4())


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/v1/timetables/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
