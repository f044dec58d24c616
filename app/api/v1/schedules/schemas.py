from datetime import time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.api.v1.timetable_entries.schemas import TimetableEntryResponse
from app.core.schemas import format_time_24


class TeacherScheduleEntry(BaseModel):
    """One period a teacher teaches, flattened across every class's active timetable."""

    id: UUID = Field(..., description="Scheduled class subject id")
    day_of_week: int
    day_of_week_display: str
    time_slot_name: str
    start_time: time
    end_time: time
    school_class_id: UUID
    school_class_name: str
    class_subject_id: UUID
    subject_name: str
    subject_code: Optional[str] = None
    slot_notes: Optional[str] = None
    teaching_teacher_id: Optional[UUID] = None
    teaching_teacher_name: Optional[str] = None

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return format_time_24(t)


class StudentTimetableResponse(BaseModel):
    student_id: UUID
    student_name: str
    class_name: str
    academic_year_name: str
    timetable_id: Optional[UUID] = None
    entries: List[TimetableEntryResponse] = Field(default_factory=list)
    message: Optional[str] = None
