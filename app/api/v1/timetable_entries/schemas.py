from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.api.v1.scheduled_subjects.schemas import ScheduledClassSubjectResponse
from app.api.v1.time_slots.schemas import TimeSlotResponse


class TimetableEntryCreate(BaseModel):
    class_timetable_id: UUID
    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")
    time_slot_id: UUID
    notes: Optional[str] = Field(None, max_length=500)


class TimetableEntryUpdate(BaseModel):
    """Move the cell (day and/or slot) or edit its notes."""

    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    time_slot_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_some_field(self) -> "TimetableEntryUpdate":
        if not self.model_fields_set:
            raise ValueError("Provide day_of_week, time_slot_id and/or notes")
        return self


class TimetableEntryResponse(BaseModel):
    id: UUID
    class_timetable_id: UUID
    day_of_week: int
    day_of_week_display: str
    time_slot: TimeSlotResponse
    notes: Optional[str] = None
    scheduled_subjects: List[ScheduledClassSubjectResponse] = Field(
        default_factory=list, description="Zero or one subject scheduled in this cell"
    )
    created_at: datetime

    class Config:
        from_attributes = True
