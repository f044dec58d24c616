from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class MultiPeriodScheduleCreate(BaseModel):
    """One class subject over consecutive periods of a day (e.g. a double period)."""

    class_timetable_id: UUID
    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")
    start_time_slot_id: UUID
    num_periods: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("num_periods", "period_count"),
        description="Number of teaching periods; breaks inside the span are skipped",
    )
    class_subject_id: UUID
    assigned_teacher_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=500, description="Notes for entries created by this request")
