from datetime import datetime, time
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from app.core.schemas import format_time_24, parse_time_24


class TimeSlotCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Period 1, Lunch")
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:45")
    order: int = Field(..., ge=0, description="Position in the school day")
    is_break: bool = False

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return parse_time_24(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class TimeSlotUpdate(BaseModel):
    """Partial update. Only name may change once the slot is used by a timetable entry."""

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:45")
    order: Optional[int] = Field(None, ge=0)
    is_break: Optional[bool] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return parse_time_24(v)

    @model_validator(mode="after")
    def require_some_field(self) -> "TimeSlotUpdate":
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update")
        return self


class TimeSlotResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    start_time: time
    end_time: time
    order: int
    is_break: bool
    duration_display: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return format_time_24(t)
