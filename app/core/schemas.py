"""Shared schema helpers: 24-hour time parsing/formatting and small nested shapes."""

from datetime import datetime, time
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import DayOfWeek


def parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str):
        v = v.strip()
        if len(v) == 5:  # HH:MM
            return datetime.strptime(v, "%H:%M").time()
        return datetime.strptime(v, "%H:%M:%S").time()
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 09:00, 09:45) or time")


def format_time_24(t: time) -> str:
    return t.strftime("%H:%M")


def day_display(day_of_week: int) -> str:
    return DayOfWeek(day_of_week).display


def duration_display(start: time, end: time) -> str:
    """Human duration of a slot, e.g. '45 min' or '1 h 30 min'."""
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    hours, rest = divmod(minutes, 60)
    if hours and rest:
        return f"{hours} h {rest} min"
    if hours:
        return f"{hours} h"
    return f"{rest} min"


class SimpleRef(BaseModel):
    """id + name of a referenced catalog row (class, academic year, teacher)."""

    id: UUID
    name: str


class SimpleSubject(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
