from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.api.v1.timetable_entries.schemas import TimetableEntryResponse
from app.core.schemas import SimpleRef


class ClassTimetableCreate(BaseModel):
    """New timetable version for a class and academic year. Drafts unless is_active=true."""

    school_class_id: UUID
    academic_year_id: UUID
    is_active: bool = Field(False, description="Activate immediately (deactivates the other versions)")


class ClassTimetableUpdate(BaseModel):
    """
    Partial update. is_active=true activates this version; a version only returns to
    draft when a sibling is activated. Class and year can change only on an empty draft.
    """

    school_class_id: Optional[UUID] = None
    academic_year_id: Optional[UUID] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def require_some_field(self) -> "ClassTimetableUpdate":
        if not self.model_fields_set:
            raise ValueError("Provide school_class_id, academic_year_id and/or is_active")
        return self


class ClassTimetableResponse(BaseModel):
    id: UUID
    school_id: UUID
    school_class: SimpleRef
    academic_year: SimpleRef
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassTimetableDetailResponse(ClassTimetableResponse):
    """Timetable with its cells and the subject scheduled in each."""

    entries: List[TimetableEntryResponse] = Field(default_factory=list)

