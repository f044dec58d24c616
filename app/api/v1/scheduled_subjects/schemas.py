from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.schemas import SimpleRef, SimpleSubject


class NestedClassSubject(BaseModel):
    """Catalog class subject as shown inside a timetable cell."""

    id: UUID
    subject: SimpleSubject
    teacher: Optional[SimpleRef] = Field(None, description="Default teacher from the class subject")
    coefficient: int
    mandatory: bool


class ScheduledClassSubjectCreate(BaseModel):
    timetable_entry_id: UUID
    class_subject_id: UUID
    assigned_teacher_id: Optional[UUID] = Field(
        None, description="Substitute teacher for this cell; defaults to the class subject's teacher"
    )
    notes: Optional[str] = Field(None, max_length=500)


class ScheduledClassSubjectUpdate(BaseModel):
    """Change the substitute teacher (null clears it) and/or notes."""

    assigned_teacher_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_some_field(self) -> "ScheduledClassSubjectUpdate":
        if not self.model_fields_set:
            raise ValueError("Provide assigned_teacher_id and/or notes")
        return self


class ScheduledClassSubjectBulkDelete(BaseModel):
    ids: List[UUID] = Field(..., min_length=1)


class ScheduledClassSubjectResponse(BaseModel):
    id: UUID
    timetable_entry_id: UUID
    class_subject: NestedClassSubject
    assigned_teacher: Optional[SimpleRef] = None
    effective_teacher: Optional[SimpleRef] = None
    effective_teacher_id: Optional[UUID] = None
    effective_teacher_name: Optional[str] = None
    academic_year_id: UUID
    school_class_id: UUID
    day_of_week: int
    time_slot_id: UUID
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
