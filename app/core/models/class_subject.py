"""Class–subject mapping (year-specific). Which subject is taught in which class, and by whom, for an academic year."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class ClassSubject(Base):
    __tablename__ = "class_subjects"
    __table_args__ = (
        UniqueConstraint(
            "academic_year_id", "class_id", "subject_id",
            name="uq_class_subjects_ay_class_subject",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    # Default teacher; a class subject may not have one yet.
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    coefficient = Column(Integer, nullable=False, default=1)
    mandatory = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    academic_year = relationship("AcademicYear")
    school_class = relationship("SchoolClass", foreign_keys=[class_id], lazy="joined")
    subject = relationship("SchoolSubject", lazy="joined")
    teacher = relationship("Teacher", foreign_keys=[teacher_id], lazy="joined")
