"""Timetable scheduling tables.

TimeSlot        daily period/break skeleton of a school.
ClassTimetable  one version (draft or active) of a class's timetable for an academic year.
TimetableEntry  one cell: a slot on a day inside a ClassTimetable.
ScheduledClassSubject  the class subject (subject + teacher) placed in a cell.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(50), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    order = Column(Integer, nullable=False)
    is_break = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class ClassTimetable(Base):
    __tablename__ = "class_timetables"
    __table_args__ = (
        # At most one active version per class and academic year.
        Index(
            "uq_class_timetables_one_active",
            "school_class_id",
            "academic_year_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    school_class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[school_class_id], lazy="joined")
    academic_year = relationship("AcademicYear", lazy="joined")
    entries = relationship(
        "TimetableEntry",
        back_populates="class_timetable",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"
    __table_args__ = (
        UniqueConstraint(
            "class_timetable_id", "day_of_week", "time_slot_id",
            name="uq_timetable_entries_cell",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    class_timetable_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_timetables.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week = Column(Integer, nullable=False)  # 0=Monday .. 6=Sunday
    time_slot_id = Column(
        UUID(as_uuid=True),
        ForeignKey("time_slots.id", ondelete="RESTRICT"),
        nullable=False,
    )
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    class_timetable = relationship("ClassTimetable", back_populates="entries")
    time_slot = relationship("TimeSlot", lazy="joined")
    scheduled_subject = relationship(
        "ScheduledClassSubject",
        back_populates="timetable_entry",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ScheduledClassSubject(Base):
    """
    A class subject scheduled into one timetable entry.

    academic_year_id, school_class_id, day_of_week and time_slot_id are copied from the
    entry and its timetable on write so that clash checks filter one table. The teacher
    is not copied: the effective teacher is assigned_teacher_id when set, otherwise the
    class subject's current teacher, so catalog teacher changes apply immediately.
    """

    __tablename__ = "scheduled_class_subjects"
    __table_args__ = (
        UniqueConstraint("timetable_entry_id", name="uq_scheduled_class_subjects_entry"),
        Index(
            "ix_scheduled_class_subjects_year_slot",
            "academic_year_id", "day_of_week", "time_slot_id",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    timetable_entry_id = Column(
        UUID(as_uuid=True),
        ForeignKey("timetable_entries.id", ondelete="CASCADE"),
        nullable=False,
    )
    class_subject_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_subjects.id", ondelete="RESTRICT"),
        nullable=False,
    )
    assigned_teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    notes = Column(String(500), nullable=True)

    academic_year_id = Column(UUID(as_uuid=True), ForeignKey("academic_years.id"), nullable=False)
    school_class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    time_slot_id = Column(UUID(as_uuid=True), ForeignKey("time_slots.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    timetable_entry = relationship("TimetableEntry", back_populates="scheduled_subject")
    class_subject = relationship("ClassSubject", lazy="joined")
    assigned_teacher = relationship("Teacher", foreign_keys=[assigned_teacher_id], lazy="joined")

    @property
    def effective_teacher(self):
        if self.assigned_teacher_id is not None:
            return self.assigned_teacher
        return self.class_subject.teacher if self.class_subject else None

    @property
    def effective_teacher_id(self):
        if self.assigned_teacher_id is not None:
            return self.assigned_teacher_id
        return self.class_subject.teacher_id if self.class_subject else None
