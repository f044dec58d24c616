from app.core.models.school import School
from app.core.models.academic_year import AcademicYear
from app.core.models.class_model import SchoolClass
from app.core.models.school_subject import SchoolSubject
from app.core.models.teacher import Teacher
from app.core.models.class_subject import ClassSubject
from app.core.models.student import Student
from app.core.models.student_academic_record import StudentAcademicRecord
from app.core.models.timetable import ClassTimetable, ScheduledClassSubject, TimeSlot, TimetableEntry

__all__ = [
    "School",
    "AcademicYear",
    "SchoolClass",
    "SchoolSubject",
    "Teacher",
    "ClassSubject",
    "Student",
    "StudentAcademicRecord",
    "TimeSlot",
    "ClassTimetable",
    "TimetableEntry",
    "ScheduledClassSubject",
]
