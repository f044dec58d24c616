from enum import Enum, IntEnum


class DayOfWeek(IntEnum):
    """0=Monday .. 6=Sunday (same numbering as Python's date.weekday())."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def display(self) -> str:
        return self.name.capitalize()


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PROMOTED = "PROMOTED"
    LEFT = "LEFT"


class TimeSlotOrdering(str, Enum):
    ORDER = "order"
    ORDER_DESC = "-order"
    START_TIME = "start_time"
    START_TIME_DESC = "-start_time"
    NAME = "name"
    NAME_DESC = "-name"
