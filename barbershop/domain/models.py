"""
Domain models for barbers, appointments and bookable time slots.
"""

from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import List, Optional

from pendulum import DateTime

from .exceptions import InvalidScheduleError


# Barber fields that live on the schedule rather than on the barber itself
SCHEDULE_FIELDS = ("work_start", "work_end", "work_days", "slot_duration", "breaks")


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states. Only SCHEDULED occupies a slot."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class BreakTime:
    """
    A recurring daily interval during which the barber is unavailable.

    Invariant: start must be before end.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Break start {self.start} must be before break end {self.end}")

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass
class BarberSchedule:
    """
    Working configuration of a single barber.

    Weekdays use 0=Sunday .. 6=Saturday.
    """
    work_start: time
    work_end: time
    work_days: List[int]
    slot_duration: int = 45
    breaks: List[BreakTime] = field(default_factory=list)

    def validate(self) -> None:
        """
        Check the preconditions the slot generator relies on.

        Raises:
            InvalidScheduleError: If the window is empty, the slot duration is
                not positive or a weekday is out of range
        """
        if self.work_start >= self.work_end:
            raise InvalidScheduleError(
                f"Work start {self.work_start} must be before work end {self.work_end}"
            )
        if self.slot_duration <= 0:
            raise InvalidScheduleError(
                f"Slot duration must be greater than zero, got {self.slot_duration}"
            )
        invalid_days = [day for day in self.work_days if day not in range(7)]
        if invalid_days:
            raise InvalidScheduleError(f"Work days must be between 0 and 6, got {invalid_days}")

    def with_changes(self, **changes) -> "BarberSchedule":
        """Return a copy of the schedule with the given fields replaced."""
        return replace(self, **changes)


@dataclass
class Barber:
    id: str
    name: str
    schedule: BarberSchedule
    avatar_url: Optional[str] = None
    created_at: Optional[DateTime] = None


@dataclass
class Appointment:
    """
    A booking held in the appointment store.

    ``time`` is the slot start as ``HH:mm``.
    """
    id: str
    barber_id: str
    client_name: str
    client_phone: str
    date: date
    time: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: Optional[DateTime] = None
    barber: Optional[Barber] = None

    @property
    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class NewAppointment:
    """Payload for creating an appointment."""
    barber_id: str
    date: date
    time: str
    client_name: str
    client_phone: str


@dataclass(frozen=True)
class TimeSlot:
    """A bookable slot start and whether it can still be chosen."""
    time: str
    available: bool


@dataclass(frozen=True)
class DashboardStats:
    barbers: int
    today_scheduled: int
    scheduled_total: int
    completed_total: int


@dataclass(frozen=True)
class DayCount:
    """Scheduled appointments on one calendar day."""
    day: date
    scheduled: int


@dataclass(frozen=True)
class MonthOverview:
    """
    Month grid for the admin calendar.

    ``weeks`` holds rows of seven cells starting on Sunday; cells outside the
    month are None.
    """
    year: int
    month: int
    weeks: List[List[Optional[DayCount]]]
