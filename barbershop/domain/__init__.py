"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BarberSchedule,
    BreakTime,
    DashboardStats,
    DayCount,
    MonthOverview,
    NewAppointment,
    TimeSlot,
)
from .slot_generator import SlotGenerator

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Barber",
    "BarberSchedule",
    "BreakTime",
    "DashboardStats",
    "DayCount",
    "MonthOverview",
    "NewAppointment",
    "TimeSlot",
    "SlotGenerator",
]
