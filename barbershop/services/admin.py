"""
Admin operations: barber management, appointment management, dashboard and month calendar.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime
from typing import Any, List, Optional

import pendulum

from ..domain.date_utils import format_date_for_storage, to_date, weekday_number
from ..domain.exceptions import (
    AppointmentNotFoundError,
    BarberNotFoundError,
    BookingValidationError,
    SlotTakenError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BarberSchedule,
    DashboardStats,
    DayCount,
    MonthOverview,
    NewAppointment,
    SCHEDULE_FIELDS,
)
from ..domain.slot_generator import SlotGenerator
from .booking import AppointmentStore, BarberRegistry, BookingService

logger = logging.getLogger(__name__)

BARBER_FIELDS = ("name", "avatar_url") + SCHEDULE_FIELDS


class AdminService:
    """Thin validation layer over the barber registry and appointment store."""

    def __init__(
        self,
        barbers: BarberRegistry,
        appointments: AppointmentStore,
        slot_generator: Optional[SlotGenerator] = None,
    ) -> None:
        self._barbers = barbers
        self._appointments = appointments
        self._booking = BookingService(barbers, appointments, slot_generator or SlotGenerator())

    # ============= BARBERS =============

    def list_barbers(self) -> List[Barber]:
        return self._barbers.list_barbers()

    def create_barber(
        self,
        name: str,
        schedule: BarberSchedule,
        avatar_url: Optional[str] = None,
    ) -> Barber:
        """
        Raises:
            ValueError: If the name is blank
            InvalidScheduleError: If the schedule is unusable
        """
        name = name.strip()
        if not name:
            raise ValueError("Barber name is required")

        schedule.validate()
        return self._barbers.create_barber(name, schedule, avatar_url)

    def update_barber(self, barber_id: str, **changes: Any) -> Barber:
        """
        Apply a partial update. Unset (None) values are ignored; the merged
        schedule is validated before anything is written.

        Raises:
            ValueError: On unknown fields or a blank name
            BarberNotFoundError: If the barber does not exist
            InvalidScheduleError: If the merged schedule is unusable
        """
        changes = {key: value for key, value in changes.items() if value is not None}

        unknown = sorted(set(changes) - set(BARBER_FIELDS))
        if unknown:
            raise ValueError(f"Unknown barber field(s): {', '.join(unknown)}")

        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValueError("Barber name is required")

        current = self._barbers.get_barber(barber_id)
        if current is None:
            raise BarberNotFoundError(f"Barber not found: {barber_id}")

        schedule_changes = {key: changes[key] for key in SCHEDULE_FIELDS if key in changes}
        current.schedule.with_changes(**schedule_changes).validate()

        if not changes:
            return current

        return self._barbers.update_barber(barber_id, changes)

    def delete_barber(self, barber_id: str) -> None:
        self._barbers.delete_barber(barber_id)
        logger.info("Removed barber %s", barber_id)

    # ============= APPOINTMENTS =============

    def list_appointments(
        self,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        appointments = self._appointments.list_all_appointments(day)
        if status is None:
            return appointments
        return [a for a in appointments if a.status == status]

    def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        appointment = self._appointments.update_appointment_status(appointment_id, status)
        logger.info("Appointment %s is now %s", appointment_id, status.value)
        return appointment

    def complete_appointment(self, appointment_id: str) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.COMPLETED)

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.CANCELED)

    def delete_appointment(self, appointment_id: str) -> None:
        self._appointments.delete_appointment(appointment_id)

    def reschedule(
        self,
        appointment_id: str,
        day: date,
        time: str,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move a scheduled appointment to another date/time with the same barber.

        The old appointment is canceled and a new one is created for the same
        client. If the new slot is lost to a concurrent booking, the old
        appointment is scheduled again.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            BookingValidationError: If the appointment is not scheduled
            SlotUnavailableError: If the new slot is past or not available
            SlotTakenError: If another booking won the race for the new slot
        """
        current = self._appointments.get_appointment(appointment_id)
        if current is None:
            raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")
        if not current.is_scheduled:
            raise BookingValidationError(
                f"Only scheduled appointments can be rescheduled ({current.status.value})"
            )

        time_string = self._booking.ensure_available(current.barber_id, day, time, now=now)

        self._appointments.update_appointment_status(current.id, AppointmentStatus.CANCELED)
        try:
            moved = self._appointments.create_appointment(
                NewAppointment(
                    barber_id=current.barber_id,
                    date=day,
                    time=time_string,
                    client_name=current.client_name,
                    client_phone=current.client_phone,
                )
            )
        except SlotTakenError:
            self._appointments.update_appointment_status(current.id, AppointmentStatus.SCHEDULED)
            raise

        logger.info(
            "Rescheduled appointment %s to %s %s (appointment %s)",
            current.id,
            format_date_for_storage(day),
            time_string,
            moved.id,
        )
        return moved

    # ============= OVERVIEW =============

    def dashboard(self, today: date) -> DashboardStats:
        appointments = self._appointments.list_all_appointments()

        return DashboardStats(
            barbers=len(self._barbers.list_barbers()),
            today_scheduled=sum(
                1 for a in appointments if a.date == today and a.is_scheduled
            ),
            scheduled_total=sum(1 for a in appointments if a.is_scheduled),
            completed_total=sum(
                1 for a in appointments if a.status == AppointmentStatus.COMPLETED
            ),
        )

    def month_overview(
        self,
        year: int,
        month: int,
        barber_id: Optional[str] = None,
    ) -> MonthOverview:
        """
        Scheduled appointment counts for every day of a month, laid out in
        Sunday-first weeks.

        Raises:
            ValueError: If year/month do not form a valid month
            BarberNotFoundError: If ``barber_id`` is given and unknown
        """
        if barber_id is not None and self._barbers.get_barber(barber_id) is None:
            raise BarberNotFoundError(f"Barber not found: {barber_id}")

        first = pendulum.date(year, month, 1).start_of("month")
        last = first.end_of("month")

        counts = Counter(
            to_date(a.date)
            for a in self._appointments.list_all_appointments()
            if a.is_scheduled
            and first <= a.date <= last
            and (barber_id is None or a.barber_id == barber_id)
        )

        cells: List[Optional[DayCount]] = [None] * weekday_number(first)
        for offset in range(last.day):
            day = first.add(days=offset)
            cells.append(DayCount(day=day, scheduled=counts.get(day, 0)))
        cells.extend([None] * (-len(cells) % 7))

        weeks = [cells[i:i + 7] for i in range(0, len(cells), 7)]
        return MonthOverview(year=year, month=month, weeks=weeks)
