"""
Application services for the customer booking flow.

The service fetches a barber's schedule and that day's appointments through
store protocols and delegates the slot grid to the domain-level
``SlotGenerator``. Depending on protocols rather than concrete stores keeps
the CLI and chat assistant thin and lets tests plug in stubs.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol

import pendulum

from ..domain.date_utils import format_date_for_storage, is_work_day
from ..domain.exceptions import (
    BarberNotFoundError,
    BookingValidationError,
    SlotUnavailableError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BarberSchedule,
    NewAppointment,
    TimeSlot,
)
from ..domain.phone import normalize_phone
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 8


class BarberRegistry(Protocol):
    """Protocol describing the barber data the services need."""

    def list_barbers(self) -> List[Barber]:
        """Return all barbers ordered by name."""

    def get_barber(self, barber_id: str) -> Optional[Barber]:
        """Return one barber, or None."""

    def create_barber(
        self,
        name: str,
        schedule: BarberSchedule,
        avatar_url: Optional[str] = None,
    ) -> Barber:
        """Persist a new barber."""

    def update_barber(self, barber_id: str, changes: Dict[str, Any]) -> Barber:
        """Apply a partial update."""

    def delete_barber(self, barber_id: str) -> None:
        """Remove a barber."""


class AppointmentStore(Protocol):
    """Protocol describing the appointment persistence the services need."""

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment, or None."""

    def list_appointments(self, barber_id: str, day: date) -> List[Appointment]:
        """Return the appointments of one barber on one day."""

    def list_all_appointments(self, day: Optional[date] = None) -> List[Appointment]:
        """Return all appointments, optionally for one day, with barbers attached."""

    def create_appointment(self, appointment: NewAppointment) -> Appointment:
        """Persist a booking; raises SlotTakenError on a conflicting booking."""

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
    ) -> Appointment:
        """Change the lifecycle state of an appointment."""

    def delete_appointment(self, appointment_id: str) -> None:
        """Remove an appointment."""


class BookingService:
    """
    Orchestrates schedule/appointment retrieval, slot generation and booking.
    """

    def __init__(
        self,
        barbers: BarberRegistry,
        appointments: AppointmentStore,
        slot_generator: SlotGenerator,
    ) -> None:
        self._barbers = barbers
        self._appointments = appointments
        self._slot_generator = slot_generator

    @property
    def timezone(self) -> str:
        return self._slot_generator.timezone

    def now(self) -> pendulum.DateTime:
        return pendulum.now(self.timezone)

    def today(self) -> pendulum.Date:
        return self.now().date()

    def list_barbers(self) -> List[Barber]:
        return self._barbers.list_barbers()

    def get_barber(self, barber_id: str) -> Barber:
        """
        Raises:
            BarberNotFoundError: If no barber has this id
        """
        barber = self._barbers.get_barber(barber_id)
        if barber is None:
            raise BarberNotFoundError(f"Barber not found: {barber_id}")
        return barber

    def find_barber(self, identifier: str) -> Barber:
        """
        Resolve a barber by id or (case-insensitive) name.

        Raises:
            BarberNotFoundError: If nothing matches
        """
        barber = self._barbers.get_barber(identifier)
        if barber is not None:
            return barber

        wanted = identifier.strip().lower()
        for candidate in self._barbers.list_barbers():
            if candidate.name.lower() == wanted:
                return candidate

        raise BarberNotFoundError(
            f"Unknown barber: '{identifier}'. Use a barber id or name."
        )

    def available_slots(
        self,
        barber_id: str,
        day: date,
        now: Optional[datetime] = None,
    ) -> List[TimeSlot]:
        """
        Slot grid for one barber on one day.

        Days outside the barber's work days yield no slots; neither the
        appointment store nor the generator is consulted for them. Store
        failures propagate before the generator runs.

        Raises:
            BarberNotFoundError: If the barber does not exist
            InvalidScheduleError: If the stored schedule is unusable
            StoreError: If data cannot be fetched
        """
        barber = self.get_barber(barber_id)
        schedule = barber.schedule

        if not is_work_day(day, schedule.work_days):
            logger.debug("Barber %s does not work on %s", barber.id, day)
            return []

        schedule.validate()

        appointments = self._appointments.list_appointments(barber.id, day)

        return self._slot_generator.generate(
            schedule=schedule,
            appointments=appointments,
            day=day,
            now=now if now is not None else self.now(),
        )

    def ensure_available(
        self,
        barber_id: str,
        day: date,
        time: str,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Check that ``time`` is a currently available slot on ``day``.

        Returns:
            The slot start as ``HH:mm``

        Raises:
            SlotUnavailableError: If the date is past or the time is not an
                available slot
        """
        current = (
            pendulum.instance(now, tz=self.timezone).in_timezone(self.timezone)
            if now is not None
            else self.now()
        )
        if day < current.date():
            raise SlotUnavailableError(f"{format_date_for_storage(day)} is in the past")

        time_string = time.strip()[:5]
        slots = self.available_slots(barber_id, day, now=current)
        if not any(slot.time == time_string and slot.available for slot in slots):
            raise SlotUnavailableError(
                f"{time_string} on {format_date_for_storage(day)} is not available"
            )
        return time_string

    def book(
        self,
        *,
        barber_id: str,
        day: date,
        time: str,
        client_name: str,
        client_phone: str,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Create a booking for a currently available slot.

        Raises:
            BookingValidationError: If name or phone are unusable
            SlotUnavailableError: If the date is past or the time is not an
                available slot
            SlotTakenError: If another booking won the race for the slot
            StoreError: If the store cannot be reached
        """
        name = client_name.strip()
        if not name:
            raise BookingValidationError("Client name is required")

        phone = normalize_phone(client_phone)
        if len(phone) < MIN_PHONE_DIGITS:
            raise BookingValidationError(f"Invalid phone number: '{client_phone}'")

        time_string = self.ensure_available(barber_id, day, time, now=now)

        appointment = self._appointments.create_appointment(
            NewAppointment(
                barber_id=barber_id,
                date=day,
                time=time_string,
                client_name=name,
                client_phone=phone,
            )
        )

        logger.info(
            "Booked %s %s with barber %s (appointment %s)",
            format_date_for_storage(day),
            time_string,
            barber_id,
            appointment.id,
        )
        return appointment
