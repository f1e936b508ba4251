"""
Core business logic for generating bookable time slots.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O).
"""

from datetime import date, datetime, time
from typing import Iterable, List, Sequence

import pendulum
from pendulum import DateTime

from .models import Appointment, BarberSchedule, BreakTime, TimeSlot


class SlotGenerator:
    """
    Generates the slot grid of one barber for one day.

    Algorithm:
    1. Collect the times held by scheduled appointments
    2. Walk from work start in steps of the slot duration while the slot
       start is before work end
    3. Drop slots that overlap a break (half-open intervals)
    4. Mark the rest unavailable when already past (today only) or occupied

    Preconditions (not checked here, see ``BarberSchedule.validate``):
    work_start < work_end and slot_duration > 0. Appointments are expected to
    be scoped to the barber and date already; only their status and time are
    consulted.

    A slot only has to start before work end, so the last slot of the day may
    run past closing time.
    """

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.timezone = timezone

    def generate(
        self,
        schedule: BarberSchedule,
        appointments: Iterable[Appointment],
        day: date,
        now: datetime,
    ) -> List[TimeSlot]:
        """
        Compute the ordered slot list for ``day``.

        Args:
            schedule: The barber's working configuration
            appointments: Existing appointments of that barber on that day
            day: Target calendar date
            now: Current instant, used to hide past slots when ``day`` is today

        Returns:
            TimeSlot objects in chronological order
        """
        now = self._localize(now)
        is_today = day == now.date()

        booked_times = {
            appointment.time[:5]
            for appointment in appointments
            if appointment.is_scheduled
        }

        current = self._at(day, schedule.work_start)
        end = self._at(day, schedule.work_end)

        slots: List[TimeSlot] = []

        while current < end:
            slot_end = current.add(minutes=schedule.slot_duration)

            if not self._overlaps_break(current, slot_end, schedule.breaks, day):
                time_string = current.format("HH:mm")
                is_past = is_today and current < now
                is_booked = time_string in booked_times

                slots.append(TimeSlot(time=time_string, available=not is_past and not is_booked))

            current = slot_end

        return slots

    def _overlaps_break(
        self,
        slot_start: DateTime,
        slot_end: DateTime,
        breaks: Sequence[BreakTime],
        day: date,
    ) -> bool:
        """
        Check the slot against every break.

        A slot may end exactly when a break starts, or start exactly when a
        break ends.
        """
        for break_time in breaks:
            break_start = self._at(day, break_time.start)
            break_end = self._at(day, break_time.end)

            if slot_start < break_end and slot_end > break_start:
                return True

        return False

    def _at(self, day: date, time_of_day: time) -> DateTime:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            time_of_day.hour,
            time_of_day.minute,
            tz=self.timezone,
        )

    def _localize(self, now: datetime) -> DateTime:
        """Convert ``now`` to the shop timezone; naive values are taken as shop-local."""
        if now.tzinfo is None:
            return pendulum.instance(now, tz=self.timezone)
        return pendulum.instance(now).in_timezone(self.timezone)
