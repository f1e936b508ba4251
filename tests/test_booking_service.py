"""
Tests for booking service.
"""

from datetime import time

import pendulum
import pytest

from barbershop.domain.exceptions import (
    BarberNotFoundError,
    BookingValidationError,
    InvalidScheduleError,
    SlotUnavailableError,
    StoreError,
)
from barbershop.domain.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BarberSchedule,
    BreakTime,
)
from barbershop.domain.slot_generator import SlotGenerator
from barbershop.services.booking import BookingService

TZ = "America/Sao_Paulo"
MONDAY = pendulum.date(2024, 11, 25)
SUNDAY = pendulum.date(2024, 11, 24)
NOW = pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ)


def _barber(barber_id="1", name="João Silva", **schedule_overrides):
    schedule = dict(
        work_start=time(9, 0),
        work_end=time(18, 0),
        work_days=[1, 2, 3, 4, 5, 6],
        slot_duration=45,
        breaks=[BreakTime(start=time(12, 0), end=time(13, 0))],
    )
    schedule.update(schedule_overrides)
    return Barber(id=barber_id, name=name, schedule=BarberSchedule(**schedule))


class StubBarbers:
    """Barber registry backed by a dict."""

    def __init__(self, *barbers):
        self.barbers = {barber.id: barber for barber in barbers}

    def list_barbers(self):
        return sorted(self.barbers.values(), key=lambda barber: barber.name)

    def get_barber(self, barber_id):
        return self.barbers.get(barber_id)


class StubAppointments:
    """Appointment store that records calls."""

    def __init__(self, appointments=(), fail_with=None):
        self.appointments = list(appointments)
        self.fail_with = fail_with
        self.list_calls = []
        self.created = []

    def list_appointments(self, barber_id, day):
        self.list_calls.append((barber_id, day))
        if self.fail_with is not None:
            raise self.fail_with
        return [a for a in self.appointments if a.barber_id == barber_id and a.date == day]

    def create_appointment(self, appointment):
        self.created.append(appointment)
        return Appointment(
            id=str(len(self.created)),
            barber_id=appointment.barber_id,
            client_name=appointment.client_name,
            client_phone=appointment.client_phone,
            date=appointment.date,
            time=appointment.time,
        )


class SpyGenerator(SlotGenerator):
    """Slot generator that counts invocations."""

    def __init__(self):
        super().__init__(timezone=TZ)
        self.calls = 0

    def generate(self, schedule, appointments, day, now):
        self.calls += 1
        return super().generate(schedule, appointments, day, now)


def _booked(time_string, status=AppointmentStatus.SCHEDULED):
    return Appointment(
        id="10",
        barber_id="1",
        client_name="Pedro Almeida",
        client_phone="11999998888",
        date=MONDAY,
        time=time_string,
        status=status,
    )


class TestAvailableSlots:
    """Tests for BookingService.available_slots."""

    def test_non_work_day_returns_no_slots(self):
        """On a Sunday neither the store nor the generator is consulted."""
        appointments = StubAppointments()
        generator = SpyGenerator()
        service = BookingService(StubBarbers(_barber()), appointments, generator)

        slots = service.available_slots("1", SUNDAY, now=NOW)

        assert slots == []
        assert appointments.list_calls == []
        assert generator.calls == 0

    def test_work_day_marks_booked_slot(self):
        appointments = StubAppointments([_booked("10:30")])
        service = BookingService(StubBarbers(_barber()), appointments, SlotGenerator(timezone=TZ))

        slots = {slot.time: slot.available for slot in service.available_slots("1", MONDAY, now=NOW)}

        assert slots["10:30"] is False
        assert slots["09:45"] is True
        assert "12:00" not in slots
        assert appointments.list_calls == [("1", MONDAY)]

    def test_unknown_barber(self):
        service = BookingService(StubBarbers(), StubAppointments(), SlotGenerator(timezone=TZ))

        with pytest.raises(BarberNotFoundError):
            service.available_slots("99", MONDAY, now=NOW)

    def test_store_failure_propagates_before_generation(self):
        generator = SpyGenerator()
        service = BookingService(
            StubBarbers(_barber()),
            StubAppointments(fail_with=StoreError("connection refused")),
            generator,
        )

        with pytest.raises(StoreError):
            service.available_slots("1", MONDAY, now=NOW)

        assert generator.calls == 0

    def test_broken_schedule_is_rejected(self):
        barber = _barber(work_start=time(18, 0), work_end=time(9, 0))
        service = BookingService(StubBarbers(barber), StubAppointments(), SlotGenerator(timezone=TZ))

        with pytest.raises(InvalidScheduleError):
            service.available_slots("1", MONDAY, now=NOW)


class TestFindBarber:
    """Tests for resolving barbers by id or name."""

    def test_by_id_and_name(self):
        service = BookingService(
            StubBarbers(_barber(), _barber("2", "Carlos Santos")),
            StubAppointments(),
            SlotGenerator(timezone=TZ),
        )

        assert service.find_barber("2").name == "Carlos Santos"
        assert service.find_barber("carlos santos").id == "2"

    def test_unknown_name(self):
        service = BookingService(StubBarbers(_barber()), StubAppointments(), SlotGenerator(timezone=TZ))

        with pytest.raises(BarberNotFoundError, match="Unknown barber"):
            service.find_barber("Zé")


class TestBook:
    """Tests for BookingService.book."""

    def _service(self, appointments=None):
        return BookingService(
            StubBarbers(_barber()),
            appointments or StubAppointments(),
            SlotGenerator(timezone=TZ),
        )

    def test_book_normalizes_input(self):
        appointments = StubAppointments()
        service = self._service(appointments)

        appointment = service.book(
            barber_id="1",
            day=MONDAY,
            time="09:45",
            client_name="  Ana Souza ",
            client_phone="(11) 98888-7777",
            now=NOW,
        )

        assert appointment.status == AppointmentStatus.SCHEDULED
        created = appointments.created[0]
        assert created.client_name == "Ana Souza"
        assert created.client_phone == "11988887777"
        assert created.time == "09:45"

    def test_blank_name_is_rejected(self):
        service = self._service()

        with pytest.raises(BookingValidationError):
            service.book(
                barber_id="1", day=MONDAY, time="09:45",
                client_name="   ", client_phone="11988887777", now=NOW,
            )

    def test_short_phone_is_rejected(self):
        service = self._service()

        with pytest.raises(BookingValidationError):
            service.book(
                barber_id="1", day=MONDAY, time="09:45",
                client_name="Ana", client_phone="1234", now=NOW,
            )

    def test_booked_slot_is_unavailable(self):
        appointments = StubAppointments([_booked("10:30")])
        service = self._service(appointments)

        with pytest.raises(SlotUnavailableError):
            service.book(
                barber_id="1", day=MONDAY, time="10:30",
                client_name="Ana", client_phone="11988887777", now=NOW,
            )

        assert appointments.created == []

    def test_canceled_booking_frees_slot(self):
        appointments = StubAppointments([_booked("10:30", AppointmentStatus.CANCELED)])
        service = self._service(appointments)

        service.book(
            barber_id="1", day=MONDAY, time="10:30",
            client_name="Ana", client_phone="11988887777", now=NOW,
        )

        assert len(appointments.created) == 1

    def test_time_off_the_grid_is_unavailable(self):
        service = self._service()

        with pytest.raises(SlotUnavailableError):
            service.book(
                barber_id="1", day=MONDAY, time="09:15",
                client_name="Ana", client_phone="11988887777", now=NOW,
            )

    def test_past_slot_is_unavailable(self):
        service = self._service()
        later = pendulum.datetime(2024, 11, 25, 11, 0, tz=TZ)

        with pytest.raises(SlotUnavailableError):
            service.book(
                barber_id="1", day=MONDAY, time="09:00",
                client_name="Ana", client_phone="11988887777", now=later,
            )

    def test_past_date_is_unavailable(self):
        """Earlier dates are never masked by the generator, so booking refuses them."""
        appointments = StubAppointments()
        service = self._service(appointments)
        next_week = pendulum.datetime(2024, 12, 2, 8, 0, tz=TZ)

        with pytest.raises(SlotUnavailableError, match="in the past"):
            service.book(
                barber_id="1", day=MONDAY, time="09:00",
                client_name="Ana", client_phone="11988887777", now=next_week,
            )

        assert appointments.list_calls == []

    def test_non_work_day_is_unavailable(self):
        service = self._service()

        with pytest.raises(SlotUnavailableError):
            service.book(
                barber_id="1", day=SUNDAY.add(days=7), time="09:00",
                client_name="Ana", client_phone="11988887777", now=NOW,
            )
