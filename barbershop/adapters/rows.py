"""
Conversion between store rows (the ``barbers``/``appointments`` table shape)
and domain models. Shared by the remote and the in-memory store.
"""

from typing import Any, Dict, Optional

import pendulum
from pendulum import DateTime

from ..domain.date_utils import (
    format_date_for_storage,
    format_time_of_day,
    parse_date,
    parse_time_of_day,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BarberSchedule,
    BreakTime,
    NewAppointment,
)

DEFAULT_SLOT_DURATION = 45


def barber_from_row(row: Dict[str, Any]) -> Barber:
    """
    Build a Barber from a ``barbers`` row.

    Times may carry a seconds component; ``slot_duration`` defaults to 45 and
    ``breaks`` to an empty list when absent.

    Raises:
        KeyError: If a required column is missing
        ValueError: If a time or weekday value is malformed
    """
    slot_duration = row.get("slot_duration")
    schedule = BarberSchedule(
        work_start=parse_time_of_day(row["work_start_time"]),
        work_end=parse_time_of_day(row["work_end_time"]),
        work_days=[int(day) for day in row.get("work_days") or []],
        slot_duration=int(slot_duration) if slot_duration is not None else DEFAULT_SLOT_DURATION,
        breaks=[
            BreakTime(
                start=parse_time_of_day(item["start"]),
                end=parse_time_of_day(item["end"]),
            )
            for item in row.get("breaks") or []
        ],
    )

    return Barber(
        id=str(row["id"]),
        name=row["name"],
        schedule=schedule,
        avatar_url=row.get("avatar_url"),
        created_at=_parse_timestamp(row.get("created_at")),
    )


def schedule_to_row(schedule: BarberSchedule) -> Dict[str, Any]:
    return {
        "work_start_time": format_time_of_day(schedule.work_start),
        "work_end_time": format_time_of_day(schedule.work_end),
        "work_days": list(schedule.work_days),
        "slot_duration": schedule.slot_duration,
        "breaks": [
            {
                "start": format_time_of_day(item.start),
                "end": format_time_of_day(item.end),
            }
            for item in schedule.breaks
        ],
    }


def barber_changes_to_row(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a partial update (domain field names) into row columns.
    """
    row: Dict[str, Any] = {}

    for key, value in changes.items():
        if key == "work_start":
            row["work_start_time"] = format_time_of_day(value)
        elif key == "work_end":
            row["work_end_time"] = format_time_of_day(value)
        elif key == "work_days":
            row["work_days"] = list(value)
        elif key == "breaks":
            row["breaks"] = [
                {"start": format_time_of_day(item.start), "end": format_time_of_day(item.end)}
                for item in value
            ]
        elif key in ("name", "avatar_url", "slot_duration"):
            row[key] = value
        else:
            raise ValueError(f"Unknown barber field: {key}")

    return row


def appointment_from_row(row: Dict[str, Any]) -> Appointment:
    """
    Build an Appointment from an ``appointments`` row, including an embedded
    ``barber`` object when the query joined one.

    Raises:
        KeyError: If a required column is missing
        ValueError: If date, time or status are malformed
    """
    barber_row = row.get("barber")

    return Appointment(
        id=str(row["id"]),
        barber_id=str(row["barber_id"]),
        client_name=row["client_name"],
        client_phone=row["client_phone"],
        date=parse_date(row["appointment_date"]),
        time=format_time_of_day(parse_time_of_day(row["appointment_time"])),
        status=AppointmentStatus(row.get("status", AppointmentStatus.SCHEDULED.value)),
        created_at=_parse_timestamp(row.get("created_at")),
        barber=barber_from_row(barber_row) if barber_row else None,
    )


def new_appointment_to_row(appointment: NewAppointment) -> Dict[str, Any]:
    return {
        "barber_id": appointment.barber_id,
        "appointment_date": format_date_for_storage(appointment.date),
        "appointment_time": appointment.time,
        "client_name": appointment.client_name,
        "client_phone": appointment.client_phone,
    }


def _parse_timestamp(value: Optional[str]) -> Optional[DateTime]:
    if not value:
        return None

    parsed = pendulum.parse(value)
    if isinstance(parsed, DateTime):
        return parsed

    raise ValueError(f"Could not parse timestamp: {value}")
