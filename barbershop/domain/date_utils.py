"""
Date and time-of-day helpers shared by the services, stores and CLI.
"""

from datetime import date, time
from typing import Iterable

import pendulum
from pendulum import Date

DISPLAY_LOCALE = "pt_br"


def to_date(value: date) -> Date:
    """Coerce any ``datetime.date`` (or datetime) into a pendulum Date."""
    return pendulum.date(value.year, value.month, value.day)


def parse_date(value: str) -> Date:
    """
    Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the string is not a valid calendar date
    """
    try:
        parsed = pendulum.from_format(value.strip(), "YYYY-MM-DD")
    except ValueError as exc:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
    return parsed.date()


def format_date_for_storage(value: date) -> str:
    """Format a date as stored by the appointment store (``YYYY-MM-DD``)."""
    return to_date(value).format("YYYY-MM-DD")


def format_date_for_display(value: date) -> str:
    """Long localized form, e.g. ``segunda-feira, 25 de novembro``."""
    return to_date(value).format("dddd, D [de] MMMM", locale=DISPLAY_LOCALE)


def format_date_short(value: date) -> str:
    return to_date(value).format("DD/MM/YYYY")


def weekday_number(value: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return value.isoweekday() % 7


def is_work_day(value: date, work_days: Iterable[int]) -> bool:
    """Check whether the barber accepts bookings on this date."""
    return weekday_number(value) in set(work_days)


def parse_time_of_day(value: str) -> time:
    """
    Parse ``HH:mm`` or ``HH:mm:ss``; any seconds component is ignored.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    text = value.strip()[:5]
    try:
        return pendulum.from_format(text, "H:mm").time()
    except ValueError as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:mm") from exc


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")
