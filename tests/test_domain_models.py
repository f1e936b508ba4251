"""
Tests for domain models and helpers.
"""

from datetime import date, time

import pendulum
import pytest

from barbershop.domain.date_utils import (
    format_date_for_display,
    format_date_for_storage,
    format_date_short,
    is_work_day,
    parse_date,
    parse_time_of_day,
    weekday_number,
)
from barbershop.domain.exceptions import InvalidScheduleError
from barbershop.domain.models import BarberSchedule, BreakTime
from barbershop.domain.phone import mask_phone, normalize_phone


class TestBreakTime:
    """Tests for BreakTime model."""

    def test_create_valid_break(self):
        item = BreakTime(start=time(12, 0), end=time(13, 0))

        assert str(item) == "12:00-13:00"

    def test_invalid_break_raises_error(self):
        """Test that a break ending before it starts raises ValueError."""
        with pytest.raises(ValueError, match="must be before break end"):
            BreakTime(start=time(13, 0), end=time(12, 0))


class TestBarberSchedule:
    """Tests for BarberSchedule validation."""

    def _schedule(self, **overrides):
        values = dict(
            work_start=time(9, 0),
            work_end=time(18, 0),
            work_days=[1, 2, 3, 4, 5, 6],
        )
        values.update(overrides)
        return BarberSchedule(**values)

    def test_defaults(self):
        schedule = self._schedule()

        assert schedule.slot_duration == 45
        assert schedule.breaks == []
        schedule.validate()

    def test_window_must_open_before_it_closes(self):
        with pytest.raises(InvalidScheduleError, match="must be before work end"):
            self._schedule(work_start=time(18, 0), work_end=time(9, 0)).validate()

    def test_slot_duration_must_be_positive(self):
        with pytest.raises(InvalidScheduleError, match="greater than zero"):
            self._schedule(slot_duration=0).validate()

    def test_work_days_in_range(self):
        with pytest.raises(InvalidScheduleError, match="between 0 and 6"):
            self._schedule(work_days=[1, 7]).validate()

    def test_with_changes_returns_copy(self):
        schedule = self._schedule()

        changed = schedule.with_changes(slot_duration=30)

        assert changed.slot_duration == 30
        assert schedule.slot_duration == 45


class TestDateUtils:
    """Tests for date and time helpers."""

    def test_storage_format(self):
        assert format_date_for_storage(date(2024, 3, 5)) == "2024-03-05"
        assert format_date_for_storage(pendulum.date(2024, 11, 25)) == "2024-11-25"

    def test_short_format(self):
        assert format_date_short(date(2024, 3, 5)) == "05/03/2024"

    def test_display_format_mentions_day(self):
        assert "25 de" in format_date_for_display(date(2024, 11, 25))

    def test_weekday_numbering_starts_on_sunday(self):
        assert weekday_number(date(2024, 11, 24)) == 0  # Sunday
        assert weekday_number(date(2024, 11, 25)) == 1  # Monday
        assert weekday_number(date(2024, 11, 30)) == 6  # Saturday

    def test_is_work_day(self):
        work_days = [1, 2, 3, 4, 5, 6]

        assert is_work_day(date(2024, 11, 25), work_days)
        assert not is_work_day(date(2024, 11, 24), work_days)

    def test_parse_time_tolerates_seconds(self):
        assert parse_time_of_day("09:00") == time(9, 0)
        assert parse_time_of_day("18:30:00") == time(18, 30)

    def test_parse_time_single_digit_hour(self):
        assert parse_time_of_day(" 9:30 ") == time(9, 30)

    def test_parse_time_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_time_of_day("nove horas")
        with pytest.raises(ValueError, match="expected HH:mm"):
            parse_time_of_day("25:00")

    def test_parse_date(self):
        assert parse_date("2024-11-25") == date(2024, 11, 25)

        with pytest.raises(ValueError):
            parse_date("25/11/2024")


class TestPhone:
    """Tests for phone normalization and masking."""

    def test_normalize_keeps_digits_only(self):
        assert normalize_phone("(11) 99999-8888") == "11999998888"
        assert normalize_phone("+55 11 3333 4444") == "551133334444"

    def test_mask_landline(self):
        assert mask_phone("1133334444") == "(11) 3333-4444"

    def test_mask_mobile(self):
        assert mask_phone("11999998888") == "(11) 99999-8888"

    def test_mask_short_input_is_left_as_digits(self):
        assert mask_phone("12-34") == "1234"
