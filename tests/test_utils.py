"""Unit tests for interval, date and holiday helpers"""
from datetime import date, datetime, time
from decimal import Decimal

import pytest
import pytz

from consult_booking.database.models import ConsultationType
from consult_booking.services.consultation_policy import resolve_location, resolve_price
from consult_booking.utils import intervals
from consult_booking.utils.date_time_utils import (
    format_time_for_display,
    get_date_label,
    parse_date,
    parse_time,
    to_practice_time,
)
from consult_booking.utils.holidays import public_holidays


class TestIntervals:
    """Tests for minute interval arithmetic"""

    def test_merge(self):
        assert intervals.merge([(60, 120), (0, 30), (30, 45), (100, 150), (200, 200)]) == [
            (0, 45),
            (60, 150),
        ]

    def test_subtract(self):
        """Test removing overlapping and enclosed cuts"""
        assert intervals.subtract([(0, 100)], [(10, 20), (15, 30), (90, 120)]) == [
            (0, 10),
            (30, 90),
        ]
        assert intervals.subtract([(0, 100)], [(0, 100)]) == []
        assert intervals.subtract([(0, 100)], []) == [(0, 100)]

    def test_tile(self):
        """Test remainders shorter than the width are dropped"""
        assert intervals.tile([(0, 70)], 30) == [(0, 30), (30, 60)]
        assert intervals.tile([(0, 20)], 30) == []

    def test_tile_rejects_non_positive_width(self):
        with pytest.raises(ValueError):
            intervals.tile([(0, 60)], 0)


class TestDateTimeUtils:
    """Tests for date and time parsing and display"""

    def test_parse_date(self):
        assert parse_date("2026-10-19") == date(2026, 10, 19)
        assert parse_date(datetime(2026, 10, 19, 9, 0)) == date(2026, 10, 19)

    def test_parse_time(self):
        assert parse_time("09:30") == time(9, 30)
        assert parse_time("09:30:00") == time(9, 30)
        assert parse_time(time(9, 30, 15, 500)) == time(9, 30, 15)

    def test_parse_time_invalid(self):
        with pytest.raises(ValueError):
            parse_time("9.30am")

    def test_format_time_for_display(self):
        """Test 24-hour times render in 12-hour format"""
        assert format_time_for_display("09:00") == "9 AM"
        assert format_time_for_display("12:30") == "12:30 PM"
        assert format_time_for_display(time(16, 30)) == "4:30 PM"
        assert format_time_for_display("00:00") == "12 AM"

    def test_get_date_label(self):
        today = date(2026, 10, 14)
        assert get_date_label(today, today) == "today (Wednesday, October 14)"
        assert get_date_label(date(2026, 10, 15), today) == "tomorrow (Thursday, October 15)"
        assert get_date_label(date(2026, 10, 19), today) == "Monday, October 19"

    def test_to_practice_time(self):
        """Test UTC instants convert to the practice's local date"""
        local = to_practice_time(datetime(2026, 10, 18, 23, 30, tzinfo=pytz.utc))
        assert local.date() == date(2026, 10, 19)
        assert local.hour == 1

        naive = to_practice_time(datetime(2026, 10, 19, 9, 0))
        assert naive.utcoffset().total_seconds() == 2 * 3600


class TestPublicHolidays:
    """Tests for South African public holidays"""

    def test_2026(self):
        """Test fixed, Easter-based and observed holidays"""
        holidays = dict(public_holidays(2026))

        assert holidays[date(2026, 4, 3)] == "Good Friday"
        assert holidays[date(2026, 4, 6)] == "Family Day"
        assert holidays[date(2026, 8, 9)] == "National Women's Day"
        assert holidays[date(2026, 8, 10)] == "National Women's Day (observed)"
        assert len(holidays) == 13

    def test_sorted(self):
        days = [day for day, _ in public_holidays(2027)]
        assert days == sorted(days)


class TestConsultationPolicy:
    """Tests for pricing and location"""

    @pytest.mark.parametrize(
        "consultation_type,price",
        [
            (ConsultationType.VIRTUAL, Decimal("1500")),
            (ConsultationType.TELEPHONIC, Decimal("500")),
            (ConsultationType.FACE_TO_FACE, Decimal("1500")),
        ],
    )
    def test_catalog_price(self, consultation_type, price):
        assert resolve_price(consultation_type) == price

    def test_requested_price(self):
        assert resolve_price(ConsultationType.VIRTUAL, Decimal("0")) == Decimal("0")
        with pytest.raises(ValueError):
            resolve_price(ConsultationType.VIRTUAL, Decimal("-1"))

    def test_location_only_in_person(self):
        assert resolve_location(ConsultationType.VIRTUAL) is None
        assert resolve_location(ConsultationType.TELEPHONIC) is None
        assert "Garsfontein" in resolve_location(ConsultationType.FACE_TO_FACE)
