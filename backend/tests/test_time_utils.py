"""Duration parsing, quarter-hour rounding and calendar week helpers."""

from datetime import date, datetime, timezone

import pytest

from employee_space.time_utils import (
    format_duration,
    is_duration,
    parse_duration,
    parse_iso_date,
    parse_time_input,
    round_to_quarter_hour,
    to_utc_z,
    week_dates,
    week_range,
    week_start,
)


class TestDurations:
    @pytest.mark.parametrize(
        "value,minutes",
        [
            ("08:00", 480),
            ("00:15", 15),
            ("16:00", 960),
            ("7:30", 450),
            (" 01:05 ", 65),
        ],
    )
    def test_parse_valid(self, value, minutes):
        assert parse_duration(value) == minutes

    @pytest.mark.parametrize("value", [None, "", "abc", "08:60", "16:01", "-01:00", "8", "08-00"])
    def test_parse_invalid_is_zero(self, value):
        assert parse_duration(value) == 0

    def test_limit_can_be_lifted(self):
        assert parse_duration("40:00", limit=None) == 2400
        assert parse_duration("40:00") == 0

    def test_signed(self):
        assert parse_duration("-02:30", signed=True) == -150

    def test_format(self):
        assert format_duration(0) == "00:00"
        assert format_duration(450) == "07:30"
        assert format_duration(2400) == "40:00"
        assert format_duration(-90) == "-01:30"

    def test_format_parse_round_trip(self):
        for minutes in range(0, 16 * 60 + 1):
            text = format_duration(minutes)
            assert parse_duration(text) == minutes
            assert format_duration(parse_duration(text)) == text

    def test_is_duration(self):
        assert is_duration("40:00")
        assert is_duration("120:15")
        assert not is_duration("-01:00")
        assert not is_duration("01:75")
        assert not is_duration("soon")
        assert not is_duration(None)


class TestTimeInput:
    def test_round_to_quarter_hour(self):
        assert round_to_quarter_hour(0) == 0
        assert round_to_quarter_hour(7) == 0
        assert round_to_quarter_hour(8) == 15
        assert round_to_quarter_hour(52) == 45
        assert round_to_quarter_hour(53) == 60

    def test_rounding_is_idempotent(self):
        for minutes in range(0, 200):
            once = round_to_quarter_hour(minutes)
            assert round_to_quarter_hour(once) == once

    @pytest.mark.parametrize(
        "value,minutes",
        [
            ("7.5", 450),
            ("8", 480),
            ("1:10", 75),
            ("0.1", 0),
            ("16", 960),
            ("17", 0),
            ("-1", 0),
            ("later", 0),
            (None, 0),
        ],
    )
    def test_parse_time_input(self, value, minutes):
        assert parse_time_input(value) == minutes


class TestWeeks:
    def test_week_start_is_monday(self):
        # 2024-05-15 is a Wednesday
        assert week_start(date(2024, 5, 15)) == date(2024, 5, 13)
        assert week_start(date(2024, 5, 13)) == date(2024, 5, 13)
        assert week_start(date(2024, 5, 19)) == date(2024, 5, 13)

    def test_week_range_and_dates(self):
        assert week_range(date(2024, 5, 19)) == (date(2024, 5, 13), date(2024, 5, 19))
        days = week_dates(date(2024, 5, 15))
        assert len(days) == 7
        assert days[0] == date(2024, 5, 13)
        assert days[-1] == date(2024, 5, 19)

    def test_parse_iso_date(self):
        assert parse_iso_date("2024-05-15") == date(2024, 5, 15)
        assert parse_iso_date("2024-05-15T10:00:00Z") == date(2024, 5, 15)
        assert parse_iso_date("15/05/2024") is None
        assert parse_iso_date("") is None

    def test_to_utc_z(self):
        assert to_utc_z(datetime(2024, 5, 15, 10, 0, 0, 123)) == "2024-05-15T10:00:00Z"
        aware = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
        assert to_utc_z(aware) == "2024-05-15T12:00:00Z"
