"""
Unit tests for datetime utilities.
"""

import pytest
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from utils.datetime_utils import (
    PRACTICE_TZ, ensure_local, format_time, get_timezone, iter_dates, minutes_to_time,
    parse_date_string, parse_time_string, time_to_minutes, to_civil,
)


class TestTimezones:

    def test_get_timezone_known(self):
        assert get_timezone("America/New_York") == ZoneInfo("America/New_York")

    def test_get_timezone_falls_back(self):
        assert get_timezone(None) == PRACTICE_TZ
        assert get_timezone("") == PRACTICE_TZ
        assert get_timezone("Not/AZone") == PRACTICE_TZ

    def test_ensure_local_naive_assumed_civil(self):
        result = ensure_local(datetime(2031, 3, 3, 9, 0))
        assert result.tzinfo == PRACTICE_TZ
        assert result.hour == 9

    def test_ensure_local_none(self):
        assert ensure_local(None) is None

    def test_to_civil_converts_aware(self):
        """17:00 UTC is 10:00 in Denver during standard time."""
        aware = datetime(2031, 1, 6, 17, 0, tzinfo=timezone.utc)
        assert to_civil(aware, ZoneInfo("America/Denver")) == datetime(2031, 1, 6, 10, 0)

    def test_to_civil_keeps_naive(self):
        assert to_civil(datetime(2031, 3, 3, 9, 30)) == datetime(2031, 3, 3, 9, 30)


class TestParsing:

    def test_parse_date_string_formats(self):
        assert parse_date_string("2031-03-03") == date(2031, 3, 3)
        assert parse_date_string("2031/3/3") == date(2031, 3, 3)

    @pytest.mark.parametrize("value", ["", "   ", "20310303", "2031-13-01", "2031-02"])
    def test_parse_date_string_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)

    def test_parse_time_string(self):
        assert parse_time_string("09:30") == time(9, 30)
        assert parse_time_string("09:30:15") == time(9, 30)
        with pytest.raises(ValueError):
            parse_time_string("0930")

    def test_format_time(self):
        assert format_time(time(7, 5)) == "07:05"


class TestMinuteArithmetic:

    def test_round_trip(self):
        assert time_to_minutes(time(13, 45)) == 825
        assert minutes_to_time(825) == time(13, 45)

    @pytest.mark.parametrize("minutes", [-1, 1440, 2000])
    def test_out_of_day_rejected(self, minutes):
        with pytest.raises(ValueError):
            minutes_to_time(minutes)

    def test_iter_dates_inclusive(self):
        assert list(iter_dates(date(2031, 2, 27), date(2031, 3, 2))) == [
            date(2031, 2, 27), date(2031, 2, 28), date(2031, 3, 1), date(2031, 3, 2)
        ]

    def test_iter_dates_empty_when_reversed(self):
        assert list(iter_dates(date(2031, 3, 2), date(2031, 3, 1))) == []
