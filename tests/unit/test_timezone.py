"""
Tests for local wall clock <-> UTC conversion.
"""

from datetime import UTC, date, datetime

import pytest

from rehearsal_sync.errors import InvalidTimezoneError, ParseError
from rehearsal_sync.models.domain.availability_domain import TimeSlot
from rehearsal_sync.utils.timezone import (
    WallClock,
    all_day_bounds,
    convert_slots_from_utc,
    convert_slots_to_utc,
    create_timestamp,
    day_window,
    format_utc,
    get_current_time_in_timezone,
    get_timezone_offset,
    get_today_in_timezone,
    local_to_utc,
    parse_utc,
    utc_to_local,
)


class TestLocalToUtc:
    def test_winter_offset(self):
        assert local_to_utc("2030-01-15", "09:00", "America/New_York") == WallClock("2030-01-15", "14:00")

    def test_summer_offset(self):
        assert local_to_utc("2030-07-15", "09:00", "America/New_York") == WallClock("2030-07-15", "13:00")

    def test_crosses_into_next_utc_date(self):
        assert local_to_utc("2030-07-15", "22:00", "America/New_York") == WallClock("2030-07-16", "02:00")

    def test_east_of_utc_crosses_back(self):
        assert local_to_utc("2030-05-01", "08:00", "Asia/Tokyo") == WallClock("2030-04-30", "23:00")

    def test_spring_forward_gap_resolves(self):
        result = local_to_utc("2030-03-10", "02:30", "America/New_York")
        assert result.date == "2030-03-10"
        assert result.time in ("06:30", "07:30")

    def test_fall_back_ambiguity_resolves_to_first_occurrence(self):
        assert local_to_utc("2030-11-03", "01:30", "America/New_York") == WallClock("2030-11-03", "05:30")

    def test_unknown_timezone_raises(self):
        with pytest.raises(InvalidTimezoneError):
            local_to_utc("2030-01-15", "09:00", "Mars/Olympus_Mons")

    def test_malformed_time_raises(self):
        with pytest.raises(ParseError):
            local_to_utc("2030-01-15", "9am", "UTC")

    @pytest.mark.parametrize(
        "day,time,zone",
        [
            ("2030-01-15", "09:00", "America/New_York"),
            ("2030-07-15", "23:30", "America/Los_Angeles"),
            ("2030-03-31", "12:00", "Europe/Berlin"),
            ("2030-05-01", "00:15", "Asia/Kolkata"),
            ("2030-03-10", "03:30", "America/New_York"),
            ("2030-11-03", "01:30", "America/New_York"),
            ("2030-10-27", "02:30", "Europe/Berlin"),
        ],
    )
    def test_round_trip(self, day, time, zone):
        utc = local_to_utc(day, time, zone)
        assert utc_to_local(utc.date, utc.time, zone) == WallClock(day, time)


class TestSlotConversion:
    def test_to_utc_sets_end_date_only_when_different(self):
        slots = convert_slots_to_utc(
            "2030-07-15", [TimeSlot("10:00", "12:00"), TimeSlot("19:00", "21:00")], "America/New_York"
        )
        assert slots[0].date == "2030-07-15"
        assert slots[0].start_time == "14:00"
        assert slots[0].end_time == "16:00"
        assert slots[0].end_date is None
        assert slots[1].start_time == "23:00"
        assert slots[1].end_time == "01:00"
        assert slots[1].end_date == "2030-07-16"

    def test_all_day_slots_are_pinned(self):
        slots = convert_slots_to_utc("2030-05-01", [TimeSlot("00:00", "23:59", is_all_day=True)], "Asia/Tokyo")
        assert slots[0].date == "2030-05-01"
        assert slots[0].start_time == "00:00"
        assert slots[0].end_time == "23:59"
        assert slots[0].is_all_day is True

    def test_unknown_timezone_falls_back_to_utc(self):
        slots = convert_slots_to_utc("2030-05-01", [TimeSlot("10:00", "11:00")], "Not/AZone")
        assert (slots[0].date, slots[0].start_time, slots[0].end_time) == ("2030-05-01", "10:00", "11:00")

    def test_from_utc(self):
        slots = convert_slots_from_utc("2030-07-15", [TimeSlot("14:00", "16:00")], "America/New_York")
        assert (slots[0].date, slots[0].start, slots[0].end) == ("2030-07-15", "10:00", "12:00")


class TestTimestamps:
    def test_format_utc_milliseconds(self):
        instant = datetime(2030, 5, 1, 18, 0, 0, 123456, tzinfo=UTC)
        assert format_utc(instant) == "2030-05-01T18:00:00.123Z"

    def test_parse_utc(self):
        assert parse_utc("2030-05-01T18:00:00.000Z") == datetime(2030, 5, 1, 18, 0, tzinfo=UTC)
        assert parse_utc("2030-05-01T20:00:00+02:00") == datetime(2030, 5, 1, 18, 0, tzinfo=UTC)

    def test_create_timestamp(self):
        assert create_timestamp("2030-07-15", "09:00", "America/New_York") == "2030-07-15T13:00:00.000Z"

    def test_all_day_bounds(self):
        assert all_day_bounds("2030-05-01") == ("2030-05-01T00:00:00.000Z", "2030-05-01T23:59:59.999Z")

    def test_all_day_bounds_rejects_bad_date(self):
        with pytest.raises(ParseError):
            all_day_bounds("2030-02-30")


class TestClockHelpers:
    def test_offset_minutes(self):
        assert get_timezone_offset("Asia/Kolkata") == 330
        assert get_timezone_offset("America/New_York", datetime(2030, 1, 15, tzinfo=UTC)) == -300

    def test_today_and_time_in_timezone(self):
        now = datetime(2030, 5, 1, 20, 5, tzinfo=UTC)
        assert get_today_in_timezone("Asia/Tokyo", now) == "2030-05-02"
        assert get_current_time_in_timezone("Asia/Tokyo", now) == "05:05"

    def test_day_window(self):
        start, end = day_window(date(2030, 5, 1), 2)
        assert start == datetime(2030, 5, 1, tzinfo=UTC)
        assert end == datetime(2030, 5, 3, tzinfo=UTC)

    def test_day_window_uses_local_midnight(self):
        start, end = day_window(date(2030, 3, 10), 1, "America/New_York")
        assert start == datetime(2030, 3, 10, 5, 0, tzinfo=UTC)
        assert end == datetime(2030, 3, 11, 4, 0, tzinfo=UTC)
