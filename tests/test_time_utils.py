"""
test_time_utils.py - Тесты утилит времени
"""
from datetime import datetime, timedelta, timezone

from utils.time_utils import (
    format_duration, format_hours, hourly_slots, hours_until, parse_instant
)


class TestParseInstant:

    def test_iso(self):
        assert parse_instant('2026-03-10T15:00:00') == datetime(2026, 3, 10, 15, 0)

    def test_garbage(self):
        assert parse_instant('вчера') is None
        assert parse_instant('') is None
        assert parse_instant(None) is None

    def test_timezone_is_dropped(self):
        assert parse_instant('2026-03-10T15:00:00Z').tzinfo is None

    def test_aware_datetime_normalized(self):
        aware = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

        moment = parse_instant(aware)

        assert moment.tzinfo is None
        assert moment == aware.astimezone().replace(tzinfo=None)

    def test_naive_datetime_unchanged(self):
        assert parse_instant(datetime(2026, 3, 10, 15, 0)) == datetime(2026, 3, 10, 15, 0)


class TestHelpers:

    def test_hours_until(self):
        now = datetime(2026, 3, 10, 14, 0)

        assert hours_until(now + timedelta(hours=2), now) == 2.0
        assert hours_until(now - timedelta(minutes=30), now) == -0.5

    def test_hourly_slots(self):
        slots = hourly_slots(datetime(2026, 3, 10, 23, 40), count=3)

        assert slots == [
            datetime(2026, 3, 11, 0, 0),
            datetime(2026, 3, 11, 1, 0),
            datetime(2026, 3, 11, 2, 0),
        ]

    def test_format_duration(self):
        assert format_duration(timedelta(hours=2, minutes=5)) == "2ч 5м"
        assert format_duration(timedelta(minutes=5, seconds=59)) == "5м"
        assert format_duration(timedelta(seconds=20)) == "меньше минуты"

    def test_format_hours(self):
        assert format_hours(1) == "1 час"
        assert format_hours(3) == "3 часа"
        assert format_hours(5) == "5 часов"
