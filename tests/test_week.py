"""Tests for rosterbot.core.week — the weekly trigger calendar."""

from datetime import date, datetime, time
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from rosterbot.core.week import FRIDAY, SATURDAY, SUNDAY, WeeklyCalendar, WeeklyTrigger

TZ = ZoneInfo("Asia/Jerusalem")


def _at(day, hh, mm):
    """2026-10-23 is a Friday."""
    return datetime(2026, 10, day, hh, mm, tzinfo=TZ)


@pytest.fixture
def calendar():
    return WeeklyCalendar()


class TestWeeklyTrigger:
    def test_ptb_day_numbering(self):
        # python-telegram-bot counts days from Sunday=0
        assert WeeklyTrigger(SUNDAY, time(11, 0)).ptb_day == 0
        assert WeeklyTrigger(FRIDAY, time(12, 0)).ptb_day == 5
        assert WeeklyTrigger(SATURDAY, time(8, 0)).ptb_day == 6


class TestWeeklyCalendar:
    def test_burst_follows_open(self, calendar):
        assert calendar.burst == WeeklyTrigger(FRIDAY, time(12, 3))

    def test_burst_wraps_past_midnight(self):
        cal = WeeklyCalendar(open=WeeklyTrigger(SATURDAY, time(23, 58)), burst_delay_minutes=5)
        assert cal.burst == WeeklyTrigger(SUNDAY, time(0, 3))

    def test_command_window(self, calendar):
        assert calendar.is_command_window_open(_at(22, 20, 0))       # Thursday
        assert calendar.is_command_window_open(_at(23, 11, 49))      # Fri before wake
        assert not calendar.is_command_window_open(_at(23, 11, 50))  # wake
        assert not calendar.is_command_window_open(_at(24, 20, 0))   # event day
        assert calendar.is_command_window_open(_at(24, 23, 0))       # reset
        assert calendar.is_command_window_open(_at(25, 11, 0))       # Sunday

    def test_command_window_uses_local_time(self, calendar):
        utc_moment = datetime(2026, 10, 23, 9, 0, tzinfo=ZoneInfo("UTC"))  # 12:00 in Israel
        assert not calendar.is_command_window_open(utc_moment)

    def test_burst_guard(self, calendar):
        assert not calendar.in_burst_guard(_at(23, 11, 59))
        assert calendar.in_burst_guard(_at(23, 12, 0))
        assert calendar.in_burst_guard(_at(23, 12, 9))
        assert not calendar.in_burst_guard(_at(23, 12, 10))

    def test_event_day(self, calendar):
        assert calendar.is_event_day(_at(24, 8, 0))
        assert not calendar.is_event_day(_at(23, 8, 0))

    def test_close_timers(self, calendar):
        warning_at, close_at = calendar.close_timers(date(2026, 10, 24), "20:30")
        assert warning_at == _at(24, 20, 10)
        assert close_at == _at(24, 20, 15)

    def test_daily_time_carries_timezone(self, calendar):
        assert calendar.daily_time(calendar.open) == time(12, 0, tzinfo=calendar.tz)

    def test_from_settings(self):
        settings = SimpleNamespace(
            TIMEZONE="UTC",
            BURST_FLUSH_DELAY_MINUTES=5,
            BURST_GUARD_MINUTES=12,
            PERIODIC_FLUSH_MINUTES=30,
            WARNING_MINUTES_BEFORE_WARMUP=30,
            CLOSE_MINUTES_BEFORE_WARMUP=10,
        )
        cal = WeeklyCalendar.from_settings(settings)
        assert cal.tz == ZoneInfo("UTC")
        assert cal.burst.at == time(12, 5)
        assert cal.periodic_minutes == 30
        assert cal.close_timers(date(2026, 10, 24), "20:30")[1].time() == time(20, 20)
