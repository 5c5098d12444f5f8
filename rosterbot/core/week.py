"""Weekly calendar — when each lifecycle trigger fires, as pure time math.

All times are wall-clock times in the single configured timezone.
Weekdays use Python's convention (Monday=0 … Sunday=6).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo

from rosterbot.core.helpers import require_time

_MINUTES_PER_WEEK = 7 * 24 * 60

FRIDAY = 4
SATURDAY = 5
SUNDAY = 6


class WeeklyTrigger(NamedTuple):
    weekday: int
    at: time

    @property
    def week_minute(self) -> int:
        return self.weekday * 24 * 60 + self.at.hour * 60 + self.at.minute

    @property
    def ptb_day(self) -> int:
        """Day number as python-telegram-bot's run_daily expects (Sunday=0)."""
        return (self.weekday + 1) % 7


def _week_minute(moment: datetime) -> int:
    return moment.weekday() * 24 * 60 + moment.hour * 60 + moment.minute


def _in_span(position: int, start: int, end: int) -> bool:
    """Half-open [start, end) on the weekly circle."""
    if start <= end:
        return start <= position < end
    return position >= start or position < end


@dataclass(frozen=True)
class WeeklyCalendar:
    """The fixed weekly schedule of the registration lifecycle."""

    timezone: str = "Asia/Jerusalem"
    wake: WeeklyTrigger = WeeklyTrigger(FRIDAY, time(11, 50))
    health_signal: WeeklyTrigger = WeeklyTrigger(FRIDAY, time(11, 55))
    broadcast: WeeklyTrigger = WeeklyTrigger(FRIDAY, time(11, 59))
    open: WeeklyTrigger = WeeklyTrigger(FRIDAY, time(12, 0))
    event_day_check: WeeklyTrigger = WeeklyTrigger(SATURDAY, time(8, 0))
    reset: WeeklyTrigger = WeeklyTrigger(SATURDAY, time(23, 0))
    post_reset: WeeklyTrigger = WeeklyTrigger(SUNDAY, time(11, 0))
    burst_delay_minutes: int = 3
    burst_guard_minutes: int = 10
    periodic_minutes: int = 60
    warning_minutes: int = 20
    close_minutes: int = 15
    tz: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tz", ZoneInfo(self.timezone))

    @classmethod
    def from_settings(cls, settings) -> WeeklyCalendar:
        return cls(
            timezone=settings.TIMEZONE,
            burst_delay_minutes=settings.BURST_FLUSH_DELAY_MINUTES,
            burst_guard_minutes=settings.BURST_GUARD_MINUTES,
            periodic_minutes=settings.PERIODIC_FLUSH_MINUTES,
            warning_minutes=settings.WARNING_MINUTES_BEFORE_WARMUP,
            close_minutes=settings.CLOSE_MINUTES_BEFORE_WARMUP,
        )

    @property
    def burst(self) -> WeeklyTrigger:
        """Open time plus the burst delay."""
        shifted = datetime.combine(date(2000, 1, 1), self.open.at) + timedelta(
            minutes=self.burst_delay_minutes
        )
        extra_days = (shifted.date() - date(2000, 1, 1)).days
        return WeeklyTrigger((self.open.weekday + extra_days) % 7, shifted.time())

    def local(self, moment: datetime) -> datetime:
        return moment.astimezone(self.tz)

    def is_command_window_open(self, now: datetime) -> bool:
        """Admins may edit the roster except between wake-up and the weekly reset."""
        position = _week_minute(self.local(now))
        return not _in_span(position, self.wake.week_minute, self.reset.week_minute)

    def in_burst_guard(self, now: datetime) -> bool:
        """True right after opening, when the burst flush owns the buffer."""
        position = _week_minute(self.local(now))
        start = self.open.week_minute
        end = (start + max(self.burst_guard_minutes, self.burst_delay_minutes)) % _MINUTES_PER_WEEK
        return _in_span(position, start, end)

    def is_event_day(self, now: datetime) -> bool:
        return self.local(now).weekday() == self.event_day_check.weekday

    def close_timers(self, day: date, warmup_time: str) -> tuple[datetime, datetime]:
        """(warning_at, close_at) on *day*, derived from the warmup time."""
        warmup = datetime.combine(
            day, datetime.strptime(require_time(warmup_time), "%H:%M").time(), tzinfo=self.tz
        )
        return (
            warmup - timedelta(minutes=self.warning_minutes),
            warmup - timedelta(minutes=self.close_minutes),
        )

    def daily_time(self, trigger: WeeklyTrigger) -> time:
        """Trigger time carrying the calendar timezone, for run_daily."""
        return trigger.at.replace(tzinfo=self.tz)
