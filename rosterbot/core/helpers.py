"""Small pure helpers shared by the engine, the admin commands and the bot.

Identity normalisation, full-name checks, HH:MM parsing and date math.
No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

_DEVICE_SUFFIX = re.compile(r":\d+(?=@)")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

SATURDAY = 5


class InvalidTimeError(ValueError):
    """Raised when a time-of-day is not a valid HH:MM value."""


def normalize_user_id(user_id: str | int | None) -> str:
    """Canonical form of a sender identity.

    Strips whitespace and any ``:device`` suffix before the domain part,
    so ``"9725:12@s.net"`` and ``"9725@s.net"`` compare equal.
    """
    if user_id is None:
        return ""
    return _DEVICE_SUFFIX.sub("", str(user_id).strip())


def is_full_name(name: str | None) -> bool:
    """A name is admissible when it has at least two space-separated tokens."""
    if not name:
        return False
    return len(name.split()) >= 2


def clean_name(name: str | None) -> str:
    """Collapse internal whitespace so equal names compare equal."""
    return " ".join(str(name or "").split())


def parse_time_string(text: str | None) -> str | None:
    """Return a zero-padded ``HH:MM`` string, or None when *text* is not a time."""
    match = _TIME_RE.match(str(text or "").strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def require_time(text: str | None) -> str:
    """Like parse_time_string but raises InvalidTimeError on bad input."""
    parsed = parse_time_string(text)
    if parsed is None:
        raise InvalidTimeError(f"Not a valid HH:MM time: {text!r}")
    return parsed


def shift_time(hhmm: str, minutes: int) -> str:
    """Add *minutes* (may be negative) to an HH:MM value, wrapping at midnight."""
    base = datetime.strptime(require_time(hhmm), "%H:%M")
    return (base + timedelta(minutes=minutes)).strftime("%H:%M")


def upcoming_weekday(today: date, weekday: int = SATURDAY) -> date:
    """Next date strictly after *today* falling on *weekday* (Mon=0)."""
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def format_short_date(iso: str) -> str:
    """``2026-10-24`` → ``24/10``; unparseable input is returned unchanged."""
    try:
        d = date.fromisoformat(iso)
    except (TypeError, ValueError):
        return iso
    return f"{d.day:02d}/{d.month:02d}"
