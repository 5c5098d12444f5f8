"""Roster text: rendering for the chats, and parsing an admin-pasted list back.

The rendered form is deterministic: header, three time lines, one numbered
line per slot, an optional waiting-list section and the static rules footer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rosterbot.core.helpers import clean_name, format_short_date, is_full_name
from rosterbot.data.models import ROSTER_SIZE, Participant, Roster

EMPTY_SLOT = "___"
EQUIPMENT_TAG = "(equipment)"
LAUNDRY_TAG = "(laundry)"
WAITING_HEADER = "--- Waiting list ---"

_FOOTER = (
    "• *Only full names (first + last) get on the list*",
    "• *Each person may register one name only*",
    "",
    f"*Slot {ROSTER_SIZE} does the laundry*",
)

_NUMBERED_LINE = re.compile(r"^(\d{1,2})\.\s*(.*)$")
_WAITING_MARKERS = ("waiting list", "waiting", "המתנה")
_EQUIPMENT_MARKERS = ("equipment", "ציוד")
_LAUNDRY_MARKERS = ("laundry", "כביסה")
_TAGS = re.compile(r"\(.*?\)")


def render_roster(roster: Roster, event_name: str | None = None) -> str:
    """Render *roster* as the message posted to the chats."""
    if event_name is None:
        from rosterbot.config import settings
        event_name = settings.EVENT_NAME

    lines = [
        f"{event_name} {format_short_date(roster.week_of)} ⚽🔥",
        "",
        f"Warmup: {roster.warmup_time} ⏰",
        f"Start: {roster.start_time} 🕘",
        f"Commitment until: {roster.commitment_time} 🤝",
        "",
    ]

    for i, p in enumerate(roster.slots):
        if p is None:
            lines.append(f"{i + 1}. {EMPTY_SLOT}")
            continue
        label = p.name
        if p.is_equipment_duty:
            label += f" {EQUIPMENT_TAG}"
        if p.is_laundry_duty:
            label += f" {LAUNDRY_TAG}"
        lines.append(f"{i + 1}. {label}")

    if roster.waiting_list:
        lines.append("")
        lines.append(WAITING_HEADER)
        lines.extend(p.name for p in roster.waiting_list)

    lines.append("")
    lines.extend(_FOOTER)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Override parsing
# ---------------------------------------------------------------------------


@dataclass
class ParsedRoster:
    """Slots and waiting list recovered from a pasted numbered list."""

    slots: list[Participant | None]
    waiting_list: list[Participant]


def _strip_markup(content: str) -> str:
    return clean_name(_TAGS.sub("", content).replace("*", ""))


def _is_waiting_heading(line: str) -> bool:
    lowered = line.lower()
    return any(marker in lowered for marker in _WAITING_MARKERS)


def parse_roster_text(raw_text: str, size: int = ROSTER_SIZE) -> ParsedRoster | None:
    """Parse a numbered list into a full slot + waiting-list replacement.

    ``<n>. <name>`` lines fill slot ``n-1``; role words in the line set the
    duty flags; ``___`` or an empty body leaves the slot empty. After a
    waiting-list heading, plain name lines become waiting-list entries.
    Returns None when no line could be recognised.
    """
    slots: list[Participant | None] = [None] * size
    waiting: list[Participant] = []
    found_any = False
    in_waiting = False

    for line in raw_text.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        match = _NUMBERED_LINE.match(trimmed)
        if match is None:
            if _is_waiting_heading(trimmed):
                in_waiting = True
                continue
            if in_waiting and not trimmed.startswith(("---", "•", "*")):
                name = _strip_markup(trimmed)
                if is_full_name(name):
                    waiting.append(Participant(name=name))
                    found_any = True
            continue

        content = match.group(2).strip()
        if not content or set(content) <= {"_"}:
            continue
        name = _strip_markup(content)
        if not is_full_name(name):
            continue

        if in_waiting:
            waiting.append(Participant(name=name))
            found_any = True
            continue

        index = int(match.group(1)) - 1
        if not 0 <= index < size:
            continue
        lowered = content.lower()
        slots[index] = Participant(
            name=name,
            is_equipment_duty=any(m in lowered for m in _EQUIPMENT_MARKERS),
            is_laundry_duty=any(m in lowered for m in _LAUNDRY_MARKERS),
        )
        found_any = True

    if not found_any:
        return None
    return ParsedRoster(slots=slots, waiting_list=waiting)
