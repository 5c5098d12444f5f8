"""
Roster Bot — Data Models.

Plain documents persisted by the RosterStore: the weekly roster, the
per-week registration map with its pending message buffer, the admin list
and the sleep switch. Each model round-trips through a JSON-safe dict.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

ROSTER_SIZE = 24


@dataclass
class Participant:
    """One person on the roster (a slot occupant or a waiting-list entry).

    An empty ``user_id`` marks a placeholder typed in by an administrator;
    it is linked to the real sender once that person self-registers.
    """

    name: str
    user_id: str = ""
    is_laundry_duty: bool = False
    is_equipment_duty: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Participant:
        return cls(
            name=str(data.get("name", "")),
            user_id=str(data.get("user_id", "") or ""),
            is_laundry_duty=bool(data.get("is_laundry_duty", False)),
            is_equipment_duty=bool(data.get("is_equipment_duty", False)),
        )


@dataclass
class Roster:
    """The current week's fixed-size slot list plus its FIFO waiting list."""

    week_of: str                       # ISO date of the event day
    warmup_time: str                   # HH:MM
    start_time: str                    # HH:MM
    commitment_time: str               # HH:MM
    slots: list[Participant | None] = field(
        default_factory=lambda: [None] * ROSTER_SIZE
    )
    waiting_list: list[Participant] = field(default_factory=list)
    registration_open: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Roster:
        raw_slots = list(data.get("slots") or [])
        slots: list[Participant | None] = [
            Participant.from_dict(s) if isinstance(s, dict) and s.get("name") else None
            for s in raw_slots[:ROSTER_SIZE]
        ]
        slots.extend([None] * (ROSTER_SIZE - len(slots)))
        return cls(
            week_of=str(data.get("week_of", "")),
            warmup_time=str(data.get("warmup_time", "")),
            start_time=str(data.get("start_time", "")),
            commitment_time=str(data.get("commitment_time", "")),
            slots=slots,
            waiting_list=[
                Participant.from_dict(w)
                for w in data.get("waiting_list") or []
                if isinstance(w, dict) and w.get("name")
            ],
            registration_open=bool(data.get("registration_open", False)),
        )


@dataclass
class AdminEntry:
    """An administrator allowed to issue roster commands."""

    user_id: str
    name: str


@dataclass
class CollectedMessage:
    """A raw players-chat message waiting for the next flush."""

    msg_id: str
    sender_id: str
    text: str
    timestamp: float


@dataclass
class WeeklyState:
    """Who registered this week, and what is still waiting to be classified."""

    user_id_map: dict[str, str] = field(default_factory=dict)
    messages_collected: list[CollectedMessage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> WeeklyState:
        return cls(
            user_id_map={str(k): str(v) for k, v in (data.get("user_id_map") or {}).items()},
            messages_collected=[
                CollectedMessage(
                    msg_id=str(m.get("msg_id", "")),
                    sender_id=str(m.get("sender_id", "")),
                    text=str(m.get("text", "")),
                    timestamp=float(m.get("timestamp", 0.0)),
                )
                for m in data.get("messages_collected") or []
                if isinstance(m, dict)
            ],
        )


@dataclass
class BotControlState:
    """Kill-switch: while sleeping no batch is collected or processed."""

    sleeping: bool = True
