"""Slot assignment engine — pure state transitions over a Roster.

Adding, removing and promoting participants, linking placeholders typed
in by admins to real senders, and the equipment/laundry duty rules.
The last slot is the canonical laundry seat: whoever sits there does the
laundry.

No I/O: callers load the roster, call these functions and save it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from rosterbot.core.helpers import clean_name, is_full_name, normalize_user_id
from rosterbot.data.models import Participant, Roster

logger = logging.getLogger(__name__)

Placement = Literal["slot", "waiting", "linked", "duplicate"]
Role = Literal["equipment", "laundry"]


class InvalidNameError(ValueError):
    """Raised when a role assignment names fewer than two words."""


@dataclass
class RemovalResult:
    """What a removal did: who left, and who was promoted into their slot."""

    removed: Participant | None = None
    promoted: Participant | None = None
    slot_index: int | None = None

    @property
    def found(self) -> bool:
        return self.removed is not None


def laundry_seat(roster: Roster) -> int:
    return len(roster.slots) - 1


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def find_slot_by_user(roster: Roster, user_id: str) -> int | None:
    normalized = normalize_user_id(user_id)
    if not normalized:
        return None
    for i, p in enumerate(roster.slots):
        if p is not None and p.user_id and normalize_user_id(p.user_id) == normalized:
            return i
    return None


def find_waiting_by_user(roster: Roster, user_id: str) -> int | None:
    normalized = normalize_user_id(user_id)
    if not normalized:
        return None
    for i, p in enumerate(roster.waiting_list):
        if p.user_id and normalize_user_id(p.user_id) == normalized:
            return i
    return None


def find_slot_by_name(roster: Roster, name: str, placeholders_only: bool = False) -> int | None:
    wanted = clean_name(name)
    for i, p in enumerate(roster.slots):
        if p is None or clean_name(p.name) != wanted:
            continue
        if placeholders_only and p.user_id:
            continue
        return i
    return None


def find_waiting_by_name(roster: Roster, name: str, placeholders_only: bool = False) -> int | None:
    wanted = clean_name(name)
    for i, p in enumerate(roster.waiting_list):
        if clean_name(p.name) != wanted:
            continue
        if placeholders_only and p.user_id:
            continue
        return i
    return None


def is_on_roster(roster: Roster, user_id: str) -> bool:
    return (
        find_slot_by_user(roster, user_id) is not None
        or find_waiting_by_user(roster, user_id) is not None
    )


def name_holder(roster: Roster, name: str) -> Participant | None:
    """Return whoever holds *name* anywhere on the roster."""
    index = find_slot_by_name(roster, name)
    if index is not None:
        return roster.slots[index]
    index = find_waiting_by_name(roster, name)
    if index is not None:
        return roster.waiting_list[index]
    return None


def everyone(roster: Roster) -> list[Participant]:
    """All participants, slots first (by index) then the waiting list."""
    return [p for p in roster.slots if p is not None] + list(roster.waiting_list)


# ---------------------------------------------------------------------------
# Core transitions
# ---------------------------------------------------------------------------


def add_participant(roster: Roster, participant: Participant) -> Placement:
    """Seat *participant* in the first empty slot, or queue them.

    A sender already on the roster is left alone. A placeholder with the
    same name and no identity gets the sender's identity instead of a new
    entry being created.
    """
    participant.user_id = normalize_user_id(participant.user_id)
    participant.name = clean_name(participant.name)

    if participant.user_id and is_on_roster(roster, participant.user_id):
        return "duplicate"

    if participant.user_id:
        index = find_slot_by_name(roster, participant.name, placeholders_only=True)
        if index is not None:
            roster.slots[index].user_id = participant.user_id
            logger.info("Linked %s to placeholder '%s' in slot %d",
                        participant.user_id, participant.name, index + 1)
            return "linked"
        index = find_waiting_by_name(roster, participant.name, placeholders_only=True)
        if index is not None:
            roster.waiting_list[index].user_id = participant.user_id
            logger.info("Linked %s to waiting placeholder '%s'",
                        participant.user_id, participant.name)
            return "linked"

    empty = next((i for i, p in enumerate(roster.slots) if p is None), None)
    if empty is None:
        roster.waiting_list.append(participant)
        return "waiting"

    if empty == laundry_seat(roster) and not any(p.is_laundry_duty for p in everyone(roster)):
        participant.is_laundry_duty = True
    roster.slots[empty] = participant
    return "slot"


def promote_from_waiting(roster: Roster, vacated_index: int) -> Participant | None:
    """Move the longest-waiting participant into *vacated_index* (FIFO)."""
    if not roster.waiting_list or roster.slots[vacated_index] is not None:
        return None
    promoted = roster.waiting_list.pop(0)
    if vacated_index == laundry_seat(roster):
        promoted.is_laundry_duty = True
    roster.slots[vacated_index] = promoted
    logger.info("Promoted '%s' from waiting list to slot %d", promoted.name, vacated_index + 1)
    return promoted


def remove_at(roster: Roster, index: int) -> RemovalResult:
    """Vacate slot *index* and immediately promote the head of the waiting list."""
    removed = roster.slots[index]
    if removed is None:
        return RemovalResult()
    roster.slots[index] = None
    promoted = promote_from_waiting(roster, index)
    return RemovalResult(removed=removed, promoted=promoted, slot_index=index)


def remove_participant(roster: Roster, user_id: str) -> RemovalResult:
    """Remove *user_id* from a slot (with promotion) or from the waiting list."""
    index = find_slot_by_user(roster, user_id)
    if index is not None:
        return remove_at(roster, index)
    index = find_waiting_by_user(roster, user_id)
    if index is not None:
        return RemovalResult(removed=roster.waiting_list.pop(index))
    return RemovalResult()


def remove_from_waiting(roster: Roster, user_id: str) -> RemovalResult:
    """Remove *user_id* from the waiting list only; slots are untouched."""
    index = find_waiting_by_user(roster, user_id)
    if index is None:
        return RemovalResult()
    return RemovalResult(removed=roster.waiting_list.pop(index))


def remove_by_name(roster: Roster, name: str) -> RemovalResult:
    index = find_slot_by_name(roster, name)
    if index is not None:
        return remove_at(roster, index)
    index = find_waiting_by_name(roster, name)
    if index is not None:
        return RemovalResult(removed=roster.waiting_list.pop(index))
    return RemovalResult()


def remove_by_role(roster: Roster, role: Role) -> RemovalResult:
    """Remove the first participant carrying *role* duty."""
    attr = "is_laundry_duty" if role == "laundry" else "is_equipment_duty"
    for i, p in enumerate(roster.slots):
        if p is not None and getattr(p, attr):
            return remove_at(roster, i)
    for i, p in enumerate(roster.waiting_list):
        if getattr(p, attr):
            return RemovalResult(removed=roster.waiting_list.pop(i))
    return RemovalResult()


# ---------------------------------------------------------------------------
# Duties
# ---------------------------------------------------------------------------


def set_equipment_duty(roster: Roster, name: str) -> Participant:
    """Flag *name* for equipment duty, adding them to the roster if unknown."""
    if not is_full_name(name):
        raise InvalidNameError(f"Equipment duty needs a full name, got {name!r}")
    holder = name_holder(roster, name)
    if holder is not None:
        holder.is_equipment_duty = True
        return holder
    newcomer = Participant(name=clean_name(name), is_equipment_duty=True)
    add_participant(roster, newcomer)
    return newcomer


def set_laundry_duty(roster: Roster, name: str) -> Participant:
    """Move *name* into the laundry seat, swapping out its current occupant.

    The previous occupant loses laundry duty and goes to the slot *name*
    came from, else the first empty slot, else the end of the waiting list.
    Nobody is dropped.
    """
    if not is_full_name(name):
        raise InvalidNameError(f"Laundry duty needs a full name, got {name!r}")

    seat = laundry_seat(roster)
    origin: int | None = find_slot_by_name(roster, name)
    if origin is not None:
        player = roster.slots[origin]
        roster.slots[origin] = None
    else:
        waiting_index = find_waiting_by_name(roster, name)
        if waiting_index is not None:
            player = roster.waiting_list.pop(waiting_index)
        else:
            player = Participant(name=clean_name(name))

    for other in everyone(roster):
        other.is_laundry_duty = False

    displaced = roster.slots[seat]
    player.is_laundry_duty = True
    roster.slots[seat] = player

    if displaced is not None and displaced is not player:
        if origin is not None and roster.slots[origin] is None:
            roster.slots[origin] = displaced
        else:
            empty = next((i for i, p in enumerate(roster.slots) if p is None), None)
            if empty is not None:
                roster.slots[empty] = displaced
            else:
                roster.waiting_list.append(displaced)
    logger.info("Laundry duty assigned to '%s'", player.name)
    return player


def normalize_laundry_seat(roster: Roster) -> None:
    """Re-establish the canonical laundry seat after a bulk edit.

    A participant flagged for laundry elsewhere is swapped into the seat;
    otherwise whoever occupies the seat carries the duty.
    """
    seat = laundry_seat(roster)
    flagged = [
        p for i, p in enumerate(roster.slots)
        if p is not None and p.is_laundry_duty and i != seat
    ] + [p for p in roster.waiting_list if p.is_laundry_duty]
    if flagged:
        set_laundry_duty(roster, flagged[0].name)
        return
    occupant = roster.slots[seat]
    if occupant is not None:
        occupant.is_laundry_duty = True
