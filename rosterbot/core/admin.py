"""
Roster Bot — Admin Commands.

Executes the closed set of privileged commands against the stored roster.
Every command is validated before anything is mutated; a successful roster
command persists the roster and answers with its rendered form.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from rosterbot.core import slots
from rosterbot.core.helpers import InvalidTimeError, clean_name, normalize_user_id, require_time, shift_time
from rosterbot.core.parser import (
    AddAdmin,
    AdminCommand,
    OverrideRoster,
    RegisterSelf,
    RemoveAdmin,
    RemoveParticipant,
    RemoveSelf,
    SetEquipment,
    SetLaundry,
    SetStartTime,
    SetWarmupTime,
    ShowRoster,
)
from rosterbot.core.template import parse_roster_text, render_roster
from rosterbot.core.week import WeeklyCalendar
from rosterbot.data.db import RosterStore
from rosterbot.data.models import AdminEntry, Participant, Roster, WeeklyState

logger = logging.getLogger(__name__)


@dataclass
class AdminResult:
    """Outcome of one admin command, ready to be sent back to the admin."""

    success: bool
    text: str
    promoted: list[Participant] = field(default_factory=list)


def accepts_commands(
    store: RosterStore, sender_id: str, now: datetime, calendar: WeeklyCalendar,
) -> bool:
    """Only known admins, and only while the weekly command window is open."""
    if not store.is_admin(sender_id):
        logger.info("Dropped admin command: %s is not an admin", sender_id)
        return False
    if not calendar.is_command_window_open(now):
        logger.info("Dropped admin command: outside the command window")
        return False
    return True


def apply_override(roster: Roster, weekly: WeeklyState, raw_text: str) -> bool:
    """Replace slots and waiting list from a pasted numbered list.

    Returns False (roster untouched) when nothing could be parsed.
    """
    parsed = parse_roster_text(raw_text, size=len(roster.slots))
    if parsed is None:
        return False
    roster.slots = parsed.slots
    roster.waiting_list = parsed.waiting_list
    slots.normalize_laundry_seat(roster)

    remaining = {clean_name(p.name) for p in slots.everyone(roster)}
    for user_id, name in list(weekly.user_id_map.items()):
        if clean_name(name) not in remaining:
            del weekly.user_id_map[user_id]
    logger.info("Roster overridden manually (%d entries)", len(remaining))
    return True


def _remove_participant(
    roster: Roster, weekly: WeeklyState, command: RemoveParticipant,
) -> slots.RemovalResult | None:
    if command.name:
        holder = slots.name_holder(roster, command.name)
        if holder is None:
            return None
        if command.role == "laundry" and not holder.is_laundry_duty:
            return None
        if command.role == "equipment" and not holder.is_equipment_duty:
            return None
        result = slots.remove_by_name(roster, command.name)
    else:
        result = slots.remove_by_role(roster, command.role)
    if not result.found:
        return None
    if result.removed.user_id:
        weekly.user_id_map.pop(normalize_user_id(result.removed.user_id), None)
    return result


def execute_admin_command(
    store: RosterStore,
    command: AdminCommand,
    sender_id: str,
    event_name: str | None = None,
    close_minutes: int | None = None,
) -> AdminResult:
    """Run *command* for admin *sender_id* and describe the result."""
    if close_minutes is None:
        from rosterbot.config import settings
        close_minutes = settings.CLOSE_MINUTES_BEFORE_WARMUP

    sender_id = normalize_user_id(sender_id)
    roster = store.load_roster()
    weekly = store.load_weekly()
    promoted: list[Participant] = []

    if isinstance(command, ShowRoster):
        return AdminResult(True, render_roster(roster, event_name))

    if isinstance(command, AddAdmin):
        admins = store.load_admins()
        new_id = normalize_user_id(command.user_id)
        if any(a.user_id == new_id for a in admins):
            return AdminResult(False, f"{command.name} is already an admin")
        admins.append(AdminEntry(user_id=new_id, name=command.name))
        store.save_admins(admins)
        logger.info("Admin %s added by %s", new_id, sender_id)
        return AdminResult(True, f"{command.name} is now an admin ✅")

    if isinstance(command, RemoveAdmin):
        admins = store.load_admins()
        target = normalize_user_id(command.user_id)
        match = next((a for a in admins if a.user_id == target), None)
        if match is None:
            return AdminResult(False, "That user is not an admin")
        if len(admins) <= 1:
            return AdminResult(False, "Can't remove the last admin")
        store.save_admins([a for a in admins if a.user_id != target])
        logger.info("Admin %s removed by %s", target, sender_id)
        return AdminResult(True, f"{match.name} is no longer an admin ✅")

    if isinstance(command, RegisterSelf):
        admin = store.find_admin(sender_id)
        if admin is None:
            return AdminResult(False, "Only admins can use this command")
        placement = slots.add_participant(roster, Participant(name=admin.name, user_id=sender_id))
        if placement == "duplicate":
            return AdminResult(False, "You're already on the list")
        weekly.user_id_map[sender_id] = admin.name

    elif isinstance(command, RemoveSelf):
        result = slots.remove_participant(roster, sender_id)
        if not result.found:
            return AdminResult(False, "You're not on the list")
        weekly.user_id_map.pop(sender_id, None)
        if result.promoted is not None:
            promoted.append(result.promoted)

    elif isinstance(command, SetEquipment):
        try:
            slots.set_equipment_duty(roster, command.name)
        except slots.InvalidNameError:
            return AdminResult(False, "Equipment duty needs a full name (first + last)")

    elif isinstance(command, SetLaundry):
        try:
            slots.set_laundry_duty(roster, command.name)
        except slots.InvalidNameError:
            return AdminResult(False, "Laundry duty needs a full name (first + last)")

    elif isinstance(command, SetWarmupTime):
        try:
            roster.warmup_time = require_time(command.time)
        except InvalidTimeError:
            return AdminResult(False, "Warmup time must look like HH:MM")
        roster.commitment_time = shift_time(roster.warmup_time, -close_minutes)

    elif isinstance(command, SetStartTime):
        try:
            roster.start_time = require_time(command.time)
        except InvalidTimeError:
            return AdminResult(False, "Start time must look like HH:MM")

    elif isinstance(command, RemoveParticipant):
        if not command.name and command.role is None:
            return AdminResult(False, "Tell me who to remove: a full name or a role")
        result = _remove_participant(roster, weekly, command)
        if result is None:
            return AdminResult(False, "Couldn't find that player on the list")
        if result.promoted is not None:
            promoted.append(result.promoted)

    elif isinstance(command, OverrideRoster):
        if not apply_override(roster, weekly, command.raw_text):
            return AdminResult(
                False, "Couldn't read that list. Send a numbered list (1. Name, 2. Name...)"
            )

    else:
        logger.warning("Unsupported admin command: %r", command)
        return AdminResult(False, "Unknown command")

    store.save_roster(roster)
    store.save_weekly(weekly)
    logger.info("Admin command %s executed by %s", command.kind, sender_id)
    return AdminResult(True, render_roster(roster, event_name), promoted)
