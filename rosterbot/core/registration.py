"""
Roster Bot — Intent Batch Applier.

Applies one flushed batch of classified intents to the roster:

1. Dedup — the first intent per sender wins; the rest of that sender's
   intents in the batch are dropped.
2. Security — a cancellation is honoured only for an identity that
   actually sent a message in this batch. Names parsed from message text
   are never trusted to pick who gets removed.
3. Validation — registrations need a full name, an identity that is not
   already registered, and a name nobody else holds.

Roster and weekly registrations are mutated together and saved as a unit
before any notification goes out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rosterbot.core import slots
from rosterbot.core.helpers import clean_name, is_full_name, normalize_user_id
from rosterbot.core.template import render_roster
from rosterbot.data.models import CollectedMessage, Participant, Roster, WeeklyState

if TYPE_CHECKING:
    from rosterbot.core.context import RosterContext
    from rosterbot.core.parser import Intent

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Result of applying one batch."""

    roster: Roster
    weekly: WeeklyState
    applied: list[Intent] = field(default_factory=list)
    skipped: list[tuple[Intent, str]] = field(default_factory=list)
    promoted: list[Participant] = field(default_factory=list)
    rendered: str = ""

    @property
    def changed(self) -> bool:
        return bool(self.applied)


# ---------------------------------------------------------------------------
# Pure application
# ---------------------------------------------------------------------------


def _register(roster: Roster, weekly: WeeklyState, user_id: str, raw_name: str) -> str | None:
    """Apply a registration; returns a skip reason or None on success."""
    name = clean_name(raw_name)
    if not is_full_name(name):
        return "not a full name"
    if user_id in weekly.user_id_map or slots.is_on_roster(roster, user_id):
        return "already registered"
    holder = slots.name_holder(roster, name)
    if holder is not None and holder.user_id and normalize_user_id(holder.user_id) != user_id:
        return "name held by another identity"
    # Placeholders left by an override still belong to their mapped identity.
    if any(clean_name(n) == name for uid, n in weekly.user_id_map.items() if uid != user_id):
        return "name held by another identity"

    slots.add_participant(roster, Participant(name=name, user_id=user_id))
    weekly.user_id_map[user_id] = name
    return None


def _remove_placeholder(
    roster: Roster, name: str, waiting_only: bool = False,
) -> slots.RemovalResult:
    """Fallback for identities registered through a manually typed entry."""
    if not waiting_only:
        index = slots.find_slot_by_name(roster, name, placeholders_only=True)
        if index is not None:
            return slots.remove_at(roster, index)
    index = slots.find_waiting_by_name(roster, name, placeholders_only=True)
    if index is not None:
        return slots.RemovalResult(removed=roster.waiting_list.pop(index))
    return slots.RemovalResult()


def _cancel(
    roster: Roster, weekly: WeeklyState, user_id: str, waiting_only: bool,
) -> tuple[str | None, Participant | None]:
    """Apply a cancellation; returns (skip reason, promoted participant)."""
    if waiting_only:
        result = slots.remove_from_waiting(roster, user_id)
    else:
        result = slots.remove_participant(roster, user_id)

    if not result.found and user_id in weekly.user_id_map:
        result = _remove_placeholder(roster, weekly.user_id_map[user_id], waiting_only)

    if not result.found:
        if waiting_only:
            return "not on the waiting list", None
        if user_id not in weekly.user_id_map:
            return "not registered", None

    weekly.user_id_map.pop(user_id, None)
    return None, result.promoted


def apply_intents(
    roster: Roster,
    weekly: WeeklyState,
    messages: list[CollectedMessage],
    intents: list[Intent],
) -> BatchOutcome:
    """Apply *intents* in batch order to *roster* and *weekly* (in place)."""
    outcome = BatchOutcome(roster=roster, weekly=weekly)
    senders = {normalize_user_id(m.sender_id) for m in messages}
    seen: set[str] = set()

    for intent in intents:
        user_id = normalize_user_id(intent.user_id)
        if not user_id:
            outcome.skipped.append((intent, "missing identity"))
            continue
        if user_id in seen:
            outcome.skipped.append((intent, "duplicate action for sender"))
            continue
        seen.add(user_id)

        if intent.kind == "register":
            reason = _register(roster, weekly, user_id, intent.name)
            if reason is not None:
                logger.info("Skipped registration '%s' for %s: %s", intent.name, user_id, reason)
                outcome.skipped.append((intent, reason))
                continue
            outcome.applied.append(intent)
            continue

        if user_id not in senders:
            logger.warning(
                "Blocked %s for %s: identity did not send a message in this batch",
                intent.kind, user_id,
            )
            outcome.skipped.append((intent, "not a sender in this batch"))
            continue

        reason, promoted = _cancel(
            roster, weekly, user_id, waiting_only=intent.kind == "cancel_waiting",
        )
        if reason is not None:
            logger.info("Skipped %s for %s: %s", intent.kind, user_id, reason)
            outcome.skipped.append((intent, reason))
            continue
        outcome.applied.append(intent)
        if promoted is not None:
            outcome.promoted.append(promoted)

    return outcome


def promotion_notice(promoted: list[Participant]) -> tuple[str, list[tuple[str, str]]] | None:
    """Text and mentions announcing promotions, or None if nobody moved up.

    Participants with an identity are tagged through the mentions list;
    placeholders without one are named in the text.
    """
    if not promoted:
        return None
    mentions = [(p.user_id, p.name) for p in promoted if p.user_id]
    untagged = [p.name for p in promoted if not p.user_id]
    verb = "you're in! ✅" if len(promoted) == 1 else "you're all in! ✅"
    text = f"{', '.join(untagged)} {verb}" if untagged else verb
    return text, mentions


# ---------------------------------------------------------------------------
# Flush pipeline
# ---------------------------------------------------------------------------


async def flush_and_apply(ctx: RosterContext) -> BatchOutcome | None:
    """Drain the buffer, classify it and apply the result to the stored roster.

    Runs under the context's flush lock so two flushes never interleave.
    Returns None when there was nothing to do.
    """
    async with ctx.flush_lock:
        if ctx.store.load_bot_control().sleeping:
            logger.info("Bot is sleeping; skipping flush")
            return None

        batch = ctx.collector.flush()
        if not batch:
            return None

        try:
            intents = await ctx.classifier.classify(batch)
        except Exception as exc:
            logger.error("Classifier failed, discarding batch of %d: %s", len(batch), exc)
            intents = []
        if not intents:
            logger.info("No intents in batch of %d messages", len(batch))
            return None

        # Reload right before mutating: the buffer may have grown while classifying.
        roster = ctx.store.load_roster()
        weekly = ctx.store.load_weekly()
        outcome = apply_intents(roster, weekly, batch, intents)
        ctx.store.save_roster(roster)
        ctx.store.save_weekly(weekly)

        outcome.rendered = render_roster(roster, ctx.event_name)
        await ctx.poster.post(outcome.rendered)

        notice = promotion_notice(outcome.promoted)
        if notice is not None:
            text, mentions = notice
            await ctx.messenger.send_message(ctx.players_chat_id, text, mentions)

        logger.info(
            "Processed batch: %d intents, %d applied, %d skipped, %d promoted",
            len(intents), len(outcome.applied), len(outcome.skipped), len(outcome.promoted),
        )
        return outcome
