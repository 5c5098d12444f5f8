"""Sandboxed dry run for the test chat.

Messages posted in the test chat are buffered in memory, classified in one
batch after a fixed delay, and applied to a *copy* of the live roster.
The report says what would have happened; nothing is saved.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

from rosterbot.core.collector import MessageCollector
from rosterbot.core.registration import apply_intents

if TYPE_CHECKING:
    from rosterbot.data.db import RosterStore
    from rosterbot.ports.classifier_port import ClassifierPort

logger = logging.getLogger(__name__)


class SandboxSession:
    def __init__(self, chat_id: int, delay_seconds: int = 60) -> None:
        self.chat_id = chat_id
        self.delay_seconds = delay_seconds
        self.collector = MessageCollector(timer_name="sandbox_flush")

    async def dry_run(self, store: RosterStore, classifier: ClassifierPort) -> str | None:
        """Flush the sandbox buffer and describe the would-be outcome."""
        batch = self.collector.flush()
        if not batch:
            return None

        try:
            intents = await classifier.classify(batch)
        except Exception as exc:
            logger.error("[TEST] classifier failed: %s", exc)
            intents = []

        roster = copy.deepcopy(store.load_roster())
        weekly = copy.deepcopy(store.load_weekly())
        outcome = apply_intents(roster, weekly, batch, intents)

        lines = [f"🧪 Dry run of {len(batch)} message(s):"]
        lines.extend(f'• "{m.text}"' for m in batch)
        lines.append("")
        if not intents:
            lines.append("No registration actions recognised.")
        for intent in outcome.applied:
            if intent.kind == "register":
                lines.append(f"✅ WOULD REGISTER: {intent.name}")
            elif intent.kind == "cancel_waiting":
                lines.append(f"🔄 WOULD CANCEL WAITING for {intent.user_id}")
            else:
                lines.append(f"🔄 WOULD CANCEL for {intent.user_id}")
        for intent, reason in outcome.skipped:
            label = intent.name or intent.user_id
            lines.append(f"❌ SKIP {intent.kind} ({label}): {reason}")
        for p in outcome.promoted:
            lines.append(f"⬆️ WOULD PROMOTE: {p.name}")

        logger.info("[TEST] dry run: %d applied, %d skipped", len(outcome.applied), len(outcome.skipped))
        return "\n".join(lines)
