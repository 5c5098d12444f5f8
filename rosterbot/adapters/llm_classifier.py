"""LLM classifier adapter — implements ClassifierPort on top of core.parser."""

from __future__ import annotations

from rosterbot.core.parser import AdminCommand, Intent, classify_messages, parse_admin_command
from rosterbot.data.models import CollectedMessage


class LLMClassifier:
    """ClassifierPort backed by the configured LLM provider."""

    async def classify(self, batch: list[CollectedMessage]) -> list[Intent]:
        return await classify_messages(batch)

    async def classify_admin_command(
        self, text: str, mentioned_ids: list[str],
    ) -> AdminCommand | None:
        return await parse_admin_command(text, mentioned_ids)
