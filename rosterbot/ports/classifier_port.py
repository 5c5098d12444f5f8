"""Classifier port — abstract interface for turning free text into intents.

The classifier is an untrusted oracle: whatever it returns is validated
again by the registration and admin logic.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from rosterbot.core.parser import AdminCommand, Intent
    from rosterbot.data.models import CollectedMessage


class ClassifierError(Exception):
    """Raised when the classification backend fails or times out."""


class ClassifierPort(Protocol):
    """Abstract classifier interface used by core modules."""

    async def classify(self, batch: list[CollectedMessage]) -> list[Intent]: ...

    async def classify_admin_command(
        self, text: str, mentioned_ids: list[str]
    ) -> AdminCommand | None: ...
