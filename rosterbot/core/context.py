"""Runtime context shared by the bot handlers and the lifecycle jobs.

Holds the ports, the stores and the single-writer lock, plus the small
amount of live session state (the last posted roster message, the
event-day timers) that is deliberately not persisted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rosterbot.core.collector import MessageCollector
from rosterbot.core.timers import PendingTimer
from rosterbot.core.week import WeeklyCalendar

if TYPE_CHECKING:
    from rosterbot.data.db import RosterStore
    from rosterbot.ports.classifier_port import ClassifierPort
    from rosterbot.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)


class RosterPoster:
    """Posts the roster to one chat, deleting the previous post first."""

    def __init__(self, messenger: MessagingPort, chat_id: int) -> None:
        self._messenger = messenger
        self.chat_id = chat_id
        self.last_message_id: int | None = None

    async def post(self, text: str) -> None:
        if self.last_message_id is not None:
            try:
                await self._messenger.delete_message(self.chat_id, self.last_message_id)
            except Exception as exc:
                logger.debug("Could not delete previous roster post: %s", exc)
            self.last_message_id = None
        self.last_message_id = await self._messenger.send_message(self.chat_id, text)


@dataclass
class RosterContext:
    store: RosterStore
    classifier: ClassifierPort
    messenger: MessagingPort
    admin_chat_id: int
    players_chat_id: int
    calendar: WeeklyCalendar = field(default_factory=WeeklyCalendar)
    event_name: str = "Saturday Football"
    debounce_seconds: int = 120
    collector: MessageCollector = field(init=False)
    poster: RosterPoster = field(init=False)
    flush_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    warning_timer: PendingTimer = field(default_factory=lambda: PendingTimer("last_call_warning"))
    close_timer: PendingTimer = field(default_factory=lambda: PendingTimer("close_registration"))

    def __post_init__(self) -> None:
        self.collector = MessageCollector(self.store)
        self.poster = RosterPoster(self.messenger, self.players_chat_id)
