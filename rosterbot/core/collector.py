"""Message collector — buffers raw players-chat messages between flushes.

Messages are appended while registration is open, may be edited or
withdrawn while still buffered, and are handed over as one batch on
flush. The live collector keeps its buffer in the persisted WeeklyState
so a restart does not lose pending messages; the sandbox collector keeps
it in memory.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

from rosterbot.core.helpers import normalize_user_id
from rosterbot.core.timers import PendingTimer
from rosterbot.data.models import CollectedMessage

if TYPE_CHECKING:
    from rosterbot.data.db import RosterStore

logger = logging.getLogger(__name__)


class MessageCollector:
    """Append-only buffer with in-place edit/delete and an atomic flush."""

    def __init__(
        self,
        store: RosterStore | None = None,
        clock: Callable[[], float] = time.time,
        timer_name: str = "debounce_flush",
    ) -> None:
        self._store = store
        self._clock = clock
        self._memory: list[CollectedMessage] = []
        self.debounce = PendingTimer(timer_name)

    # --- buffer access ---

    def _read(self) -> list[CollectedMessage]:
        if self._store is None:
            return self._memory
        return self._store.load_weekly().messages_collected

    def _write(self, messages: list[CollectedMessage]) -> None:
        if self._store is None:
            self._memory = messages
            return
        weekly = self._store.load_weekly()
        weekly.messages_collected = messages
        self._store.save_weekly(weekly)

    def pending(self) -> list[CollectedMessage]:
        return list(self._read())

    # --- operations ---

    def collect(self, msg_id: str, sender_id: str, text: str) -> CollectedMessage:
        message = CollectedMessage(
            msg_id=str(msg_id),
            sender_id=normalize_user_id(sender_id),
            text=text,
            timestamp=self._clock(),
        )
        messages = self._read()
        messages.append(message)
        self._write(messages)
        logger.debug("Collected message %s from %s", message.msg_id, message.sender_id)
        return message

    def edit(self, msg_id: str, new_text: str) -> bool:
        """Replace the text of a still-buffered message; False if already flushed."""
        messages = self._read()
        for m in messages:
            if m.msg_id == str(msg_id):
                m.text = new_text
                self._write(messages)
                logger.debug("Updated buffered message %s", msg_id)
                return True
        return False

    def delete(self, msg_id: str) -> bool:
        """Drop a buffered message so it never reaches the classifier."""
        messages = self._read()
        kept = [m for m in messages if m.msg_id != str(msg_id)]
        if len(kept) == len(messages):
            return False
        self._write(kept)
        logger.debug("Removed buffered message %s", msg_id)
        return True

    def flush(self) -> list[CollectedMessage]:
        """Swap the buffer for an empty one and return the snapshot."""
        messages = self._read()
        if not messages:
            return []
        snapshot = list(messages)
        self._write([])
        logger.info("Flushed %d buffered messages", len(snapshot))
        return snapshot
