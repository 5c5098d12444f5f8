"""Telegram messaging adapter — implements MessagingPort.

Wraps a telegram.Bot instance. Mentions are rendered as HTML user links,
so a tagged message is always sent with HTML parse mode.
"""

from __future__ import annotations

import html
import logging

from telegram import Bot, ChatPermissions

logger = logging.getLogger(__name__)


def format_mentions(text: str, mentions: list[tuple[str, str]]) -> str:
    """Prefix *text* with clickable mentions; the rest of the text is escaped."""
    links = " ".join(
        f'<a href="tg://user?id={html.escape(user_id)}">{html.escape(name)}</a>'
        for user_id, name in mentions
    )
    return f"{links} {html.escape(text)}".strip()


class TelegramMessenger:
    """Telegram implementation of MessagingPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self,
        chat_id: int,
        text: str,
        mentions: list[tuple[str, str]] | None = None,
    ) -> int | None:
        if mentions:
            sent = await self._bot.send_message(
                chat_id=chat_id, text=format_mentions(text, mentions), parse_mode="HTML",
            )
        else:
            sent = await self._bot.send_message(chat_id=chat_id, text=text)
        return sent.message_id if sent is not None else None

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._bot.delete_message(chat_id=chat_id, message_id=message_id)

    async def set_chat_open(self, chat_id: int, is_open: bool) -> None:
        await self._bot.set_chat_permissions(
            chat_id=chat_id, permissions=ChatPermissions(can_send_messages=is_open),
        )
        logger.info("Chat %s %s", chat_id, "opened" if is_open else "closed")
