"""Messaging port — abstract interface for talking to the group chats.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class MessagingPort(Protocol):
    """Abstract messaging interface used by core modules."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        mentions: list[tuple[str, str]] | None = None,
    ) -> int | None:
        """Send *text*; *mentions* are ``(user_id, display_name)`` pairs to tag.

        Returns the sent message reference, if the provider gives one.
        """
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None: ...

    async def set_chat_open(self, chat_id: int, is_open: bool) -> None:
        """Allow (or forbid) regular members to post in *chat_id*."""
        ...
