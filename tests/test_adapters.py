"""Tests for rosterbot.adapters — Telegram messenger and LLM classifier."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from rosterbot.adapters.llm_classifier import LLMClassifier
from rosterbot.adapters.telegram_messenger import TelegramMessenger, format_mentions
from rosterbot.core.parser import ShowRoster
from rosterbot.data.models import CollectedMessage


def _bot():
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock(message_id=77))
    bot.delete_message = AsyncMock()
    bot.set_chat_permissions = AsyncMock()
    return bot


class TestFormatMentions:
    def test_links_and_escaping(self):
        text = format_mentions("you're in! <3", [("11", "Dana & Co")])
        assert text == '<a href="tg://user?id=11">Dana &amp; Co</a> you&#x27;re in! &lt;3'


class TestTelegramMessenger:
    @pytest.mark.asyncio
    async def test_plain_send_returns_message_id(self):
        bot = _bot()
        assert await TelegramMessenger(bot).send_message(-200, "roster") == 77
        bot.send_message.assert_awaited_once_with(chat_id=-200, text="roster")

    @pytest.mark.asyncio
    async def test_send_with_mentions_uses_html(self):
        bot = _bot()
        await TelegramMessenger(bot).send_message(-200, "you're in!", [("11", "Dana Levi")])
        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["parse_mode"] == "HTML"
        assert 'tg://user?id=11' in kwargs["text"]

    @pytest.mark.asyncio
    async def test_delete(self):
        bot = _bot()
        await TelegramMessenger(bot).delete_message(-200, 5)
        bot.delete_message.assert_awaited_once_with(chat_id=-200, message_id=5)

    @pytest.mark.asyncio
    async def test_set_chat_open(self):
        bot = _bot()
        await TelegramMessenger(bot).set_chat_open(-200, False)
        permissions = bot.set_chat_permissions.await_args.kwargs["permissions"]
        assert permissions.can_send_messages is False


class TestLLMClassifier:
    @pytest.mark.asyncio
    async def test_delegates_to_parser(self):
        batch = [CollectedMessage("1", "u1", "Dana Levi", 0.0)]
        with patch("rosterbot.adapters.llm_classifier.classify_messages", AsyncMock(return_value=[])) as mock:
            assert await LLMClassifier().classify(batch) == []
        mock.assert_awaited_once_with(batch)

    @pytest.mark.asyncio
    async def test_admin_command(self):
        with patch("rosterbot.adapters.llm_classifier.parse_admin_command", AsyncMock(return_value=ShowRoster())):
            assert await LLMClassifier().classify_admin_command("show", []) == ShowRoster()
