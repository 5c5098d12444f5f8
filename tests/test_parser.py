"""Tests for rosterbot.core.parser — LLM-based intent and command parsing."""

import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from rosterbot.core.parser import (
    AddAdmin,
    Intent,
    OverrideRoster,
    RemoveAdmin,
    RemoveParticipant,
    SetLaundry,
    SetWarmupTime,
    ShowRoster,
    _clean_llm_response,
    _format_batch,
    classify_messages,
    parse_admin_command,
)
from rosterbot.data.models import CollectedMessage
from rosterbot.ports.classifier_port import ClassifierError


def _batch(*items):
    return [CollectedMessage(f"m{i}", sender, text, float(i)) for i, (sender, text) in enumerate(items)]


# ---------------------------------------------------------------------------
# Unit tests for response cleaning
# ---------------------------------------------------------------------------


class TestCleanLlmResponse:
    def test_strips_json_code_block(self):
        raw = '```json\n[{"type": "cancel"}]\n```'
        assert _clean_llm_response(raw) == '[{"type": "cancel"}]'

    def test_strips_whitespace(self):
        assert _clean_llm_response("  []  ") == "[]"

    def test_format_batch(self):
        assert _format_batch(_batch(("1", "Dana Levi"), ("2", "out"))) == "[1]: Dana Levi\n[2]: out"


# ---------------------------------------------------------------------------
# Tests for classify_messages (LLM mocked)
# ---------------------------------------------------------------------------


class TestClassifyMessages:
    @pytest.mark.asyncio
    async def test_register_and_cancel(self):
        llm_response = (
            '[{"type": "register", "name": "Dana Levi", "user_id": "1"},'
            ' {"type": "cancel", "name": "", "user_id": "2"}]'
        )
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value=llm_response)):
            result = await classify_messages(_batch(("1", "Dana Levi"), ("2", "can't make it")))
        assert result == [
            Intent(kind="register", name="Dana Levi", user_id="1"),
            Intent(kind="cancel", name="", user_id="2"),
        ]

    @pytest.mark.asyncio
    async def test_empty_batch_skips_llm(self):
        mock = AsyncMock()
        with patch("rosterbot.core.parser.complete", mock):
            assert await classify_messages([]) == []
        mock.assert_not_called()

    @pytest.mark.asyncio
    async def test_code_fenced_response(self):
        llm_response = '```json\n[{"type": "cancel_waiting", "user_id": "3"}]\n```'
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value=llm_response)):
            result = await classify_messages(_batch(("3", "cancel waiting")))
        assert result[0].kind == "cancel_waiting"

    @pytest.mark.asyncio
    async def test_drops_registration_without_full_name(self):
        llm_response = '[{"type": "register", "name": "Dana", "user_id": "1"}]'
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value=llm_response)):
            assert await classify_messages(_batch(("1", "Dana"))) == []

    @pytest.mark.asyncio
    async def test_drops_unknown_type_and_missing_user(self):
        llm_response = '[{"type": "promote", "user_id": "1"}, {"type": "cancel"}, "junk"]'
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value=llm_response)):
            assert await classify_messages(_batch(("1", "hi"))) == []

    @pytest.mark.asyncio
    async def test_garbled_response(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value="I think Dana is in")):
            assert await classify_messages(_batch(("1", "Dana Levi"))) == []

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value="[{not json}]")):
            assert await classify_messages(_batch(("1", "Dana Levi"))) == []

    @pytest.mark.asyncio
    async def test_provider_error_degrades_to_empty(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(side_effect=RuntimeError("boom"))):
            assert await classify_messages(_batch(("1", "Dana Levi"))) == []

    @pytest.mark.asyncio
    async def test_timeout_degrades_to_empty(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(side_effect=ClassifierError("timeout"))):
            assert await classify_messages(_batch(("1", "Dana Levi"))) == []

    @pytest.mark.asyncio
    async def test_normalizes_user_id(self):
        llm_response = '[{"type": "cancel", "userId": "972:4@s.net"}]'
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value=llm_response)):
            result = await classify_messages(_batch(("972@s.net", "out")))
        assert result[0].user_id == "972@s.net"


# ---------------------------------------------------------------------------
# Tests for parse_admin_command (LLM mocked)
# ---------------------------------------------------------------------------


class TestParseAdminCommand:
    @pytest.mark.asyncio
    async def test_set_warmup(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "set_warmup_time", "time": "20:15"}')):
            command = await parse_admin_command("warmup at 20:15", [])
        assert command == SetWarmupTime(time="20:15")

    @pytest.mark.asyncio
    async def test_invalid_time_rejected(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "set_start_time", "time": "25:99"}')):
            assert await parse_admin_command("start at 25:99", []) is None

    @pytest.mark.asyncio
    async def test_set_laundry_needs_full_name(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "set_laundry", "name": "Dana"}')):
            assert await parse_admin_command("laundry Dana", []) is None
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "set_laundry", "name": "Dana Levi"}')):
            assert await parse_admin_command("laundry Dana Levi", []) == SetLaundry(name="Dana Levi")

    @pytest.mark.asyncio
    async def test_show_roster(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "show_roster"}')):
            assert isinstance(await parse_admin_command("send the list", []), ShowRoster)

    @pytest.mark.asyncio
    async def test_add_admin_uses_mentioned_identity(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "add_admin", "name": "Noa Katz"}')):
            command = await parse_admin_command("make Noa Katz admin", ["555"])
        assert command == AddAdmin(name="Noa Katz", user_id="555")

    @pytest.mark.asyncio
    async def test_add_admin_without_mention_rejected(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "add_admin", "name": "Noa Katz"}')):
            assert await parse_admin_command("make Noa Katz admin", []) is None

    @pytest.mark.asyncio
    async def test_remove_admin(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "remove_admin"}')):
            assert await parse_admin_command("not admin anymore", ["555"]) == RemoveAdmin(user_id="555")

    @pytest.mark.asyncio
    async def test_remove_by_role(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "remove_participant", "role": "laundry"}')):
            command = await parse_admin_command("remove the laundry guy", [])
        assert command == RemoveParticipant(role="laundry")

    @pytest.mark.asyncio
    async def test_override_keeps_raw_text(self):
        text = "1. Dana Levi\n2. Yossi Cohen\n3. Avi Bar"
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": "override_roster"}')):
            assert await parse_admin_command(text, []) == OverrideRoster(raw_text=text)

    @pytest.mark.asyncio
    async def test_null_type(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(return_value='{"type": null}')):
            assert await parse_admin_command("how are you?", []) is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        with patch("rosterbot.core.parser.complete", AsyncMock(side_effect=asyncio.TimeoutError())):
            assert await parse_admin_command("show", []) is None
