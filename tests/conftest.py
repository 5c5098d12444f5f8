"""Shared test fixtures and configuration.

Sets up fake environment variables so rosterbot.config doesn't sys.exit(),
and provides common fixtures like a temp-file roster store.
"""

import os

# Patch env vars BEFORE any rosterbot imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ADMIN_CHAT_ID", "-100")
os.environ.setdefault("PLAYERS_CHAT_ID", "-200")
os.environ.setdefault("INITIAL_ADMIN_ID", "9000")
os.environ.setdefault("INITIAL_ADMIN_NAME", "Admin Person")
os.environ.setdefault("DATABASE_PATH", ":memory:")

import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_roster.db")


@pytest.fixture
def documents(tmp_db_path):
    """Return a DocumentStore backed by a temp file."""
    from rosterbot.data.db import DocumentStore
    return DocumentStore(db_path=tmp_db_path)


@pytest.fixture
def store(documents):
    """Return a RosterStore with one seeded admin (9000)."""
    from rosterbot.data.db import RosterStore
    return RosterStore(documents, initial_admin_id="9000", initial_admin_name="Admin Person")


@pytest.fixture
def roster():
    """An empty, open roster."""
    from rosterbot.data.models import Roster
    return Roster(
        week_of="2026-10-24",
        warmup_time="20:30",
        start_time="21:00",
        commitment_time="20:15",
        registration_open=True,
    )


@pytest.fixture
def messenger():
    """A MessagingPort mock whose sends return increasing message ids."""
    mock = MagicMock()
    mock.send_message = AsyncMock(side_effect=range(1, 1000))
    mock.delete_message = AsyncMock()
    mock.set_chat_open = AsyncMock()
    return mock


@pytest.fixture
def classifier():
    mock = MagicMock()
    mock.classify = AsyncMock(return_value=[])
    mock.classify_admin_command = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def ctx(store, classifier, messenger):
    """A RosterContext wired to the temp store and mocked ports."""
    from rosterbot.core.context import RosterContext
    return RosterContext(
        store=store,
        classifier=classifier,
        messenger=messenger,
        admin_chat_id=-100,
        players_chat_id=-200,
        event_name="Saturday Football",
    )
