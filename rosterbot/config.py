"""
Roster Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from rosterbot/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Chats: admins, players, optional sandbox
    ADMIN_CHAT_ID: int = 0
    PLAYERS_CHAT_ID: int = 0
    TEST_CHAT_ID: int | None = None

    # Administrator seed (first run only)
    INITIAL_ADMIN_ID: str = ""
    INITIAL_ADMIN_NAME: str = ""

    # LLM: provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "anthropic"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str
    LLM_TIMEOUT_SECONDS: float = 30.0

    # SQLite document store
    DATABASE_PATH: str = "data/roster.db"

    TIMEZONE: str = "Asia/Jerusalem"
    LOG_LEVEL: str = "INFO"

    # Roster
    EVENT_NAME: str = "Saturday Football"
    DEFAULT_WARMUP_TIME: str = "20:30"
    DEFAULT_START_TIME: str = "21:00"

    # Flush cadence and event-day offsets
    BURST_FLUSH_DELAY_MINUTES: int = 3
    PERIODIC_FLUSH_MINUTES: int = 60
    BURST_GUARD_MINUTES: int = 10
    DEBOUNCE_SECONDS: int = 120
    WARNING_MINUTES_BEFORE_WARMUP: int = 20
    CLOSE_MINUTES_BEFORE_WARMUP: int = 15
    SANDBOX_DELAY_SECONDS: int = 60

    @field_validator("TEST_CHAT_ID", mode="before")
    @classmethod
    def parse_optional_chat(cls, v: str | int | None) -> int | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return int(v)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ADMIN_CHAT_ID=os.getenv("ADMIN_CHAT_ID", "0"),
        PLAYERS_CHAT_ID=os.getenv("PLAYERS_CHAT_ID", "0"),
        TEST_CHAT_ID=os.getenv("TEST_CHAT_ID"),
        INITIAL_ADMIN_ID=os.getenv("INITIAL_ADMIN_ID", ""),
        INITIAL_ADMIN_NAME=os.getenv("INITIAL_ADMIN_NAME", ""),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "anthropic"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "30"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/roster.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Jerusalem"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        EVENT_NAME=os.getenv("EVENT_NAME", "Saturday Football"),
        DEFAULT_WARMUP_TIME=os.getenv("DEFAULT_WARMUP_TIME", "20:30"),
        DEFAULT_START_TIME=os.getenv("DEFAULT_START_TIME", "21:00"),
        BURST_FLUSH_DELAY_MINUTES=os.getenv("BURST_FLUSH_DELAY_MINUTES", "3"),
        PERIODIC_FLUSH_MINUTES=os.getenv("PERIODIC_FLUSH_MINUTES", "60"),
        BURST_GUARD_MINUTES=os.getenv("BURST_GUARD_MINUTES", "10"),
        DEBOUNCE_SECONDS=os.getenv("DEBOUNCE_SECONDS", "120"),
        WARNING_MINUTES_BEFORE_WARMUP=os.getenv("WARNING_MINUTES_BEFORE_WARMUP", "20"),
        CLOSE_MINUTES_BEFORE_WARMUP=os.getenv("CLOSE_MINUTES_BEFORE_WARMUP", "15"),
        SANDBOX_DELAY_SECONDS=os.getenv("SANDBOX_DELAY_SECONDS", "60"),
    )


# Singleton, imported by all other modules as:
#   from rosterbot.config import settings
settings = _load_settings()
