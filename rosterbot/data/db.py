"""
Roster Bot — Document Database.

Whole-document, last-write-wins storage on top of SQLite. Every piece of
state (roster, weekly registrations, admins, sleep switch) is one JSON
document under a fixed key, loaded and saved as a unit.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from rosterbot.core.helpers import normalize_user_id, shift_time, upcoming_weekday
from rosterbot.data.models import AdminEntry, BotControlState, Roster, WeeklyState

logger = logging.getLogger(__name__)

ROSTER_KEY = "roster"
WEEKLY_KEY = "weekly"
ADMINS_KEY = "admins"
BOT_CONTROL_KEY = "bot_control"


class DocumentStore:
    """SQLite-backed key → JSON document storage."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from rosterbot.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the documents table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    key         TEXT PRIMARY KEY,
                    body        TEXT NOT NULL,
                    updated_at  TEXT NOT NULL
                )
            """)
        logger.debug("Documents table initialized at %s", self._db_path)

    def load(self, key: str) -> Any | None:
        """Return the stored document, or None if it is missing or unreadable.

        Absence is an expected outcome, not an error: the caller decides
        which default document to substitute.
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["body"])
        except json.JSONDecodeError as exc:
            logger.warning("Document '%s' is corrupt, using default: %s", key, exc)
            return None

    def save(self, key: str, value: Any) -> None:
        """Replace the whole document stored under *key*."""
        body = json.dumps(value, ensure_ascii=False)
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO documents (key, body, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET body = excluded.body,
                                               updated_at = excluded.updated_at
                """,
                (key, body, now),
            )
        logger.debug("Document '%s' saved (%d bytes)", key, len(body))


class RosterStore:
    """Typed access to the bot's documents, with well-defined defaults."""

    def __init__(
        self,
        documents: DocumentStore | None = None,
        initial_admin_id: str | None = None,
        initial_admin_name: str | None = None,
    ) -> None:
        from rosterbot.config import settings

        self._docs = documents if documents is not None else DocumentStore()
        self._initial_admin_id = (
            settings.INITIAL_ADMIN_ID if initial_admin_id is None else initial_admin_id
        )
        self._initial_admin_name = (
            settings.INITIAL_ADMIN_NAME if initial_admin_name is None else initial_admin_name
        )
        self._warmup_time = settings.DEFAULT_WARMUP_TIME
        self._start_time = settings.DEFAULT_START_TIME
        self._close_offset = settings.CLOSE_MINUTES_BEFORE_WARMUP

    # --- Roster ---

    def new_roster(self, today: date | None = None) -> Roster:
        """A fresh, closed roster for the next event day."""
        today = today or date.today()
        return Roster(
            week_of=upcoming_weekday(today).isoformat(),
            warmup_time=self._warmup_time,
            start_time=self._start_time,
            commitment_time=shift_time(self._warmup_time, -self._close_offset),
        )

    def load_roster(self) -> Roster:
        data = self._docs.load(ROSTER_KEY)
        if not isinstance(data, dict):
            return self.new_roster()
        return Roster.from_dict(data)

    def save_roster(self, roster: Roster) -> None:
        self._docs.save(ROSTER_KEY, roster.to_dict())

    # --- Weekly registrations + message buffer ---

    def load_weekly(self) -> WeeklyState:
        data = self._docs.load(WEEKLY_KEY)
        if not isinstance(data, dict):
            return WeeklyState()
        return WeeklyState.from_dict(data)

    def save_weekly(self, weekly: WeeklyState) -> None:
        self._docs.save(WEEKLY_KEY, weekly.to_dict())

    # --- Admins ---

    def load_admins(self) -> list[AdminEntry]:
        """Return the admin list, seeding it from configuration on first run."""
        data = self._docs.load(ADMINS_KEY)
        admins = [
            AdminEntry(user_id=normalize_user_id(a.get("user_id")), name=str(a.get("name", "")))
            for a in (data if isinstance(data, list) else [])
            if isinstance(a, dict) and a.get("user_id")
        ]
        if not admins and self._initial_admin_id:
            admins = [
                AdminEntry(
                    user_id=normalize_user_id(self._initial_admin_id),
                    name=self._initial_admin_name or "Admin",
                )
            ]
            self.save_admins(admins)
            logger.info("Seeded initial admin %s", admins[0].user_id)
        return admins

    def save_admins(self, admins: list[AdminEntry]) -> None:
        self._docs.save(ADMINS_KEY, [asdict(a) for a in admins])

    def find_admin(self, user_id: str) -> AdminEntry | None:
        normalized = normalize_user_id(user_id)
        for admin in self.load_admins():
            if admin.user_id == normalized:
                return admin
        return None

    def is_admin(self, user_id: str) -> bool:
        return self.find_admin(user_id) is not None

    # --- Bot control ---

    def load_bot_control(self) -> BotControlState:
        data = self._docs.load(BOT_CONTROL_KEY)
        if not isinstance(data, dict):
            return BotControlState()
        return BotControlState(sleeping=bool(data.get("sleeping", True)))

    def save_bot_control(self, state: BotControlState) -> None:
        self._docs.save(BOT_CONTROL_KEY, asdict(state))

    # --- Weekly reset ---

    def reset_for_new_week(self, today: date | None = None) -> Roster:
        """Discard last week's roster and registrations, and wake the bot."""
        roster = self.new_roster(today)
        self.save_roster(roster)
        self.save_weekly(WeeklyState())
        self.save_bot_control(BotControlState(sleeping=False))
        logger.info("State reset for week of %s", roster.week_of)
        return roster
