"""
Roster Bot — LLM Parser.

Turns free-text chat messages (Hebrew/English) into typed registration
intents and admin commands using the configured LLM provider.

The model is treated as an untrusted oracle: every response is re-validated
here, and anything malformed degrades to "no intents" / "no command".
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal, Union

from pydantic import BaseModel, ValidationError

from rosterbot.core.helpers import clean_name, is_full_name, normalize_user_id, parse_time_string
from rosterbot.core.llm import complete
from rosterbot.data.models import CollectedMessage
from rosterbot.ports.classifier_port import ClassifierError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Registration intents
# ---------------------------------------------------------------------------


class Intent(BaseModel):
    """One registration action claimed for one sender.

    JSON example:
    {"kind": "register", "name": "Dana Levi", "user_id": "1001"}
    """
    kind: Literal["register", "cancel", "cancel_waiting"]
    name: str = ""
    user_id: str


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


class RegisterSelf(BaseModel):
    kind: Literal["register_self"] = "register_self"


class RemoveSelf(BaseModel):
    kind: Literal["remove_self"] = "remove_self"


class SetEquipment(BaseModel):
    kind: Literal["set_equipment"] = "set_equipment"
    name: str


class SetLaundry(BaseModel):
    kind: Literal["set_laundry"] = "set_laundry"
    name: str


class SetWarmupTime(BaseModel):
    kind: Literal["set_warmup_time"] = "set_warmup_time"
    time: str  # HH:MM


class SetStartTime(BaseModel):
    kind: Literal["set_start_time"] = "set_start_time"
    time: str  # HH:MM


class ShowRoster(BaseModel):
    kind: Literal["show_roster"] = "show_roster"


class AddAdmin(BaseModel):
    kind: Literal["add_admin"] = "add_admin"
    name: str
    user_id: str


class RemoveAdmin(BaseModel):
    kind: Literal["remove_admin"] = "remove_admin"
    user_id: str


class RemoveParticipant(BaseModel):
    """Remove by name, by duty role, or by both (name must carry the role)."""
    kind: Literal["remove_participant"] = "remove_participant"
    name: str | None = None
    role: Literal["equipment", "laundry"] | None = None


class OverrideRoster(BaseModel):
    kind: Literal["override_roster"] = "override_roster"
    raw_text: str


AdminCommand = Union[
    RegisterSelf, RemoveSelf, SetEquipment, SetLaundry, SetWarmupTime,
    SetStartTime, ShowRoster, AddAdmin, RemoveAdmin, RemoveParticipant,
    OverrideRoster,
]


# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

_REGISTRATION_PROMPT = """\
You are a strict parser for group-chat messages about registering to a weekly game.
Each input line looks like: [<user_id>]: <message text>

SECURITY RULES:
- A sender can register exactly ONE name. It may be their own name or someone else's.
- A sender can only cancel THEIR OWN registration. Cancellation needs no name.
- "cancel <someone>" means the SENDER cancels their own registration. Never emit an action
  for a user_id that did not send the message.
- One action per sender. Ignore repeated messages from the same sender.

Rules:
- Registration requires a full name (first + last, at least 2 words).
  Typical phrases: "I'm in", "count me in", "אני בפנים", "תרשום אותי", or just a full name.
- Cancellation phrases: "I can't make it", "take me off", "מבטל", "לא בא", "תוריד אותי".
- "cancel waiting" / "מבטל המתנה" / "מבטל מהמתנה" means leaving the WAITING list only:
  use type "cancel_waiting". Every other cancellation is type "cancel".
- Ignore anything unrelated to registration.
- If no full name can be determined for a registration, skip that message.

Return ONLY a JSON array. Each element:
{"type": "register" | "cancel" | "cancel_waiting", "name": "<full name or empty>", "user_id": "<sender user_id>"}

Examples:
[{"type": "register", "name": "Dana Levi", "user_id": "1001"}]
[{"type": "cancel", "name": "", "user_id": "1001"}]

If there are no actions, return exactly: []
No markdown, no explanation.
"""

_ADMIN_PROMPT = """\
You are a strict command classifier for an admin of a weekly game roster bot.
Classify the admin's message into ONE of these commands, or null:

1. "register_self" — the admin registers themselves ("add me", "תרשום אותי").
2. "remove_self" — the admin removes themselves ("take me off", "תוריד אותי").
3. "set_equipment" — give equipment duty to a named player (full name required).
4. "set_laundry" — give laundry duty to a named player (full name required).
5. "set_warmup_time" — change warmup time (HH:MM).
6. "set_start_time" — change start time (HH:MM).
7. "show_roster" — any request to see / share / send the current list.
8. "add_admin" — make a mentioned person an admin (full name required).
9. "remove_admin" — revoke admin rights of a mentioned person.
10. "remove_participant" — remove a player by name, or by role ("equipment" / "laundry"), or both.
11. "override_roster" — the message contains a full pasted numbered list that should replace the roster.

Return ONLY a JSON object:
{"type": <command or null>, "name": <full name or null>, "role": "equipment" | "laundry" | null, "time": "HH:MM" | null}

If nothing matches, return {"type": null}. Do not chat, do not answer questions.
"""


# ---------------------------------------------------------------------------
# Response cleaning
# ---------------------------------------------------------------------------

_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def _extract_json(raw_text: str, pattern: re.Pattern[str]) -> str | None:
    cleaned = _clean_llm_response(raw_text)
    match = pattern.search(cleaned)
    return match.group(0) if match else None


# ---------------------------------------------------------------------------
# Registration classification
# ---------------------------------------------------------------------------


def _format_batch(batch: list[CollectedMessage]) -> str:
    return "\n".join(f"[{m.sender_id}]: {m.text}" for m in batch)


def _instantiate_intent(data: dict) -> Intent | None:
    """Validate a single raw action dict, or None if it is unusable."""
    try:
        intent = Intent(
            kind=data.get("type") or data.get("kind"),
            name=clean_name(data.get("name") or ""),
            user_id=normalize_user_id(data.get("user_id") or data.get("userId") or ""),
        )
    except ValidationError as exc:
        logger.warning("Dropping malformed intent %s: %s", data, exc.errors()[0]["msg"])
        return None

    if not intent.user_id:
        logger.warning("Dropping intent without user_id: %s", data)
        return None
    if intent.kind == "register" and not is_full_name(intent.name):
        logger.info("Dropping registration without a full name: %s", data)
        return None
    return intent


async def classify_messages(batch: list[CollectedMessage]) -> list[Intent]:
    """Classify a flushed batch into registration intents.

    Never raises: provider errors, timeouts and garbled output all
    degrade to an empty list.
    """
    if not batch:
        return []

    raw_text = ""
    try:
        raw_text = await complete(
            system=_REGISTRATION_PROMPT,
            user_message=f"Parse these messages:\n\n{_format_batch(batch)}",
            max_tokens=1024,
        )
        logger.debug("LLM raw response: %s", raw_text)

        payload = _extract_json(raw_text, _ARRAY_RE)
        if payload is None:
            logger.warning("No JSON array in classifier response: %s", raw_text[:200])
            return []

        data = json.loads(payload)
        if not isinstance(data, list):
            logger.warning("Classifier returned unexpected type: %s", type(data).__name__)
            return []

        intents: list[Intent] = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Skipping non-dict item in array: %s", item)
                continue
            intent = _instantiate_intent(item)
            if intent is not None:
                intents.append(intent)
        logger.info("Classified %d messages into %d intents", len(batch), len(intents))
        return intents

    except json.JSONDecodeError as exc:
        logger.error("Failed to parse classifier response as JSON: %s — raw: '%s'", exc, raw_text)
        return []
    except ClassifierError as exc:
        logger.error("Classifier unavailable, discarding batch: %s", exc)
        return []
    except Exception as exc:
        logger.error("Registration classification failed: %s", exc)
        return []


# ---------------------------------------------------------------------------
# Admin command classification
# ---------------------------------------------------------------------------


def _build_admin_command(
    result: dict, text: str, mentioned_ids: list[str],
) -> AdminCommand | None:
    """Map the raw classifier object onto a validated AdminCommand."""
    kind = result.get("type")
    name = clean_name(result.get("name") or "")
    time_value = parse_time_string(result.get("time"))
    role = result.get("role")
    mentioned = [normalize_user_id(m) for m in mentioned_ids if normalize_user_id(m)]

    if kind == "register_self":
        return RegisterSelf()
    if kind == "remove_self":
        return RemoveSelf()
    if kind == "set_equipment":
        return SetEquipment(name=name) if is_full_name(name) else None
    if kind == "set_laundry":
        return SetLaundry(name=name) if is_full_name(name) else None
    if kind == "set_warmup_time":
        return SetWarmupTime(time=time_value) if time_value else None
    if kind == "set_start_time":
        return SetStartTime(time=time_value) if time_value else None
    if kind == "show_roster":
        return ShowRoster()
    if kind == "add_admin":
        if not mentioned or not is_full_name(name):
            return None
        return AddAdmin(name=name, user_id=mentioned[0])
    if kind == "remove_admin":
        return RemoveAdmin(user_id=mentioned[0]) if mentioned else None
    if kind == "remove_participant":
        role = role if role in ("equipment", "laundry") else None
        if is_full_name(name):
            return RemoveParticipant(name=name, role=role)
        if role is not None:
            return RemoveParticipant(role=role)
        return None
    if kind == "override_roster":
        return OverrideRoster(raw_text=text)

    if kind is not None:
        logger.warning("LLM returned unknown admin command: '%s'", kind)
    return None


async def parse_admin_command(text: str, mentioned_ids: list[str]) -> AdminCommand | None:
    """Classify an admin's free-text message into a command, or None."""
    raw = ""
    try:
        raw = await complete(
            system=_ADMIN_PROMPT,
            user_message=f'Classify this admin command:\n"{text}"',
            max_tokens=256,
        )
        payload = _extract_json(raw, _OBJECT_RE)
        if payload is None:
            logger.debug("No JSON object in admin classifier response: %s", raw)
            return None
        result = json.loads(payload)
        if not isinstance(result, dict):
            return None
        return _build_admin_command(result, text, mentioned_ids)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse admin classifier response: %s — raw: '%s'", exc, raw)
        return None
    except ClassifierError as exc:
        logger.error("Classifier unavailable for admin command: %s", exc)
        return None
    except Exception as exc:
        logger.error("Admin command classification failed: %s", exc)
        return None
