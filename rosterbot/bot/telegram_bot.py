"""
Roster Bot — Telegram Bot.

Telegram is the transport for all three audiences: the players chat
(free-text registrations), the admin chat (roster management commands)
and an optional test chat (dry runs against a copy of the roster).

Player messages are never acted on one by one. They are buffered by the
collector and applied in batches, either by the lifecycle jobs or by the
debounce timer started here.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Coroutine

from telegram import Message, MessageEntity, Update
from telegram.error import NetworkError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from rosterbot.config import settings
from rosterbot.core.admin import accepts_commands, execute_admin_command
from rosterbot.core.collector import MessageCollector
from rosterbot.core.context import RosterContext
from rosterbot.core.parser import OverrideRoster
from rosterbot.core.registration import flush_and_apply, promotion_notice
from rosterbot.core.sandbox import SandboxSession
from rosterbot.core.scheduler import reconcile_on_startup, setup_lifecycle_jobs
from rosterbot.core.week import WeeklyCalendar
from rosterbot.data.models import BotControlState

logger = logging.getLogger(__name__)

SLEEP_PATTERN = re.compile(r"\b(sleep|go to sleep|לישון|תישן)\b", re.IGNORECASE)
WAKE_PATTERN = re.compile(r"\b(wake|wake up|תתעורר|קום)\b", re.IGNORECASE)
_NUMBERED_LINE = re.compile(r"^\s*\d{1,2}\.", re.MULTILINE)
OVERRIDE_MIN_LINES = 3


def _ctx(context: ContextTypes.DEFAULT_TYPE) -> RosterContext:
    return context.bot_data["ctx"]


def _now(ctx: RosterContext) -> datetime:
    return datetime.now(ctx.calendar.tz)


def looks_like_roster(text: str) -> bool:
    """A pasted roster: at least a few numbered lines."""
    return len(_NUMBERED_LINE.findall(text or "")) >= OVERRIDE_MIN_LINES


def mentions_bot(message: Message, bot_id: int, bot_username: str | None) -> bool:
    """True if the message tags the bot or replies to one of its posts."""
    reply = message.reply_to_message
    if reply is not None and reply.from_user is not None and reply.from_user.id == bot_id:
        return True
    if not bot_username:
        return False
    handle = f"@{bot_username}".lower()
    mentions = message.parse_entities([MessageEntity.MENTION])
    return any(text.lower() == handle for text in mentions.values())


def mentioned_user_ids(message: Message, bot_id: int) -> list[str]:
    """Identities referenced by the message: tagged users, then the reply target."""
    ids: list[str] = []
    for entity in message.parse_entities([MessageEntity.TEXT_MENTION]):
        if entity.user is not None and entity.user.id != bot_id:
            ids.append(str(entity.user.id))
    reply = message.reply_to_message
    if reply is not None and reply.from_user is not None and reply.from_user.id != bot_id:
        ids.append(str(reply.from_user.id))
    return ids


# ---------------------------------------------------------------------------
# Security: admin-only decorator
# ---------------------------------------------------------------------------


def admins_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from non-admins.

    Nothing is sent back: the admin chat must not answer strangers.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or not _ctx(context).store.is_admin(str(user.id)):
            uid = user.id if user else "unknown"
            logger.warning("Non-admin command attempt from user_id=%s", uid)
            return
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Players chat
# ---------------------------------------------------------------------------


async def _debounce_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Quiet period elapsed: flush whatever was collected."""
    try:
        await flush_and_apply(_ctx(context))
    except Exception as exc:
        logger.error("Debounced flush failed: %s", exc)


async def _handle_admin_shortcut(
    message: Message, sender_id: str, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Sleep, wake and pasted-roster override, addressed to the bot by an admin."""
    ctx = _ctx(context)
    text = message.text or ""

    if looks_like_roster(text):
        async with ctx.flush_lock:
            result = execute_admin_command(
                ctx.store, OverrideRoster(raw_text=text), sender_id, ctx.event_name,
                ctx.calendar.close_minutes,
            )
        if result.success:
            await ctx.poster.post(result.text)
        else:
            await message.reply_text(result.text)
        return

    if SLEEP_PATTERN.search(text):
        ctx.store.save_bot_control(BotControlState(sleeping=True))
        ctx.collector.debounce.cancel()
        logger.info("Bot put to sleep by %s", sender_id)
        await message.reply_text("😴 Going to sleep. Registrations are paused.")
    elif WAKE_PATTERN.search(text):
        ctx.store.save_bot_control(BotControlState(sleeping=False))
        logger.info("Bot woken up by %s", sender_id)
        await message.reply_text("☀️ I'm awake. Registrations are back on.")


async def handle_players_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Buffer a players-chat message and (re)start the debounce timer."""
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None or not message.text or user.is_bot:
        return

    ctx = _ctx(context)
    sender_id = str(user.id)

    if mentions_bot(message, context.bot.id, context.bot.username) and ctx.store.is_admin(sender_id):
        await _handle_admin_shortcut(message, sender_id, context)
        return

    if ctx.store.load_bot_control().sleeping:
        return
    if not ctx.store.load_roster().registration_open:
        return

    ctx.collector.collect(str(message.message_id), sender_id, message.text)

    # The burst flush owns the buffer right after opening.
    if ctx.calendar.in_burst_guard(_now(ctx)):
        return
    ctx.collector.debounce.start(context.job_queue, ctx.debounce_seconds, _debounce_job)


def _collector_for(chat_id: int, context: ContextTypes.DEFAULT_TYPE) -> MessageCollector | None:
    """The buffer fed by *chat_id*, if that chat feeds one."""
    ctx = _ctx(context)
    if chat_id == ctx.players_chat_id:
        return ctx.collector
    sandbox: SandboxSession | None = context.bot_data.get("sandbox")
    if sandbox is not None and chat_id == sandbox.chat_id:
        return sandbox.collector
    return None


async def handle_edited_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Keep a still-buffered message in sync with its edited text."""
    message = update.edited_message
    if message is None or not message.text:
        return

    collector = _collector_for(message.chat_id, context)
    if collector is None:
        return
    if not collector.edit(str(message.message_id), message.text):
        logger.debug("Edit of message %s ignored: no longer buffered", message.message_id)


async def cmd_retract(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/retract as a reply to your own buffered message withdraws it."""
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None:
        return
    target = message.reply_to_message
    if target is None or target.from_user is None or target.from_user.id != user.id:
        return

    collector = _collector_for(message.chat_id, context)
    if collector is not None and collector.delete(str(target.message_id)):
        logger.info("Message %s retracted by %s", target.message_id, user.id)


# ---------------------------------------------------------------------------
# Admin chat
# ---------------------------------------------------------------------------


@admins_only
async def handle_admin_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Classify a free-text admin command addressed to the bot and run it."""
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None or not message.text:
        return
    if not mentions_bot(message, context.bot.id, context.bot.username):
        return

    ctx = _ctx(context)
    sender_id = str(user.id)
    if not accepts_commands(ctx.store, sender_id, _now(ctx), ctx.calendar):
        await message.reply_text("Admin commands are paused while registration is running ⏸️")
        return

    try:
        command = await ctx.classifier.classify_admin_command(
            message.text, mentioned_user_ids(message, context.bot.id),
        )
    except Exception as exc:
        logger.error("Admin classifier error: %s", exc)
        command = None

    if command is None:
        await message.reply_text(
            "I didn't understand that command. Try 'set warmup 20:15', "
            "'laundry Dana Levi' or 'show the list'."
        )
        return

    async with ctx.flush_lock:
        result = execute_admin_command(
            ctx.store, command, sender_id, ctx.event_name, ctx.calendar.close_minutes,
        )
    await message.reply_text(result.text)

    if not result.success:
        return

    notice = promotion_notice(result.promoted)
    if notice is not None:
        text, mentions = notice
        await ctx.messenger.send_message(ctx.players_chat_id, text, mentions)


# ---------------------------------------------------------------------------
# Test chat
# ---------------------------------------------------------------------------


async def _sandbox_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    sandbox: SandboxSession = context.bot_data["sandbox"]
    ctx = _ctx(context)
    try:
        report = await sandbox.dry_run(ctx.store, ctx.classifier)
        if report:
            await ctx.messenger.send_message(sandbox.chat_id, report)
    except Exception as exc:
        logger.error("[TEST] dry run failed: %s", exc)


async def handle_test_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Buffer a test-chat message; the first one starts the dry-run timer."""
    message = update.effective_message
    user = update.effective_user
    sandbox: SandboxSession | None = context.bot_data.get("sandbox")
    if sandbox is None or message is None or user is None or not message.text:
        return

    sandbox.collector.collect(str(message.message_id), str(user.id), message.text)
    if sandbox.collector.debounce.start_if_idle(context.job_queue, sandbox.delay_seconds, _sandbox_job):
        logger.info("[TEST] dry run scheduled in %ds", sandbox.delay_seconds)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Transport hiccups are logged; anything else stops the process."""
    if isinstance(context.error, NetworkError):
        logger.warning("Telegram network error: %s", context.error)
        return
    logger.error("Unhandled error, shutting down: %s", context.error, exc_info=context.error)
    context.application.stop_running()


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


async def _post_init(app: Application) -> None:
    """Rebuild timers lost to a restart."""
    ctx: RosterContext = app.bot_data["ctx"]
    if reconcile_on_startup(ctx, app.job_queue, _now(ctx)):
        logger.info("Restored close timers after restart")

    buffered = ctx.collector.pending()
    if buffered and ctx.store.load_roster().registration_open:
        ctx.collector.debounce.start(app.job_queue, ctx.debounce_seconds, _debounce_job)
        logger.info("Resuming %d buffered messages after restart", len(buffered))


def build_app(
    store=None,
    classifier=None,
    messenger=None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: RosterStore. Defaults to one on settings.DATABASE_PATH.
        classifier: ClassifierPort implementation. Defaults to LLMClassifier.
        messenger: MessagingPort implementation. Defaults to TelegramMessenger
                   (created from the bot instance after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).post_init(_post_init).build()

    if store is None:
        from rosterbot.data.db import RosterStore
        store = RosterStore()

    if classifier is None:
        from rosterbot.adapters.llm_classifier import LLMClassifier
        classifier = LLMClassifier()

    if messenger is None:
        from rosterbot.adapters.telegram_messenger import TelegramMessenger
        messenger = TelegramMessenger(app.bot)

    ctx = RosterContext(
        store=store,
        classifier=classifier,
        messenger=messenger,
        admin_chat_id=settings.ADMIN_CHAT_ID,
        players_chat_id=settings.PLAYERS_CHAT_ID,
        calendar=WeeklyCalendar.from_settings(settings),
        event_name=settings.EVENT_NAME,
        debounce_seconds=settings.DEBOUNCE_SECONDS,
    )
    app.bot_data["ctx"] = ctx

    players = filters.Chat(chat_id=settings.PLAYERS_CHAT_ID)
    admins = filters.Chat(chat_id=settings.ADMIN_CHAT_ID)
    retract_chats = players
    _text = filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND

    app.add_handler(MessageHandler(_text & players, handle_players_message))
    app.add_handler(MessageHandler(_text & admins, handle_admin_message))

    if settings.TEST_CHAT_ID is not None:
        app.bot_data["sandbox"] = SandboxSession(settings.TEST_CHAT_ID, settings.SANDBOX_DELAY_SECONDS)
        test_chat = filters.Chat(chat_id=settings.TEST_CHAT_ID)
        retract_chats = players | test_chat
        app.add_handler(MessageHandler(_text & test_chat, handle_test_message))
        logger.info("Test chat %s enabled for dry runs", settings.TEST_CHAT_ID)

    app.add_handler(CommandHandler("retract", cmd_retract, filters=retract_chats))
    app.add_handler(MessageHandler(
        filters.UpdateType.EDITED_MESSAGE & filters.TEXT, handle_edited_message,
    ))
    app.add_error_handler(on_error)

    setup_lifecycle_jobs(app.job_queue, ctx)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting roster bot for %s...", settings.EVENT_NAME)
    app = build_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
