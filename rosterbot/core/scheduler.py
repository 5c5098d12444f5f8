"""
Roster Bot — Lifecycle Scheduler.

The weekly clock of the registration flow: wake up, announce, open, burst
flush, periodic flushes, last-call warning, close, weekly reset and the
post-reset broadcast. Every trigger is evaluated in the configured
timezone.

Lifecycle actions are plain coroutines over a RosterContext; the
`setup_lifecycle_jobs` function binds them to the Telegram job queue.
Event-day warning/close timers are never persisted: they are recomputed
from the stored warmup time, at the event-day trigger and on startup.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from rosterbot.core.registration import flush_and_apply
from rosterbot.core.template import render_roster
from rosterbot.data.models import BotControlState

if TYPE_CHECKING:
    from rosterbot.core.context import RosterContext

logger = logging.getLogger(__name__)

LAST_CALL_TEXT = "Last cancellations? ⏳"


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


async def wake_bot(ctx: RosterContext) -> None:
    ctx.store.save_bot_control(BotControlState(sleeping=False))
    logger.info("Bot woke up for registration day")


async def send_health_signal(ctx: RosterContext) -> None:
    roster = ctx.store.load_roster()
    await ctx.messenger.send_message(
        ctx.admin_chat_id,
        f"✅ Bot is up. Registration for {roster.week_of} opens at "
        f"{ctx.calendar.open.at.strftime('%H:%M')}.",
    )
    logger.info("Sent pre-open health signal")


async def broadcast_roster(ctx: RosterContext) -> None:
    roster = ctx.store.load_roster()
    await ctx.poster.post(render_roster(roster, ctx.event_name))
    logger.info("Posted roster to players chat")


async def open_registration(ctx: RosterContext) -> None:
    roster = ctx.store.load_roster()
    roster.registration_open = True
    ctx.store.save_roster(roster)
    await ctx.messenger.set_chat_open(ctx.players_chat_id, True)
    logger.info("Registration opened")


async def burst_flush(ctx: RosterContext) -> None:
    if not ctx.store.load_roster().registration_open:
        return
    await flush_and_apply(ctx)
    logger.info("Processed opening burst")


async def periodic_flush(ctx: RosterContext, now: datetime) -> None:
    """Cadence flush while open; stays out of the way of the burst flush."""
    if not ctx.store.load_roster().registration_open:
        return
    if ctx.calendar.in_burst_guard(now):
        logger.debug("Periodic flush skipped: inside burst window")
        return
    await flush_and_apply(ctx)


async def send_last_call_warning(ctx: RosterContext) -> None:
    if not ctx.store.load_roster().registration_open:
        return
    await ctx.messenger.send_message(ctx.players_chat_id, LAST_CALL_TEXT)
    logger.info("Sent last cancellations warning")


async def close_registration(ctx: RosterContext) -> None:
    """Final flush, then mark the roster closed and lock the players chat."""
    await flush_and_apply(ctx)
    roster = ctx.store.load_roster()
    roster.registration_open = False
    ctx.store.save_roster(roster)
    ctx.collector.debounce.cancel()
    await ctx.messenger.set_chat_open(ctx.players_chat_id, False)
    await ctx.poster.post(render_roster(roster, ctx.event_name))
    logger.info("Registration closed")


async def weekly_reset(ctx: RosterContext, now: datetime) -> None:
    """The only place last week's roster and registrations are discarded."""
    ctx.collector.debounce.cancel()
    ctx.warning_timer.cancel()
    ctx.close_timer.cancel()
    ctx.store.reset_for_new_week(ctx.calendar.local(now).date())
    ctx.poster.last_message_id = None


async def post_reset_broadcast(ctx: RosterContext) -> None:
    roster = ctx.store.load_roster()
    await ctx.messenger.send_message(ctx.admin_chat_id, render_roster(roster, ctx.event_name))
    logger.info("Posted clean roster to admin chat")


def schedule_close_timers(ctx: RosterContext, job_queue: Any, now: datetime) -> bool:
    """(Re)compute the warning and close timers from the stored warmup time.

    Both timers are replaced, never patched. A close time already in the
    past fires immediately; a past warning is dropped. Returns whether
    anything was scheduled.
    """
    roster = ctx.store.load_roster()
    if not roster.registration_open:
        logger.info("Registration not open; no close timers needed")
        return False

    local_now = ctx.calendar.local(now)
    warning_at, close_at = ctx.calendar.close_timers(local_now.date(), roster.warmup_time)

    ctx.warning_timer.cancel()
    if warning_at > local_now:
        ctx.warning_timer.start(job_queue, warning_at, _guarded(ctx, send_last_call_warning))

    ctx.close_timer.start(
        job_queue,
        close_at if close_at > local_now else 0,
        _guarded(ctx, close_registration),
    )
    logger.info("Close timers set: warning %s, close %s", warning_at, close_at)
    return True


def reconcile_on_startup(ctx: RosterContext, job_queue: Any, now: datetime) -> bool:
    """Rebuild event-day timers after a restart, if the close is still owed."""
    if not ctx.calendar.is_event_day(now):
        return False
    return schedule_close_timers(ctx, job_queue, now)


# ---------------------------------------------------------------------------
# Job queue wiring
# ---------------------------------------------------------------------------


def _guarded(
    ctx: RosterContext, action: Callable[[RosterContext], Awaitable[None]],
) -> Callable[[Any], Awaitable[None]]:
    """Wrap a lifecycle action as a job callback that logs its own failures."""

    async def _callback(_context: Any) -> None:
        try:
            await action(ctx)
        except Exception as exc:
            logger.error("Scheduled job %s failed: %s", action.__name__, exc)

    _callback.__name__ = action.__name__
    return _callback


def setup_lifecycle_jobs(job_queue: Any, ctx: RosterContext) -> None:
    """Register the whole weekly calendar on the Telegram job queue."""
    cal = ctx.calendar

    def daily(trigger, callback, name: str) -> None:
        job_queue.run_daily(
            callback, time=cal.daily_time(trigger), days=(trigger.ptb_day,), name=name,
        )

    async def _periodic(_context: Any) -> None:
        try:
            await periodic_flush(ctx, datetime.now(cal.tz))
        except Exception as exc:
            logger.error("Periodic flush failed: %s", exc)

    async def _event_day(context: Any) -> None:
        try:
            schedule_close_timers(ctx, context.job_queue, datetime.now(cal.tz))
        except Exception as exc:
            logger.error("Failed to compute close timers: %s", exc)

    async def _reset(_context: Any) -> None:
        try:
            await weekly_reset(ctx, datetime.now(cal.tz))
        except Exception as exc:
            logger.error("Failed to reset for new week: %s", exc)

    daily(cal.wake, _guarded(ctx, wake_bot), "wake")
    daily(cal.health_signal, _guarded(ctx, send_health_signal), "health_signal")
    daily(cal.broadcast, _guarded(ctx, broadcast_roster), "broadcast_roster")
    daily(cal.open, _guarded(ctx, open_registration), "open_registration")
    daily(cal.burst, _guarded(ctx, burst_flush), "burst_flush")
    daily(cal.event_day_check, _event_day, "event_day_timers")
    daily(cal.reset, _reset, "weekly_reset")
    daily(cal.post_reset, _guarded(ctx, post_reset_broadcast), "post_reset_broadcast")

    job_queue.run_repeating(
        _periodic, interval=timedelta(minutes=cal.periodic_minutes), name="periodic_flush",
    )
    logger.info("Lifecycle scheduler initialized (%s)", cal.timezone)
