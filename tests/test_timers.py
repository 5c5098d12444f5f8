"""Tests for rosterbot.core.timers — cancel-and-replace one-shot jobs."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.jobstores.base import JobLookupError
from telegram.ext import ApplicationBuilder

from rosterbot.core.timers import PendingTimer


def _job_queue():
    """A job queue whose run_once returns a fresh, pending job each call.

    Like the real queue, a job that has run stays `removed=False` and can no
    longer be removed.
    """
    queue = MagicMock()

    def _run_once(callback, when, name):
        job = MagicMock()
        job.removed = False
        job.callback = callback
        job.fired = False

        def _remove():
            if job.fired:
                raise JobLookupError(name)
            job.removed = True

        job.schedule_removal.side_effect = _remove
        return job

    queue.run_once.side_effect = _run_once
    return queue


async def _fire(job):
    job.fired = True
    await job.callback(MagicMock(job=job))


class TestPendingTimer:
    def test_start_schedules_named_job(self):
        queue = _job_queue()
        timer = PendingTimer("debounce_flush")

        timer.start(queue, 120, AsyncMock())

        assert queue.run_once.call_args.kwargs == {"when": 120, "name": "debounce_flush"}
        assert timer.pending

    def test_restart_replaces_previous_job(self):
        queue = _job_queue()
        timer = PendingTimer("debounce_flush")
        timer.start(queue, 120, AsyncMock())
        first = timer._job

        timer.start(queue, 120, AsyncMock())

        first.schedule_removal.assert_called_once()
        assert queue.run_once.call_count == 2
        assert timer.pending

    def test_cancel(self):
        queue = _job_queue()
        timer = PendingTimer("close")
        timer.start(queue, 60, AsyncMock())
        timer.cancel()
        assert not timer.pending

    def test_cancel_when_idle_is_safe(self):
        PendingTimer("close").cancel()

    def test_start_if_idle(self):
        queue = _job_queue()
        timer = PendingTimer("sandbox_flush")
        assert timer.start_if_idle(queue, 60, AsyncMock()) is True
        assert timer.start_if_idle(queue, 60, AsyncMock()) is False
        assert queue.run_once.call_count == 1


class TestFiredTimer:
    @pytest.mark.asyncio
    async def test_fired_job_runs_callback_and_is_forgotten(self):
        queue = _job_queue()
        timer = PendingTimer("debounce_flush")
        callback = AsyncMock()
        timer.start(queue, 120, callback)
        job = timer._job

        await _fire(job)

        callback.assert_awaited_once()
        assert not timer.pending

    @pytest.mark.asyncio
    async def test_restart_after_fire_does_not_touch_old_job(self):
        queue = _job_queue()
        timer = PendingTimer("debounce_flush")
        timer.start(queue, 120, AsyncMock())
        first = timer._job
        await _fire(first)

        timer.start(queue, 120, AsyncMock())
        timer.cancel()

        first.schedule_removal.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_if_idle_after_fire(self):
        queue = _job_queue()
        timer = PendingTimer("sandbox_flush")
        timer.start_if_idle(queue, 60, AsyncMock())
        await _fire(timer._job)

        assert timer.start_if_idle(queue, 60, AsyncMock()) is True

    @pytest.mark.asyncio
    async def test_stale_fire_keeps_newer_job(self):
        queue = _job_queue()
        timer = PendingTimer("debounce_flush")
        timer.start(queue, 120, AsyncMock())
        first = timer._job
        timer.start(queue, 120, AsyncMock())

        await _fire(first)

        assert timer.pending

    def test_cancel_tolerates_job_already_gone(self):
        queue = _job_queue()
        timer = PendingTimer("close")
        timer.start(queue, 60, AsyncMock())
        timer._job.fired = True

        timer.cancel()

        assert not timer.pending

    @pytest.mark.asyncio
    async def test_restart_after_fire_on_real_job_queue(self):
        app = ApplicationBuilder().token("123456:TEST").build()
        job_queue = app.job_queue
        await job_queue.start()
        fired = asyncio.Event()

        async def callback(_context):
            fired.set()

        timer = PendingTimer("debounce_flush")
        try:
            timer.start(job_queue, 0.05, callback)
            await asyncio.wait_for(fired.wait(), timeout=5)
            assert not timer.pending

            timer.start(job_queue, 60, callback)
            assert timer.pending
            timer.cancel()
            assert not timer.pending
        finally:
            await job_queue.stop(wait=False)
