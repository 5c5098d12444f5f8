"""Cancel-and-replace one-shot timers on top of the Telegram job queue.

Each PendingTimer owns at most one scheduled job. Starting it again drops
the previous job first, so retriggering never stacks callbacks. A job
that has fired forgets itself before its callback runs; the job queue
keeps no handle to a one-shot job once it has run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Coroutine

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)

JobCallback = Callable[[Any], Coroutine[Any, Any, None]]


class PendingTimer:
    """A named, replaceable one-shot job."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._job: Any | None = None

    @property
    def pending(self) -> bool:
        return self._job is not None and not self._job.removed

    def start(
        self,
        job_queue: Any,
        when: float | timedelta | datetime,
        callback: JobCallback,
    ) -> None:
        """Schedule *callback* at *when*, replacing any job still pending."""
        self.cancel()

        async def _fire(context: Any) -> None:
            if self._job is not None and self._job is context.job:
                self._job = None
            await callback(context)

        self._job = job_queue.run_once(_fire, when=when, name=self.name)
        logger.debug("Timer '%s' scheduled for %s", self.name, when)

    def start_if_idle(
        self,
        job_queue: Any,
        when: float | timedelta | datetime,
        callback: JobCallback,
    ) -> bool:
        """Schedule only when nothing is pending; returns whether it did."""
        if self.pending:
            return False
        self.start(job_queue, when, callback)
        return True

    def cancel(self) -> None:
        job, self._job = self._job, None
        if job is None or job.removed:
            return
        try:
            job.schedule_removal()
        except JobLookupError:
            # Fired but its callback has not started yet.
            logger.debug("Timer '%s' already fired", self.name)
            return
        logger.debug("Timer '%s' cancelled", self.name)
