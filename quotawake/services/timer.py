"""
Cancellable single-shot timer.

Wraps an APScheduler BackgroundScheduler holding at most one date-triggered
job. Arming replaces any pending job.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from quotawake.core.logging import get_logger
from quotawake.core.timeutil import now_utc

logger = get_logger("timer")


class SingleShotTimer:
    """
    One pending callback at a time.

    The APScheduler backend is started lazily on first arm().
    """

    def __init__(self, job_id: str = "usage-monitor", timezone: str = "UTC"):
        self.job_id = job_id
        self.timezone = timezone
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def scheduler(self) -> BackgroundScheduler:
        """Lazy-initialize scheduler."""
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone=self.timezone)
        return self._scheduler

    def arm(self, delay: timedelta, callback: Callable[[], None]) -> datetime:
        """
        Schedule callback to run once after delay.

        Returns:
            The planned run time (UTC)
        """
        run_at = now_utc() + delay
        if not self.scheduler.running:
            self.scheduler.start()

        self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_at),
            id=self.job_id,
            name=self.job_id,
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )
        logger.debug(f"Armed {self.job_id} for {run_at.isoformat()}")
        return run_at

    def cancel(self) -> bool:
        """
        Drop the pending callback.

        Returns:
            True if a callback was pending
        """
        if self._scheduler is None or not self._scheduler.running:
            return False
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            return False
        logger.debug(f"Cancelled {self.job_id}")
        return True

    @property
    def is_armed(self) -> bool:
        if self._scheduler is None or not self._scheduler.running:
            return False
        return self._scheduler.get_job(self.job_id) is not None

    @property
    def next_run_time(self) -> Optional[datetime]:
        if not self.is_armed:
            return None
        job = self._scheduler.get_job(self.job_id)
        return job.next_run_time if job else None

    def shutdown(self) -> None:
        """Stop the backend. A later arm() starts a fresh one."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Timer backend stopped")
        self._scheduler = None
