"""Reminder scheduler - the clock that drives dispatch cycles."""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from roydadyar.channels.registry import Channels
from roydadyar.db.models import CycleReport
from roydadyar.db.repository import Repository
from roydadyar.engine.dispatcher import run_cycle
from roydadyar.utils.constants import DEFAULT_DAILY_HOUR, DEFAULT_TIMEZONE, FREQUENT_CHECK_HOURS
from roydadyar.utils.exceptions import CycleInProgress
from roydadyar.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Runs dispatch cycles on two cadences: once a day and every six hours.

    Both cadences and the manual trigger share one lock, so at most one cycle
    runs at a time. A tick that arrives while a cycle is running is dropped;
    the ledger makes the next tick pick up anything it would have sent.
    """

    def __init__(
        self,
        repo: Repository,
        channels: Channels,
        timezone: str = DEFAULT_TIMEZONE,
        daily_hour: int = DEFAULT_DAILY_HOUR,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repo = repo
        self.channels = channels
        self.timezone = timezone
        self.daily_hour = daily_hour
        self.clock = clock
        self.last_report: CycleReport | None = None
        self.last_error: str | None = None
        self._lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_started(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def is_running(self) -> bool:
        """True while a cycle is in progress."""
        return self._lock.locked()

    def start(self) -> None:
        """Register both cadences and start the timer. Must run inside the event loop."""
        if self.is_started:
            logger.info("Scheduler already running, skipping start")
            return

        scheduler = AsyncIOScheduler(timezone=self.timezone)
        scheduler.add_job(
            self.tick,
            CronTrigger(hour=self.daily_hour, minute=0, timezone=self.timezone),
            kwargs={"cadence": "daily"},
            id="daily_notification_check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            self.tick,
            CronTrigger(hour=FREQUENT_CHECK_HOURS, minute=0, timezone=self.timezone),
            kwargs={"cadence": "6-hour"},
            id="frequent_notification_check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            f"Notification scheduler started (daily at {self.daily_hour:02d}:00 and "
            f"every 6 hours, {self.timezone})"
        )

    def stop(self) -> None:
        """Stop the timer. A cycle already in progress is left to finish."""
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Notification scheduler stopped")

    async def tick(self, cadence: str = "manual") -> CycleReport | None:
        """Timer callback. Never raises.

        Returns:
            The cycle report, or None if the cycle was skipped or failed
        """
        if self._lock.locked():
            logger.warning(f"Skipping {cadence} notification check: previous cycle still running")
            return None

        async with self._lock:
            logger.info(f"Starting {cadence} notification check...")
            try:
                report = await run_cycle(self.repo, self.channels, self.timezone, self.clock)
            except Exception as e:
                logger.exception(f"Error in notification scheduler: {e}")
                self.last_error = str(e)
                return None

            self.last_report = report
            self.last_error = None
            return report

    async def run_once(self) -> CycleReport:
        """Run one cycle now and return its report.

        Raises:
            CycleInProgress: if another cycle is running
        """
        if self._lock.locked():
            raise CycleInProgress("A notification check is already running")

        async with self._lock:
            logger.info("Manual notification check triggered")
            report = await run_cycle(self.repo, self.channels, self.timezone, self.clock)
            self.last_report = report
            self.last_error = None
            return report
