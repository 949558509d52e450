"""
Reconciliation Scheduler using APScheduler.

Runs the order status check on a cron schedule (every 4 hours by default).
Each firing hands the handler the next fire time as next_run.
"""

from typing import Any, Awaitable, Callable, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from upvotes_api.config.constants import SCHEDULE_CRON
from upvotes_api.core.logger import setup_logger

logger = setup_logger(__name__)

JOB_ID = "scheduled_status_check"

RunJob = Callable[[Any], Awaitable[Tuple[int, dict]]]


class ReconciliationScheduler:
    """Manages the scheduled status check job using APScheduler."""

    def __init__(self, run_job: RunJob, cron: str = SCHEDULE_CRON, timezone: str = "UTC"):
        """
        Args:
            run_job: Coroutine taking a trigger body, returning (status_code, payload)
            cron: Five-field crontab expression
            timezone: Timezone the cron expression is evaluated in
        """
        self.run_job = run_job
        self.cron = cron
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self._started = False

    async def start(self, run_on_startup: bool = False):
        """
        Start scheduler with the status check job.

        Args:
            run_on_startup: Whether to run one status check immediately
        """
        if self._started:
            logger.warning("Scheduler already started")
            return

        self.scheduler.add_job(
            self._run_scheduled_check,
            CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id=JOB_ID,
            name="Order Status Reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Added scheduled status check job (cron '{self.cron}' {self.timezone})")

        self.scheduler.start()
        self._started = True
        logger.info("Reconciliation scheduler started")

        if run_on_startup:
            logger.info("Running startup status check...")
            await self._run_scheduled_check()

    async def stop(self):
        """Gracefully stop scheduler."""
        if not self._started:
            return

        self.scheduler.shutdown(wait=True)
        self._started = False
        logger.info("Reconciliation scheduler stopped")

    async def _run_scheduled_check(self):
        """Wrapper for the scheduled check with error handling."""
        try:
            next_run = self.get_next_scheduled_run()
            status_code, payload = await self.run_job({"next_run": next_run})
            if status_code == 200:
                logger.info(
                    f"Scheduled status check completed: {payload.get('updated')} updated, "
                    f"{payload.get('errors')} errors"
                )
            else:
                logger.warning(f"Scheduled status check returned {status_code}: {payload.get('error')}")
        except Exception as e:
            logger.error(f"Scheduled status check failed: {e}", exc_info=True)

    def get_next_scheduled_run(self) -> Optional[str]:
        """Get the next scheduled run time as an ISO 8601 string."""
        job = self.scheduler.get_job(JOB_ID)
        next_run_time = getattr(job, "next_run_time", None) if job else None
        if next_run_time:
            return next_run_time.isoformat()
        return None

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self.scheduler.running
