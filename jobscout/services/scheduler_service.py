"""Scheduler service for automated job discovery."""

import logging
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from jobscout.core.config import settings
from jobscout.core.exceptions import (
    ApplicationError,
    AutomationNotFoundError,
    RateLimitExceededError,
    ResumeMissingError,
)
from jobscout.core.rate_limit import UserRateLimiter
from jobscout.core.storage import utc_now
from jobscout.models.automation import (
    RESUME_MISSING,
    Automation,
    AutomationRun,
    AutomationStatus,
    RunStatus,
)
from jobscout.models.resume import Resume
from jobscout.services.automation_runner import AutomationRunner, advance_schedule

logger = logging.getLogger(__name__)

SCAN_JOB_ID = "automation_scan"
STALE_RUN_MESSAGE = "Process restarted while run was in progress"


def _window_label(seconds: float) -> str:
    if seconds == 3600:
        return "hour"
    if seconds % 60 == 0:
        return f"{int(seconds // 60)} minutes"
    return f"{seconds:g} seconds"


class SchedulerService:
    """Periodically runs every due automation, one after another."""

    def __init__(
        self,
        session_factory: sessionmaker,
        runner: AutomationRunner,
        manual_run_limiter: UserRateLimiter,
        cron: str | None = None,
        timezone: str | None = None,
    ):
        self.session_factory = session_factory
        self.runner = runner
        self.manual_run_limiter = manual_run_limiter
        self.cron = cron or settings.scheduler_cron
        self.timezone = timezone or settings.scheduler_timezone
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def scheduler(self) -> AsyncIOScheduler | None:
        return self._scheduler

    async def start(self):
        """Start the scheduler. Starting a running scheduler is a no-op."""
        if self._scheduler is not None and self._scheduler.running:
            logger.info("Scheduler already running")
            return

        await self._cleanup_stale_runs()

        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.add_job(
            self.run_due_automations,
            trigger=CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id=SCAN_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self._scheduler.start()
        logger.info(f"Scheduler started with cron '{self.cron}' ({self.timezone})")

    async def stop(self):
        """Stop the scheduler and drop the handle so it can be started again."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Scheduler stopped")

    async def _cleanup_stale_runs(self):
        """Fail runs left in 'running' by a previous process."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(AutomationRun)
                    .where(AutomationRun.status == RunStatus.RUNNING)
                    .values(
                        status=RunStatus.FAILED,
                        error_message=STALE_RUN_MESSAGE,
                        completed_at=utc_now(),
                    )
                )
                await session.commit()
                if result.rowcount:
                    logger.warning(f"Marked {result.rowcount} stale running runs as failed")
        except SQLAlchemyError as e:
            logger.error(f"Failed to cleanup stale runs: {e}")

    async def _due_automations(self) -> list[Automation]:
        async with self.session_factory() as session:
            query = (
                select(Automation)
                .where(
                    Automation.status == AutomationStatus.ACTIVE,
                    Automation.next_run_at.is_not(None),
                    Automation.next_run_at <= utc_now(),
                )
                .order_by(Automation.next_run_at)
            )
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _resume_exists(self, automation: Automation) -> bool:
        if automation.resume_id is None:
            return False
        async with self.session_factory() as session:
            resume = await session.get(Resume, automation.resume_id)
        return resume is not None and resume.user_id == automation.user_id

    async def _record_missing_resume(self, automation: Automation) -> None:
        """Store a failed run without searching and push the schedule forward."""
        now = utc_now()
        async with self.session_factory() as session:
            run = AutomationRun(automation_id=automation.id, status=RunStatus.RUNNING)
            session.add(run)
            run.finalize(RunStatus.FAILED, error_message=RESUME_MISSING, completed_at=now)
            await advance_schedule(session, automation.id, now)
            await session.commit()

    async def run_due_automations(self) -> int:
        """Run every due automation sequentially.

        Errors never escape, so a failed scan is simply retried on the next
        tick.

        Returns:
            Number of automations that were dispatched
        """
        try:
            due = await self._due_automations()
        except SQLAlchemyError as e:
            logger.error(f"Failed to scan for due automations: {e}")
            return 0

        if not due:
            logger.debug("No automations due")
            return 0

        logger.info(f"Found {len(due)} due automations")
        dispatched = 0
        for automation in due:
            try:
                if not await self._resume_exists(automation):
                    logger.warning(
                        f"Automation {automation.id} skipped: resume {automation.resume_id} missing"
                    )
                    await self._record_missing_resume(automation)
                    continue

                run = await self.runner.run(automation.id)
                dispatched += 1
                logger.info(f"Automation {automation.id} finished with status {run.status}")
            except ApplicationError as e:
                logger.warning(f"Automation {automation.id} skipped: {e.message}")
            except SQLAlchemyError as e:
                logger.error(f"Database error running automation {automation.id}: {e}")
            except Exception:
                logger.exception(f"Unexpected error running automation {automation.id}")
        return dispatched

    async def trigger_manual_run(self, user_id: str, automation_id: int) -> AutomationRun:
        """Run an automation now on behalf of its owner.

        Raises:
            RateLimitExceededError: the user used up the manual run window
            AutomationNotFoundError: unknown automation or owned by another user
            ResumeMissingError: the linked resume no longer exists
            AutomationBusyError: the automation is already running
        """
        decision = self.manual_run_limiter.check(user_id)
        if not decision.allowed:
            raise RateLimitExceededError(
                f"Rate limit exceeded. Maximum {self.manual_run_limiter.max_requests} "
                f"manual runs per {_window_label(self.manual_run_limiter.window_seconds)}.",
                retry_after=decision.retry_after,
            )

        automation = await self.get_owned_automation(user_id, automation_id)
        if not await self._resume_exists(automation):
            raise ResumeMissingError(automation_id, automation.resume_id)

        logger.info(f"Manual run of automation {automation_id} requested by {user_id}")
        return await self.runner.run(automation_id)

    async def get_run_history(
        self, user_id: str, automation_id: int, limit: int = 20
    ) -> tuple[list[AutomationRun], int]:
        """Newest runs first, with the total number of runs."""
        await self.get_owned_automation(user_id, automation_id)
        async with self.session_factory() as session:
            query = (
                select(AutomationRun)
                .where(AutomationRun.automation_id == automation_id)
                .order_by(AutomationRun.started_at.desc(), AutomationRun.id.desc())
                .limit(limit)
            )
            result = await session.execute(query)
            runs = list(result.scalars().all())

            total = await session.scalar(
                select(func.count())
                .select_from(AutomationRun)
                .where(AutomationRun.automation_id == automation_id)
            )
            return runs, total or 0

    async def get_owned_automation(self, user_id: str, automation_id: int) -> Automation:
        async with self.session_factory() as session:
            automation = await session.get(Automation, automation_id)
        if automation is None or automation.user_id != user_id:
            raise AutomationNotFoundError(automation_id)
        return automation

    def get_status(self) -> dict:
        """Get scheduler status."""
        if self._scheduler is None:
            return {"scheduler_running": False, "jobs_count": 0, "next_scheduled_run": None}

        jobs = self._scheduler.get_jobs()
        next_run = None
        next_runs = [j.next_run_time for j in jobs if j.next_run_time]
        if next_runs:
            next_run = min(next_runs).astimezone(ZoneInfo(self.timezone))

        return {
            "scheduler_running": self._scheduler.running,
            "jobs_count": len(jobs),
            "next_scheduled_run": next_run,
        }
