"""End-to-end execution of one automation run.

A run searches the automation's job board, drops postings the user already
knows, scores the rest against the linked resume and saves those at or above
the match threshold. Every step is reported to the ``RunLogStore`` so the
run can be watched while it is in progress.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from jobscout.core.config import settings
from jobscout.core.exceptions import (
    AIUnavailableError,
    ApplicationError,
    AutomationBusyError,
    AutomationNotFoundError,
)
from jobscout.core.log_store import LogLevel, RunLogStore
from jobscout.core.rate_limit import TokenBucketRateLimiter
from jobscout.core.storage import utc_now
from jobscout.models.automation import (
    RESUME_MISSING,
    Automation,
    AutomationRun,
    RunStatus,
)
from jobscout.models.resume import Resume
from jobscout.services import discovery_service
from jobscout.services.job_boards.base import JobBoardClient, JobBoardError, RawPosting
from jobscout.services.job_boards.registry import get_job_board_client
from jobscout.services.matching.scorer import MatchScorer
from jobscout.services.matching.text import posting_to_text
from jobscout.utils.dedup import Deduplicator, normalize_url
from jobscout.utils.schedule import calculate_next_run_at

logger = logging.getLogger(__name__)

_STATUS_LOG_LEVEL: dict[RunStatus, LogLevel] = {
    RunStatus.COMPLETED: "success",
    RunStatus.COMPLETED_WITH_ERRORS: "warning",
    RunStatus.FAILED: "error",
    RunStatus.BLOCKED: "error",
    RunStatus.RATE_LIMITED: "warning",
}


@dataclass
class RunCounters:
    jobs_searched: int = 0
    jobs_deduplicated: int = 0
    jobs_processed: int = 0
    jobs_matched: int = 0
    jobs_saved: int = 0


@dataclass
class RunOutcome:
    """Terminal state of a run, decided before it is written."""

    status: RunStatus | None = None
    error_message: str | None = None
    blocked_reason: str | None = None
    had_errors: bool = False
    counters: RunCounters = field(default_factory=RunCounters)

    def fail(self, status: RunStatus, message: str | None = None, blocked: str | None = None):
        self.status = status
        self.error_message = message
        self.blocked_reason = blocked

    @property
    def final_status(self) -> RunStatus:
        if self.status is not None:
            return self.status
        return RunStatus.COMPLETED_WITH_ERRORS if self.had_errors else RunStatus.COMPLETED


def search_error_outcome(error: JobBoardError, outcome: RunOutcome) -> None:
    """Map a job board failure on the first page to a run status."""
    if error.kind == "blocked":
        outcome.fail(RunStatus.BLOCKED, blocked=error.message)
    elif error.kind == "rate_limited":
        retry_after = getattr(error, "retry_after", None)
        suffix = f" - retry after {retry_after}s" if retry_after else ""
        outcome.fail(RunStatus.RATE_LIMITED, f"Rate limited{suffix}")
    else:
        outcome.fail(RunStatus.FAILED, error.message)


def resume_to_text(resume: Resume) -> str:
    return f"# {resume.title}\n\n{resume.content}".strip()


class AutomationRunner:
    """Runs automations, at most one run per automation at a time."""

    def __init__(
        self,
        session_factory: sessionmaker,
        log_store: RunLogStore,
        rate_limiter: TokenBucketRateLimiter,
        scorer: MatchScorer,
        job_board_factory: Callable[[str], JobBoardClient] = get_job_board_client,
        max_jobs_per_run: int | None = None,
        max_search_pages: int | None = None,
    ):
        self.session_factory = session_factory
        self.log_store = log_store
        self.rate_limiter = rate_limiter
        self.scorer = scorer
        self.job_board_factory = job_board_factory
        self.max_jobs_per_run = max_jobs_per_run or settings.automation_max_jobs_per_run
        self.max_search_pages = max_search_pages or settings.automation_max_search_pages
        self.deduplicator = Deduplicator()
        self._locks: dict[int, asyncio.Lock] = {}

    def is_running(self, automation_id: int) -> bool:
        lock = self._locks.get(automation_id)
        return bool(lock and lock.locked())

    async def run(self, automation_id: int) -> AutomationRun:
        """Execute one run and return the finalized run record.

        Raises:
            AutomationBusyError: a run for this automation is in progress
            AutomationNotFoundError: the automation does not exist
        """
        lock = self._locks.setdefault(automation_id, asyncio.Lock())
        if lock.locked():
            raise AutomationBusyError(automation_id)
        try:
            async with lock:
                return await self._run(automation_id)
        finally:
            self._locks.pop(automation_id, None)

    def _log(
        self,
        automation_id: int,
        level: LogLevel,
        message: str,
        metadata: dict | None = None,
    ) -> None:
        self.log_store.log(automation_id, level, message, metadata)

    async def _run(self, automation_id: int) -> AutomationRun:
        async with self.session_factory() as session:
            automation = await session.get(Automation, automation_id)
            if automation is None:
                raise AutomationNotFoundError(automation_id)
            run = AutomationRun(automation_id=automation.id, status=RunStatus.RUNNING)
            session.add(run)
            await session.commit()

        logger.info(f"Automation {automation_id}: started run {run.id}")
        self.log_store.start_run(automation_id)
        self._log(automation_id, "info", f"Created automation run with ID: {run.id}")

        outcome = RunOutcome()
        try:
            await self._execute(automation, outcome)
        except Exception as e:
            logger.exception(f"Automation {automation_id}: run {run.id} crashed")
            self._log(automation_id, "error", f"Automation run failed: {e}")
            outcome.fail(RunStatus.FAILED, str(e) or type(e).__name__)

        try:
            return await self._finalize(automation, run.id, outcome)
        finally:
            self.log_store.end_run(automation_id)

    async def _load_resume(self, automation: Automation) -> Resume | None:
        if automation.resume_id is None:
            return None
        async with self.session_factory() as session:
            resume = await session.get(Resume, automation.resume_id)
        if resume is None or resume.user_id != automation.user_id:
            return None
        return resume

    async def _execute(self, automation: Automation, outcome: RunOutcome) -> None:
        automation_id = automation.id
        counters = outcome.counters

        self._log(automation_id, "info", "Fetching resume data...")
        resume = await self._load_resume(automation)
        if resume is None:
            self._log(automation_id, "error", "Resume not found or missing")
            outcome.fail(RunStatus.FAILED, RESUME_MISSING)
            return
        self._log(automation_id, "success", f"Resume loaded: {resume.title}")

        postings = await self._search(automation, outcome)
        if outcome.status is not None:
            return
        counters.jobs_searched = len(postings)
        if not postings:
            self._log(automation_id, "warning", "No jobs found matching search criteria")
            return

        self._log(automation_id, "info", "Checking for duplicate jobs...")
        async with self.session_factory() as session:
            stored = await discovery_service.known_job_urls(session, automation.user_id)
        known = self.deduplicator.known_url_set(stored)
        fresh = self._unique(self.deduplicator.filter(postings, known))
        counters.jobs_deduplicated = len(postings) - len(fresh)
        self._log(
            automation_id,
            "info",
            f"Filtered to {len(fresh)} new jobs "
            f"({counters.jobs_deduplicated} duplicates removed)",
            {"newJobs": len(fresh), "jobsDeduplicated": counters.jobs_deduplicated},
        )

        batch = fresh[: self.max_jobs_per_run]
        if len(batch) < len(fresh):
            self._log(
                automation_id,
                "info",
                f"Processing first {len(batch)} of {len(fresh)} new jobs "
                f"(limit: {self.max_jobs_per_run})",
            )

        await self._score_and_save(automation, resume, batch, outcome)

    @staticmethod
    def _unique(postings: list[RawPosting]) -> list[RawPosting]:
        """Keep the first posting for every normalized URL in a batch."""
        seen: set[str] = set()
        unique = []
        for posting in postings:
            url = normalize_url(posting.url)
            if url in seen:
                continue
            seen.add(url)
            unique.append(posting)
        return unique

    async def _search(self, automation: Automation, outcome: RunOutcome) -> list[RawPosting]:
        automation_id = automation.id
        location = automation.location or "anywhere"
        self._log(
            automation_id,
            "info",
            f'Searching for jobs: "{automation.keywords}" in {location}',
        )

        try:
            client = self.job_board_factory(automation.job_board)
        except ValueError as e:
            self._log(automation_id, "error", str(e))
            outcome.fail(RunStatus.FAILED, str(e))
            return []

        postings: list[RawPosting] = []
        async with client:
            for page in range(1, self.max_search_pages + 1):
                await self.rate_limiter.acquire()
                try:
                    result = await client.search(
                        automation.keywords, automation.location, page
                    )
                except JobBoardError as e:
                    self._log(
                        automation_id,
                        "error",
                        f"Search failed: {e.kind} - {e.message}",
                        {"page": page},
                    )
                    if page == 1:
                        search_error_outcome(e, outcome)
                        return []
                    outcome.had_errors = True
                    break

                postings.extend(result.postings)
                if not result.has_more:
                    break

        self._log(
            automation_id,
            "success",
            f"Found {len(postings)} jobs from {client.name or automation.job_board}",
            {"jobsSearched": len(postings)},
        )
        return postings

    async def _score_and_save(
        self,
        automation: Automation,
        resume: Resume,
        batch: list[RawPosting],
        outcome: RunOutcome,
    ) -> None:
        automation_id = automation.id
        counters = outcome.counters
        resume_text = resume_to_text(resume)

        for posting in batch:
            counters.jobs_processed += 1
            self._log(
                automation_id, "info", f"Processing: {posting.title} at {posting.company}"
            )

            try:
                result = await self.scorer.score(resume_text, posting_to_text(posting))
            except AIUnavailableError as e:
                message = f"AI provider is not available: {e.message}"
                self._log(automation_id, "error", message)
                outcome.fail(RunStatus.FAILED, message)
                return
            except ApplicationError as e:
                self._log(automation_id, "warning", f"AI matching failed: {e.message}")
                outcome.had_errors = True
                continue
            except Exception as e:
                logger.exception(
                    f"Automation {automation_id}: scoring {posting.url} crashed"
                )
                self._log(automation_id, "warning", f"AI matching failed: {e}")
                outcome.had_errors = True
                continue

            self._log(
                automation_id,
                "info",
                f"Match score: {result.score}% (threshold: {automation.match_threshold}%)",
                {"score": result.score, "threshold": automation.match_threshold},
            )
            if result.score < automation.match_threshold:
                self._log(automation_id, "info", "Job skipped - score below threshold")
                continue

            counters.jobs_matched += 1
            self._log(
                automation_id,
                "success",
                "Job matched! Saving to database...",
                {"title": posting.title, "company": posting.company},
            )

            try:
                async with self.session_factory() as session:
                    await discovery_service.save_discovered_job(
                        session,
                        user_id=automation.user_id,
                        automation_id=automation_id,
                        posting=posting,
                        result=result,
                        resume_id=resume.id,
                        resume_title=resume.title,
                    )
                    await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Automation {automation_id}: failed to save job: {e}")
                self._log(automation_id, "error", f"Failed to save job: {e}")
                outcome.had_errors = True
                continue

            counters.jobs_saved += 1
            self._log(
                automation_id,
                "success",
                f"Job saved successfully ({counters.jobs_saved} total)",
                {"jobsSaved": counters.jobs_saved},
            )

    async def _finalize(
        self, automation: Automation, run_id: int, outcome: RunOutcome
    ) -> AutomationRun:
        """Write the terminal status and move the automation's next run forward."""
        status = outcome.final_status
        counters = outcome.counters
        self._log(
            automation.id,
            _STATUS_LOG_LEVEL[status],
            f"Run finished with status: {status}",
            {"status": str(status), **asdict(counters)},
        )

        now = utc_now()
        async with self.session_factory() as session:
            run = await session.get(AutomationRun, run_id)
            run.jobs_searched = counters.jobs_searched
            run.jobs_deduplicated = counters.jobs_deduplicated
            run.jobs_processed = counters.jobs_processed
            run.jobs_matched = counters.jobs_matched
            run.jobs_saved = counters.jobs_saved
            run.finalize(
                status,
                error_message=outcome.error_message,
                blocked_reason=outcome.blocked_reason,
                completed_at=now,
            )
            await advance_schedule(session, automation.id, now)
            await session.commit()

        logger.info(
            f"Automation {automation.id}: run {run_id} finished with status {status} "
            f"(searched={counters.jobs_searched}, saved={counters.jobs_saved})"
        )
        return run


async def advance_schedule(
    session: AsyncSession, automation_id: int, now: datetime
) -> None:
    """Record a run attempt and push ``next_run_at`` past it."""
    automation = await session.get(Automation, automation_id)
    if automation is None:
        return
    hour = automation.schedule_hour
    if hour is None:
        hour = settings.scheduler_default_hour
    automation.last_run_at = now
    automation.next_run_at = calculate_next_run_at(hour, now)
