"""Process-wide services, built once at startup."""

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from jobscout.core.config import Settings, settings
from jobscout.core.log_store import RunLogStore
from jobscout.core.rate_limit import TokenBucketRateLimiter, UserRateLimiter
from jobscout.core.storage import async_session
from jobscout.services.automation_runner import AutomationRunner
from jobscout.services.job_boards.base import JobBoardClient
from jobscout.services.job_boards.registry import get_job_board_client
from jobscout.services.llm.base import LLMProvider
from jobscout.services.llm.factory import get_llm_provider
from jobscout.services.matching.scorer import MatchScorer
from jobscout.services.scheduler_service import SchedulerService


@dataclass
class ServiceContainer:
    session_factory: sessionmaker
    log_store: RunLogStore
    job_board_limiter: TokenBucketRateLimiter
    manual_run_limiter: UserRateLimiter
    ai_limiter: UserRateLimiter
    runner: AutomationRunner
    scheduler: SchedulerService


def build_container(
    config: Settings = settings,
    session_factory: sessionmaker = async_session,
    llm_factory: Callable[[], LLMProvider] = get_llm_provider,
    job_board_factory: Callable[[str], JobBoardClient] = get_job_board_client,
) -> ServiceContainer:
    """Wire the services together from configuration."""
    log_store = RunLogStore(
        max_entries=config.log_store_max_entries,
        retention_seconds=config.log_store_retention_seconds,
    )
    job_board_limiter = TokenBucketRateLimiter(
        capacity=config.job_board_bucket_capacity,
        refill_rate_ms=config.job_board_refill_ms,
    )
    manual_run_limiter = UserRateLimiter(
        max_requests=config.manual_run_limit,
        window_seconds=config.manual_run_window_seconds,
    )
    ai_limiter = UserRateLimiter(
        max_requests=config.ai_rate_limit_requests,
        window_seconds=config.ai_rate_limit_window_seconds,
    )
    scorer = MatchScorer(
        config.automation_matching_mode,
        llm_factory,
        overall_timeout=config.ai_overall_timeout_seconds,
        stage_timeout=config.ai_stage_timeout_seconds,
        max_retries=config.ai_stage_max_retries,
    )
    runner = AutomationRunner(
        session_factory,
        log_store,
        job_board_limiter,
        scorer,
        job_board_factory=job_board_factory,
        max_jobs_per_run=config.automation_max_jobs_per_run,
        max_search_pages=config.automation_max_search_pages,
    )
    scheduler = SchedulerService(
        session_factory,
        runner,
        manual_run_limiter,
        cron=config.scheduler_cron,
        timezone=config.scheduler_timezone,
    )
    return ServiceContainer(
        session_factory=session_factory,
        log_store=log_store,
        job_board_limiter=job_board_limiter,
        manual_run_limiter=manual_run_limiter,
        ai_limiter=ai_limiter,
        runner=runner,
        scheduler=scheduler,
    )
