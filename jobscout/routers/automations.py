"""API routes for automation runs and their logs."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from jobscout.core.config import settings
from jobscout.core.exceptions import (
    AutomationBusyError,
    AutomationNotFoundError,
    DiscoveredJobNotFoundError,
    RateLimitExceededError,
    ResumeMissingError,
    not_found_exception,
    too_many_requests_response,
)
from jobscout.core.log_store import RunLogStore
from jobscout.models.discovery import DiscoveryStatus
from jobscout.routers.dependencies import (
    get_current_user_id,
    get_log_store,
    get_scheduler_service,
    get_session,
)
from jobscout.routers.streaming import log_snapshots
from jobscout.schemas.automation import (
    DiscoveredJobResponse,
    ManualRunResponse,
    RunHistoryItem,
    RunHistoryResponse,
    RunSummary,
)
from jobscout.services import discovery_service
from jobscout.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automations", tags=["automations"])
discovered_jobs_router = APIRouter(prefix="/discovered-jobs", tags=["discovered-jobs"])


@router.post("/{automation_id}/run", response_model=ManualRunResponse)
async def run_automation(
    automation_id: int,
    user_id: str = Depends(get_current_user_id),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Run an automation now and return the finished run."""
    try:
        run = await scheduler.trigger_manual_run(user_id, automation_id)
    except RateLimitExceededError as e:
        logger.info(f"Manual run limit reached for user {user_id}")
        return too_many_requests_response(e.message, e.retry_after_seconds)
    except AutomationNotFoundError:
        raise not_found_exception("Automation not found")
    except ResumeMissingError:
        raise HTTPException(
            status_code=400,
            detail="Resume is missing. Please edit the automation and select a resume.",
        )
    except AutomationBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except SQLAlchemyError as e:
        logger.error(f"Database error running automation {automation_id}: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return ManualRunResponse(success=True, run=RunSummary.from_run(run))


@router.get("/{automation_id}/runs", response_model=RunHistoryResponse)
async def get_run_history(
    automation_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Get the run history of an automation, newest first."""
    try:
        runs, total = await scheduler.get_run_history(user_id, automation_id, limit)
    except AutomationNotFoundError:
        raise not_found_exception("Automation not found")
    except SQLAlchemyError as e:
        logger.error(f"Database error getting run history: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return RunHistoryResponse(
        runs=[RunHistoryItem.from_run(run) for run in runs],
        total_count=total,
    )


@router.get("/{automation_id}/logs")
async def stream_logs(
    automation_id: int,
    user_id: str = Depends(get_current_user_id),
    scheduler: SchedulerService = Depends(get_scheduler_service),
    log_store: RunLogStore = Depends(get_log_store),
):
    """Stream log snapshots of the current or latest run via Server-Sent Events."""
    try:
        await scheduler.get_owned_automation(user_id, automation_id)
    except AutomationNotFoundError:
        raise not_found_exception("Automation not found")
    except SQLAlchemyError as e:
        logger.error(f"Database error opening log stream: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return EventSourceResponse(
        log_snapshots(
            log_store,
            automation_id,
            interval=settings.log_stream_interval_seconds,
            max_seconds=settings.log_stream_max_seconds,
        )
    )


@router.post("/{automation_id}/logs/clear")
async def clear_logs(
    automation_id: int,
    user_id: str = Depends(get_current_user_id),
    scheduler: SchedulerService = Depends(get_scheduler_service),
    log_store: RunLogStore = Depends(get_log_store),
):
    """Reset the in-memory log buffer of an automation."""
    try:
        await scheduler.get_owned_automation(user_id, automation_id)
    except AutomationNotFoundError:
        raise not_found_exception("Automation not found")
    except SQLAlchemyError as e:
        logger.error(f"Database error clearing logs: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    log_store.clear_logs(automation_id)
    return {"success": True}


async def _set_discovery_status(
    session: AsyncSession, user_id: str, job_id: int, status: DiscoveryStatus
) -> DiscoveredJobResponse:
    try:
        job = await discovery_service.update_discovery_status(
            session, user_id, job_id, status
        )
    except DiscoveredJobNotFoundError:
        raise not_found_exception("Discovered job not found")
    except SQLAlchemyError as e:
        logger.error(f"Database error updating discovered job {job_id}: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    return DiscoveredJobResponse.from_job(job)


@discovered_jobs_router.post("/{job_id}/accept", response_model=DiscoveredJobResponse)
async def accept_discovered_job(
    job_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Accept a discovered job."""
    return await _set_discovery_status(session, user_id, job_id, DiscoveryStatus.ACCEPTED)


@discovered_jobs_router.post("/{job_id}/dismiss", response_model=DiscoveredJobResponse)
async def dismiss_discovered_job(
    job_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Dismiss a discovered job."""
    return await _set_discovery_status(session, user_id, job_id, DiscoveryStatus.DISMISSED)
