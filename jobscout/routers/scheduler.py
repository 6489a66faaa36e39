"""API routes for scheduler status."""

import logging

from fastapi import APIRouter, Depends

from jobscout.routers.dependencies import get_scheduler_service
from jobscout.schemas.automation import SchedulerStatusResponse
from jobscout.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Get the current scheduler status."""
    status = scheduler.get_status()
    logger.debug(f"Scheduler status: {status}")
    return SchedulerStatusResponse(**status)
