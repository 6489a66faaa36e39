"""API routers."""

from jobscout.routers.ai import router as ai_router
from jobscout.routers.automations import discovered_jobs_router
from jobscout.routers.automations import router as automations_router
from jobscout.routers.scheduler import router as scheduler_router

__all__ = [
    "ai_router",
    "automations_router",
    "discovered_jobs_router",
    "scheduler_router",
]
