"""JobScout - scheduled job discovery with AI resume matching."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobscout.core.config import settings
from jobscout.core.storage import init_models
from jobscout.routers import (
    ai_router,
    automations_router,
    discovered_jobs_router,
    scheduler_router,
)
from jobscout.services.container import build_container

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Initializing application...")
    await init_models()
    services = build_container()
    app.state.services = services

    if settings.scheduler_enabled:
        logger.info("Starting scheduler...")
        await services.scheduler.start()
        logger.info("Scheduler started")

    logger.info("Application initialized")

    yield

    logger.info("Shutting down...")
    await services.scheduler.stop()
    logger.info("Shutdown complete")


app = FastAPI(
    title="JobScout",
    description="Scheduled job discovery with AI resume matching",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(automations_router)
app.include_router(discovered_jobs_router)
app.include_router(scheduler_router)
app.include_router(ai_router)


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "message": "JobScout API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "active",
        "scheduler_enabled": settings.scheduler_enabled,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    services = getattr(app.state, "services", None)
    return {
        "status": "healthy",
        "service": "jobscout",
        "scheduler": services.scheduler.get_status() if services else None,
    }
