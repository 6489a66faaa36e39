"""API routes for collaborative AI resume matching and review."""

import logging
import math
from functools import partial

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from jobscout.core.config import settings
from jobscout.core.exceptions import (
    DiscoveredJobNotFoundError,
    too_many_requests_response,
)
from jobscout.core.rate_limit import UserRateLimiter
from jobscout.models.resume import Resume
from jobscout.routers.dependencies import (
    LLMFactory,
    get_ai_limiter,
    get_current_user_id,
    get_llm_factory,
    get_session,
)
from jobscout.routers.streaming import collaborative_frames
from jobscout.schemas.matching import (
    CollaborativeMatchRequest,
    CollaborativeReviewRequest,
    SelectedModel,
)
from jobscout.services import discovery_service
from jobscout.services.automation_runner import resume_to_text
from jobscout.services.llm.base import LLMProvider
from jobscout.services.matching import (
    ProgressChannel,
    collaborative_job_match,
    collaborative_resume_review,
)
from jobscout.services.matching.text import normalize_whitespace, truncate_for_model

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _orchestrator_options() -> dict:
    return {
        "overall_timeout": settings.ai_overall_timeout_seconds,
        "stage_timeout": settings.ai_stage_timeout_seconds,
        "max_retries": settings.ai_stage_max_retries,
    }


def check_rate_limit(limiter: UserRateLimiter, user_id: str):
    """Return a 429 response when the user is over the AI limit, else None."""
    decision = limiter.check(user_id)
    if decision.allowed:
        return None
    retry_after = max(1, math.ceil(decision.retry_after))
    logger.info(f"AI rate limit reached for user {user_id}")
    return too_many_requests_response(
        f"Rate limit exceeded. Try again in {retry_after} seconds.", retry_after
    )


async def _resume_text(
    session: AsyncSession, user_id: str, resume_id: int | None, inline: str | None
) -> str:
    if inline and inline.strip():
        return normalize_whitespace(inline)
    resume = await session.get(Resume, resume_id)
    if resume is None or resume.user_id != user_id:
        raise HTTPException(status_code=400, detail="Resume not found")
    return resume_to_text(resume)


async def _job_text(
    session: AsyncSession, user_id: str, job_id: int | None, inline: str | None
) -> str:
    if inline and inline.strip():
        return normalize_whitespace(inline)
    try:
        return await discovery_service.get_job_text(session, user_id, job_id)
    except DiscoveredJobNotFoundError:
        raise HTTPException(status_code=400, detail="Job not found")


def _provider(llm_factory: LLMFactory, selected: SelectedModel) -> LLMProvider:
    try:
        return llm_factory(selected.provider, selected.model)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/resume/match-collaborative")
async def match_collaborative(
    request: CollaborativeMatchRequest,
    user_id: str = Depends(get_current_user_id),
    limiter: UserRateLimiter = Depends(get_ai_limiter),
    session: AsyncSession = Depends(get_session),
    llm_factory: LLMFactory = Depends(get_llm_factory),
):
    """Score a resume against a job with the agent team, streaming progress."""
    limited = check_rate_limit(limiter, user_id)
    if limited:
        return limited

    has_resume = request.resume_id is not None or bool(request.resume)
    has_job = request.job_id is not None or bool(request.job)
    if request.selected_model is None or not has_resume or not has_job:
        raise HTTPException(
            status_code=400, detail="Resume, job, and model selection required"
        )

    try:
        resume_text = await _resume_text(
            session, user_id, request.resume_id, request.resume
        )
        job_text = await _job_text(session, user_id, request.job_id, request.job)
    except SQLAlchemyError as e:
        logger.error(f"Database error loading match inputs: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    llm = _provider(llm_factory, request.selected_model)
    progress = ProgressChannel()
    analysis = partial(
        collaborative_job_match,
        llm,
        truncate_for_model(resume_text, "resume", llm.is_local),
        truncate_for_model(job_text, "job", llm.is_local),
        progress,
        **_orchestrator_options(),
    )
    return EventSourceResponse(collaborative_frames(analysis, progress))


@router.post("/resume/review-collaborative")
async def review_collaborative(
    request: CollaborativeReviewRequest,
    user_id: str = Depends(get_current_user_id),
    limiter: UserRateLimiter = Depends(get_ai_limiter),
    session: AsyncSession = Depends(get_session),
    llm_factory: LLMFactory = Depends(get_llm_factory),
):
    """Review a resume with the agent team, streaming progress."""
    limited = check_rate_limit(limiter, user_id)
    if limited:
        return limited

    has_resume = request.resume_id is not None or bool(request.resume)
    if request.selected_model is None or not has_resume:
        raise HTTPException(
            status_code=400, detail="Resume and model selection required"
        )

    try:
        resume_text = await _resume_text(
            session, user_id, request.resume_id, request.resume
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error loading resume: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    llm = _provider(llm_factory, request.selected_model)
    progress = ProgressChannel()
    analysis = partial(
        collaborative_resume_review,
        llm,
        truncate_for_model(resume_text, "resume", llm.is_local),
        progress,
        **_orchestrator_options(),
    )
    return EventSourceResponse(collaborative_frames(analysis, progress))
