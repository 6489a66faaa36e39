"""Pydantic schemas for request/response validation."""

from jobscout.schemas.automation import (
    DiscoveredJobResponse,
    ManualRunResponse,
    RunHistoryResponse,
    SchedulerStatusResponse,
)
from jobscout.schemas.matching import (
    CollaborativeMatchRequest,
    CollaborativeReviewRequest,
    JobMatchResult,
    ResumeReviewResult,
)

__all__ = [
    "CollaborativeMatchRequest",
    "CollaborativeReviewRequest",
    "DiscoveredJobResponse",
    "JobMatchResult",
    "ManualRunResponse",
    "ResumeReviewResult",
    "RunHistoryResponse",
    "SchedulerStatusResponse",
]
