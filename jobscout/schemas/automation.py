"""Schemas for automation runs, logs and discovered jobs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from jobscout.models.automation import AutomationRun
from jobscout.models.discovery import DiscoveredJob


class CamelModel(BaseModel):
    """Serializes to camelCase, accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunSummary(CamelModel):
    """Counters and outcome of one automation run."""

    id: int
    status: str
    jobs_searched: int = 0
    jobs_deduplicated: int = 0
    jobs_processed: int = 0
    jobs_matched: int = 0
    jobs_saved: int = 0
    error_message: str | None = None
    blocked_reason: str | None = None

    @classmethod
    def from_run(cls, run: AutomationRun) -> "RunSummary":
        return cls(
            id=run.id,
            status=run.status,
            jobs_searched=run.jobs_searched,
            jobs_deduplicated=run.jobs_deduplicated,
            jobs_processed=run.jobs_processed,
            jobs_matched=run.jobs_matched,
            jobs_saved=run.jobs_saved,
            error_message=run.error_message,
            blocked_reason=run.blocked_reason,
        )


class ManualRunResponse(BaseModel):
    """Response from the run-now trigger."""

    success: bool
    run: RunSummary


class RunHistoryItem(RunSummary):
    """Single run history entry."""

    started_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_run(cls, run: AutomationRun) -> "RunHistoryItem":
        summary = RunSummary.from_run(run)
        return cls(
            **summary.model_dump(),
            started_at=run.started_at,
            completed_at=run.completed_at,
        )


class RunHistoryResponse(CamelModel):
    """Response with run history."""

    runs: list[RunHistoryItem]
    total_count: int


class SchedulerStatusResponse(BaseModel):
    """Response with scheduler status."""

    scheduler_running: bool
    jobs_count: int
    next_scheduled_run: datetime | None = None


class DiscoveredJobResponse(CamelModel):
    """A discovered job after an accept or dismiss action."""

    id: int
    automation_id: int | None
    job_url: str
    match_score: int = Field(ge=0, le=100)
    discovery_status: str
    discovered_at: datetime

    @classmethod
    def from_job(cls, job: DiscoveredJob) -> "DiscoveredJobResponse":
        return cls(
            id=job.id,
            automation_id=job.automation_id,
            job_url=job.job_url,
            match_score=job.match_score,
            discovery_status=job.discovery_status,
            discovered_at=job.discovered_at,
        )
