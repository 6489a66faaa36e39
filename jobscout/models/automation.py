"""Automation models for scheduled job discovery."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobscout.core.exceptions import RunStateError
from jobscout.core.storage import Base, utc_now


class AutomationStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"


TERMINAL_RUN_STATUSES = frozenset(RunStatus) - {RunStatus.RUNNING}

RESUME_MISSING = "resume_missing"


class Automation(Base):
    """Saved job search that runs on a schedule for one user."""

    __tablename__ = "automations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    job_board: Mapped[str] = mapped_column(String(50), default="jsearch", nullable=False)
    keywords: Mapped[str] = mapped_column(String(500), nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    resume_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    match_threshold: Mapped[int] = mapped_column(Integer, default=80, nullable=False)
    schedule_hour: Mapped[int] = mapped_column(Integer, default=8, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=AutomationStatus.ACTIVE, nullable=False, index=True
    )
    next_run_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )


class AutomationRun(Base):
    """One execution attempt of an automation."""

    __tablename__ = "automation_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    automation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("automations.id", ondelete="CASCADE"), index=True
    )

    jobs_searched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jobs_deduplicated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jobs_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jobs_matched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jobs_saved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(30), default=RunStatus.RUNNING, nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def finalize(
        self,
        status: RunStatus,
        *,
        error_message: str | None = None,
        blocked_reason: str | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        """Move the run to a terminal status. Allowed exactly once."""
        if status not in TERMINAL_RUN_STATUSES:
            raise RunStateError(f"{status} is not a terminal run status")
        if self.status != RunStatus.RUNNING or self.completed_at is not None:
            raise RunStateError(
                f"Run {self.id} already finalized with status {self.status}"
            )

        self.status = status
        self.error_message = error_message
        self.blocked_reason = blocked_reason
        self.completed_at = completed_at or utc_now()
