"""Discovered job postings and the catalog tables they reference."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobscout.core.storage import Base, utc_now


class DiscoveryStatus(StrEnum):
    NEW = "new"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


class JobTitle(Base):
    """Normalized job title shared by a user's discovered jobs."""

    __tablename__ = "job_titles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(500), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class Company(Base):
    """Normalized employer name."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(500), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class Location(Base):
    """Normalized job location."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(500), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class DiscoveredJob(Base):
    """A posting surfaced by an automation that scored above its threshold."""

    __tablename__ = "discovered_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    automation_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("automations.id", ondelete="SET NULL"), nullable=True
    )

    job_title_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("job_titles.id"), nullable=False
    )
    company_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("companies.id"), nullable=False
    )
    location_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("locations.id"), nullable=True
    )

    job_type: Mapped[str] = mapped_column(String(50), default="full-time")
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    job_url: Mapped[str] = mapped_column(String(2048), nullable=False, index=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_board: Mapped[str | None] = mapped_column(String(50), nullable=True)
    salary: Mapped[str | None] = mapped_column(String(255), nullable=True)

    match_score: Mapped[int] = mapped_column(Integer, nullable=False)
    match_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    discovery_status: Mapped[str] = mapped_column(
        String(20), default=DiscoveryStatus.NEW, nullable=False
    )
    discovered_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )
