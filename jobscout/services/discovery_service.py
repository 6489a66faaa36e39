"""Persistence of discovered jobs and their catalog references."""

import logging
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jobscout.core.exceptions import DiscoveredJobNotFoundError
from jobscout.core.storage import utc_now
from jobscout.models.discovery import (
    Company,
    DiscoveredJob,
    DiscoveryStatus,
    JobTitle,
    Location,
)
from jobscout.schemas.matching import JobMatchResult
from jobscout.services.job_boards.base import RawPosting
from jobscout.services.matching.text import build_job_text
from jobscout.utils.dedup import (
    extract_city_name,
    extract_keywords,
    normalize_for_search,
    normalize_url,
)

logger = logging.getLogger(__name__)

CatalogModel = TypeVar("CatalogModel", JobTitle, Company, Location)


async def _find_by_value(
    session: AsyncSession, model: type[CatalogModel], user_id: str, value: str
) -> CatalogModel | None:
    query = select(model).where(model.created_by == user_id, model.value == value)
    result = await session.execute(query)
    return result.scalars().first()


async def _user_catalog(
    session: AsyncSession, model: type[CatalogModel], user_id: str
) -> list[CatalogModel]:
    result = await session.execute(select(model).where(model.created_by == user_id))
    return list(result.scalars().all())


async def _create(
    session: AsyncSession, model: type[CatalogModel], user_id: str, label: str
) -> CatalogModel:
    row = model(label=label, value=normalize_for_search(label), created_by=user_id)
    session.add(row)
    await session.flush()
    return row


async def find_or_create_job_title(
    session: AsyncSession, user_id: str, title: str
) -> JobTitle:
    """Reuse a title with the same normalized value or the same keywords."""
    label = title.strip() or "Untitled position"
    existing = await _find_by_value(session, JobTitle, user_id, normalize_for_search(label))
    if existing:
        return existing

    keywords = set(extract_keywords(label))
    if keywords:
        for candidate in await _user_catalog(session, JobTitle, user_id):
            if set(extract_keywords(candidate.label)) == keywords:
                return candidate
    return await _create(session, JobTitle, user_id, label)


async def find_or_create_company(
    session: AsyncSession, user_id: str, name: str
) -> Company:
    label = name.strip() or "Unknown company"
    existing = await _find_by_value(session, Company, user_id, normalize_for_search(label))
    if existing:
        return existing

    keywords = set(extract_keywords(label))
    if keywords:
        for candidate in await _user_catalog(session, Company, user_id):
            if set(extract_keywords(candidate.label)) == keywords:
                return candidate
    return await _create(session, Company, user_id, label)


async def find_or_create_location(
    session: AsyncSession, user_id: str, location: str
) -> Location | None:
    """Match by normalized value, then by city name. Blank locations map to None."""
    label = location.strip()
    if not label:
        return None
    existing = await _find_by_value(session, Location, user_id, normalize_for_search(label))
    if existing:
        return existing

    city = extract_city_name(label)
    if city:
        for candidate in await _user_catalog(session, Location, user_id):
            if extract_city_name(candidate.label) == city:
                return candidate
    return await _create(session, Location, user_id, label)


async def known_job_urls(session: AsyncSession, user_id: str) -> list[str]:
    """Every job URL already stored for a user."""
    result = await session.execute(
        select(DiscoveredJob.job_url).where(DiscoveredJob.user_id == user_id)
    )
    return list(result.scalars().all())


async def save_discovered_job(
    session: AsyncSession,
    *,
    user_id: str,
    automation_id: int,
    posting: RawPosting,
    result: JobMatchResult,
    resume_id: int,
    resume_title: str,
) -> DiscoveredJob:
    """Add a discovered job to the session and flush it.

    The caller owns the transaction.
    """
    title = await find_or_create_job_title(session, user_id, posting.title)
    company = await find_or_create_company(session, user_id, posting.company)
    location = await find_or_create_location(session, user_id, posting.location)

    match_data = result.model_dump(mode="json")
    match_data.update(
        {
            "resumeId": resume_id,
            "resumeTitle": resume_title,
            "matchedAt": utc_now().isoformat(),
        }
    )

    job = DiscoveredJob(
        user_id=user_id,
        automation_id=automation_id,
        job_title_id=title.id,
        company_id=company.id,
        location_id=location.id if location else None,
        job_type=posting.job_type or "full-time",
        description=posting.description or "",
        job_url=normalize_url(posting.url),
        external_id=posting.external_id,
        source_board=posting.source_board,
        salary=posting.salary,
        match_score=result.score,
        match_data=match_data,
        discovery_status=DiscoveryStatus.NEW,
    )
    session.add(job)
    await session.flush()
    logger.debug(f"Discovered job {job.id} saved for user {user_id}: {posting.title}")
    return job


async def update_discovery_status(
    session: AsyncSession, user_id: str, job_id: int, status: DiscoveryStatus
) -> DiscoveredJob:
    """Accept or dismiss a discovered job.

    Raises:
        DiscoveredJobNotFoundError: unknown job or owned by another user
    """
    job = await session.get(DiscoveredJob, job_id)
    if job is None or job.user_id != user_id:
        raise DiscoveredJobNotFoundError(job_id)

    job.discovery_status = status
    await session.commit()
    logger.info(f"Discovered job {job_id} marked {status} by user {user_id}")
    return job


async def get_job_text(session: AsyncSession, user_id: str, job_id: int) -> str:
    """Describe a stored job the way postings are described to the agents.

    Raises:
        DiscoveredJobNotFoundError: unknown job or owned by another user
    """
    query = (
        select(DiscoveredJob, JobTitle.label, Company.label, Location.label)
        .join(JobTitle, DiscoveredJob.job_title_id == JobTitle.id)
        .join(Company, DiscoveredJob.company_id == Company.id)
        .outerjoin(Location, DiscoveredJob.location_id == Location.id)
        .where(DiscoveredJob.id == job_id, DiscoveredJob.user_id == user_id)
    )
    row = (await session.execute(query)).first()
    if row is None:
        raise DiscoveredJobNotFoundError(job_id)
    job, title, company, location = row
    return build_job_text(title, company, location or "", job.description)
