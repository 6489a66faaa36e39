"""JSearch (RapidAPI) job board client."""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any

import httpx

from jobscout.core.config import settings
from jobscout.services.job_boards.base import (
    JobBoardBlockedError,
    JobBoardClient,
    JobBoardFatalError,
    JobBoardRateLimitedError,
    JobBoardTransientError,
    RawPosting,
    SearchPage,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

EMPLOYMENT_TYPES = {
    "fulltime": "full-time",
    "parttime": "part-time",
    "contractor": "contract",
    "intern": "internship",
}


def _salary_amount(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric JSearch salary: {value!r}")
        return None


def format_salary(job: dict[str, Any]) -> str | None:
    """Human-readable salary range, or None when the posting has none."""
    low = _salary_amount(job.get("job_min_salary"))
    high = _salary_amount(job.get("job_max_salary"))
    period = (job.get("job_salary_period") or "year").lower()

    if low and high:
        return f"${low:,.0f} - ${high:,.0f} per {period}"
    if low:
        return f"From ${low:,.0f} per {period}"
    if high:
        return f"Up to ${high:,.0f} per {period}"
    return None


def _parse_posted_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def translate_job(job: dict[str, Any]) -> RawPosting:
    """Map a JSearch result item to a RawPosting."""
    location = job.get("job_location") or ", ".join(
        part for part in (job.get("job_city"), job.get("job_state")) if part
    )
    employment_type = (job.get("job_employment_type") or "fulltime").lower()

    return RawPosting(
        external_id=str(job.get("job_id", "")),
        url=job.get("job_apply_link") or "",
        title=job.get("job_title") or "",
        company=job.get("employer_name") or "",
        location=location,
        description=job.get("job_description") or "",
        job_type=EMPLOYMENT_TYPES.get(employment_type, employment_type),
        source_board=JSearchClient.name,
        salary=format_salary(job),
        posted_at=_parse_posted_at(job.get("job_posted_at_datetime_utc")),
    )


class JSearchClient(JobBoardClient):
    """Searches postings aggregated by the JSearch API."""

    name = "jsearch"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        host: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.jsearch_api_key
        self.host = host or settings.jsearch_host
        self.max_retries = (
            max_retries if max_retries is not None else settings.job_board_max_retries
        )
        self.base_delay = base_delay
        self.client = httpx.AsyncClient(
            base_url=base_url or settings.jsearch_base_url,
            timeout=httpx.Timeout(timeout or settings.job_board_timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def _backoff(self, retries: int, reason: str) -> None:
        delay = self.base_delay * (2**retries) + random.uniform(0, self.base_delay)
        logger.warning(
            f"JSearch {reason}. Retry {retries}/{self.max_retries} after {delay:.2f}s"
        )
        await asyncio.sleep(delay)

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET with retries on gateway errors and network failures."""
        headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": self.host}

        retries = 0
        while True:
            try:
                response = await self.client.get(
                    endpoint, params=params, headers=headers
                )
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                retries += 1
                if retries > self.max_retries:
                    logger.error(f"JSearch network error after {self.max_retries} retries: {e!s}")
                    raise JobBoardTransientError(f"Network error: {e!s}") from e
                await self._backoff(retries, "network error")
                continue

            status_code = response.status_code
            if status_code == 403:
                raise JobBoardBlockedError(
                    "API access denied - check your RapidAPI key", status_code
                )
            if status_code == 429:
                try:
                    retry_after = int(response.headers.get("Retry-After", 60))
                except ValueError:
                    retry_after = 60
                raise JobBoardRateLimitedError(
                    f"Rate limited by JSearch, retry after {retry_after}s",
                    retry_after=retry_after,
                )
            if status_code == 401:
                raise JobBoardFatalError("JSearch rejected the API key", status_code)

            if status_code >= 500:
                retries += 1
                if retries > self.max_retries:
                    logger.error(
                        f"JSearch server error {status_code} after {self.max_retries} retries"
                    )
                    raise JobBoardTransientError(
                        f"API error: {status_code} after {self.max_retries} retries",
                        status_code,
                    )
                await self._backoff(retries, f"server error {status_code}")
                continue

            if status_code >= 400:
                raise JobBoardFatalError(
                    f"API error: {status_code} {response.text[:200]}", status_code
                )

            try:
                return response.json()
            except ValueError as e:
                logger.error(
                    f"Failed to parse JSearch response: {e}, Response text: {response.text[:500]}"
                )
                raise JobBoardTransientError(f"Invalid JSON response: {e!s}") from e

    async def search(self, keywords: str, location: str, page: int = 1) -> SearchPage:
        if not self.api_key:
            raise JobBoardFatalError("JSEARCH_API_KEY is not configured")

        query = f"{keywords} in {location}" if location else keywords
        params = {
            "query": query,
            "page": page,
            "num_pages": 1,
            "date_posted": "week",
        }
        payload = await self._get("/search", params)

        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise JobBoardTransientError("Malformed JSearch payload: missing data list")

        try:
            postings = [
                translate_job(item)
                for item in items
                if isinstance(item, dict) and item.get("job_apply_link")
            ]
        except (AttributeError, TypeError, ValueError) as e:
            raise JobBoardTransientError(f"Malformed JSearch payload: {e!s}") from e
        logger.info(
            f"JSearch returned {len(items)} postings for '{query}' (page {page})"
        )
        return SearchPage(postings=postings, has_more=len(items) >= PAGE_SIZE)
