"""Job board client interface and error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RawPosting:
    """A posting as returned by a job board, before any normalization."""

    external_id: str
    url: str
    title: str
    company: str
    location: str = ""
    description: str = ""
    job_type: str = "full-time"
    source_board: str = ""
    salary: str | None = None
    posted_at: datetime | None = None


@dataclass
class SearchPage:
    """One page of search results."""

    postings: list[RawPosting] = field(default_factory=list)
    has_more: bool = False


class JobBoardError(Exception):
    """Job board error."""

    kind = "transient"

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class JobBoardBlockedError(JobBoardError):
    """The board actively refused automated access."""

    kind = "blocked"


class JobBoardRateLimitedError(JobBoardError):
    """The board asked us to slow down."""

    kind = "rate_limited"

    def __init__(
        self, message: str, retry_after: int = 60, status_code: int | None = 429
    ):
        self.retry_after = retry_after
        super().__init__(message, status_code)


class JobBoardTransientError(JobBoardError):
    """Timeouts, 5xx responses and unreadable payloads."""

    kind = "transient"


class JobBoardFatalError(JobBoardError):
    """Missing credentials or other configuration problems."""

    kind = "fatal"


class JobBoardClient(ABC):
    """Abstract base class for job board providers."""

    name: str = ""

    @abstractmethod
    async def search(self, keywords: str, location: str, page: int = 1) -> SearchPage:
        """Search postings.

        Args:
            keywords: Free-text search keywords
            location: Location filter, may be empty
            page: 1-based page number

        Returns:
            SearchPage with postings and a has_more flag

        Raises:
            JobBoardError: a subclass describing why the search failed
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
