"""Job board providers."""

from jobscout.services.job_boards.base import (
    JobBoardBlockedError,
    JobBoardClient,
    JobBoardError,
    JobBoardFatalError,
    JobBoardRateLimitedError,
    JobBoardTransientError,
    RawPosting,
    SearchPage,
)
from jobscout.services.job_boards.registry import get_job_board_client

__all__ = [
    "JobBoardBlockedError",
    "JobBoardClient",
    "JobBoardError",
    "JobBoardFatalError",
    "JobBoardRateLimitedError",
    "JobBoardTransientError",
    "RawPosting",
    "SearchPage",
    "get_job_board_client",
]
