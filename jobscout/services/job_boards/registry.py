"""Resolve an automation's job board selector to a client."""

from collections.abc import Callable

from jobscout.services.job_boards.base import JobBoardClient
from jobscout.services.job_boards.jsearch import JSearchClient

JobBoardFactory = Callable[[], JobBoardClient]

_PROVIDERS: dict[str, JobBoardFactory] = {
    JSearchClient.name: JSearchClient,
}


def register_job_board(name: str, factory: JobBoardFactory) -> None:
    """Register or replace a job board provider."""
    _PROVIDERS[name] = factory


def available_job_boards() -> list[str]:
    return sorted(_PROVIDERS)


def get_job_board_client(name: str) -> JobBoardClient:
    """Create a client for the named job board."""
    try:
        factory = _PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown job board: {name}") from None
    return factory()
