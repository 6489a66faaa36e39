"""FastAPI dependencies shared by the routers."""

from collections.abc import AsyncGenerator, Callable

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from jobscout.core.exceptions import unauthorized_exception
from jobscout.core.log_store import RunLogStore
from jobscout.core.rate_limit import UserRateLimiter
from jobscout.services.container import ServiceContainer
from jobscout.services.llm.base import LLMProvider
from jobscout.services.llm.factory import get_llm_provider
from jobscout.services.scheduler_service import SchedulerService

LLMFactory = Callable[[str | None, str | None], LLMProvider]


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    if not x_user_id or not x_user_id.strip():
        raise unauthorized_exception()
    return x_user_id.strip()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_scheduler_service(
    services: ServiceContainer = Depends(get_services),
) -> SchedulerService:
    return services.scheduler


def get_log_store(services: ServiceContainer = Depends(get_services)) -> RunLogStore:
    return services.log_store


def get_ai_limiter(
    services: ServiceContainer = Depends(get_services),
) -> UserRateLimiter:
    return services.ai_limiter


async def get_session(
    services: ServiceContainer = Depends(get_services),
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for the duration of a request."""
    async with services.session_factory() as session:
        yield session


def get_llm_factory() -> LLMFactory:
    """Builds the provider picked in the request body."""
    return get_llm_provider
