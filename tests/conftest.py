"""Pytest configuration and fixtures."""

import json
import os
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Set test environment variables before importing jobscout modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LLM_PROVIDER"] = "ollama"
os.environ["OLLAMA_BASE_URL"] = "http://localhost:11434"
os.environ["OLLAMA_MODEL"] = "llama3.2"
os.environ.setdefault("JSEARCH_API_KEY", "test_jsearch_key")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from jobscout.core.log_store import RunLogStore  # noqa: E402
from jobscout.core.rate_limit import (  # noqa: E402
    TokenBucketRateLimiter,
    UserRateLimiter,
)
from jobscout.core.storage import init_models, utc_now  # noqa: E402
from jobscout.models.automation import Automation, AutomationStatus  # noqa: E402
from jobscout.models.resume import Resume  # noqa: E402
from jobscout.schemas.matching import JobMatchBreakdown, JobMatchResult  # noqa: E402
from jobscout.services.job_boards.base import (  # noqa: E402
    JobBoardClient,
    RawPosting,
    SearchPage,
)
from jobscout.services.llm.base import LLMProvider  # noqa: E402


RESUME_TEXT = """Jane Doe
SUMMARY:
Backend engineer with 6 years of experience building Python services.
EXPERIENCE:
- Built FastAPI microservices handling 2000 users per day
- Migrated PostgreSQL clusters and reduced latency by 40%
- Led a team of 4 engineers shipping Kubernetes deployments
- Automated CI pipelines with GitHub Actions
SKILLS:
Python, FastAPI, PostgreSQL, Docker, Kubernetes, Redis
"""

JOB_TEXT = """Job Title: Senior Python Engineer
Company: Acme
Location: Berlin, Germany
Description: We need a Python engineer with FastAPI, PostgreSQL and Kubernetes.
5+ years of experience required. Terraform and GraphQL are a plus."""


class FakeLLM(LLMProvider):
    """LLM provider returning canned JSON per system prompt."""

    provider = "fake"

    def __init__(self, replies: dict[str, object] | None = None, default: dict | None = None):
        super().__init__("fake-model")
        self.replies = replies or {}
        self.default = default if default is not None else {}
        self.calls: list[str] = []

    async def generate_json(self, system, prompt, *, temperature=0.0):
        self.calls.append(system)
        reply = self.replies.get(system, self.default)
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeJobBoard(JobBoardClient):
    """Job board serving scripted pages; an exception in the list is raised."""

    name = "fake"

    def __init__(self, pages: list):
        self.pages = list(pages)
        self.requested: list[int] = []
        self.closed = False

    async def search(self, keywords, location, page=1):
        self.requested.append(page)
        item = self.pages[page - 1]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


class FakeScorer:
    """Scores postings by title."""

    def __init__(self, scores: dict[str, object], default: int = 0):
        self.scores = scores
        self.default = default
        self.calls: list[str] = []

    async def score(self, resume_text, job_text, progress=None):
        title = job_text.splitlines()[0].removeprefix("Job Title: ")
        self.calls.append(title)
        value = self.scores.get(title, self.default)
        if isinstance(value, Exception):
            raise value
        return match_result(value)


def breakdown_for(score: int) -> JobMatchBreakdown:
    """A breakdown whose sub-scores add up to ``score``."""
    values = {}
    remaining = score
    for name, bound in JobMatchBreakdown.BOUNDS.items():
        values[name] = min(bound, remaining)
        remaining -= values[name]
    return JobMatchBreakdown(**values)


def match_result(score: int) -> JobMatchResult:
    return JobMatchResult(breakdown=breakdown_for(score), summary=f"Score {score}")


def posting(title: str, url: str, company: str = "Acme", location: str = "Berlin") -> RawPosting:
    return RawPosting(
        external_id=title.lower().replace(" ", "-"),
        url=url,
        title=title,
        company=company,
        location=location,
        description=f"{title} role working with Python and PostgreSQL.",
        source_board="fake",
    )


def page(*postings: RawPosting, has_more: bool = False) -> SearchPage:
    return SearchPage(postings=list(postings), has_more=has_more)


@pytest_asyncio.fixture
async def engine():
    """In-memory database shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def log_store():
    return RunLogStore(max_entries=500, retention_seconds=3600)


@pytest.fixture
def fast_limiter():
    """Token bucket that never makes a test wait."""
    return TokenBucketRateLimiter(capacity=100, refill_rate_ms=1)


@pytest_asyncio.fixture
async def resume(session_factory):
    async with session_factory() as session:
        resume = Resume(user_id="user-1", title="Backend Resume", content=RESUME_TEXT)
        session.add(resume)
        await session.commit()
        return resume


@pytest.fixture
def make_automation(session_factory):
    """Factory storing an automation; due one minute ago unless told otherwise."""

    async def _make(**overrides) -> Automation:
        values = {
            "user_id": "user-1",
            "name": "Python jobs",
            "job_board": "fake",
            "keywords": "python engineer",
            "location": "Berlin",
            "match_threshold": 80,
            "schedule_hour": 8,
            "status": AutomationStatus.ACTIVE,
            "next_run_at": utc_now() - timedelta(minutes=1),
        }
        values.update(overrides)
        async with session_factory() as session:
            automation = Automation(**values)
            session.add(automation)
            await session.commit()
            return automation

    return _make


@pytest.fixture
def api_services():
    """Service container with a mocked scheduler for endpoint tests."""
    scheduler = MagicMock()
    scheduler.trigger_manual_run = AsyncMock()
    scheduler.get_run_history = AsyncMock()
    scheduler.get_owned_automation = AsyncMock()
    scheduler.get_status.return_value = {
        "scheduler_running": False,
        "jobs_count": 0,
        "next_scheduled_run": None,
    }
    return SimpleNamespace(
        scheduler=scheduler,
        log_store=RunLogStore(),
        ai_limiter=UserRateLimiter(max_requests=5, window_seconds=60),
        session=MagicMock(),
    )


@pytest.fixture
def api_client(api_services):
    """Test client without lifespan, so no database or scheduler is started."""
    from sse_starlette.sse import AppStatus

    from jobscout.main import app
    from jobscout.routers.dependencies import get_session

    async def session_override():
        yield api_services.session

    AppStatus.should_exit_event = None
    app.state.services = api_services
    app.dependency_overrides[get_session] = session_override
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    app.state.services = None


def sse_payloads(response) -> list[dict]:
    """Decode the JSON data lines of an event stream body."""
    return [
        json.loads(line.removeprefix("data:").strip())
        for line in response.text.splitlines()
        if line.startswith("data:")
    ]
