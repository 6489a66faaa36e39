"""Test collaborative AI endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from conftest import JOB_TEXT, RESUME_TEXT, FakeLLM, sse_payloads

from jobscout.core.exceptions import AIUnavailableError, DiscoveredJobNotFoundError
from jobscout.core.rate_limit import UserRateLimiter
from jobscout.models.resume import Resume
from jobscout.routers.dependencies import get_llm_factory

USER = {"X-User-Id": "user-1"}
MODEL = {"provider": "ollama", "model": "llama3.2"}


@pytest.fixture
def llm_factory():
    """Route the provider factory to a canned LLM."""
    from jobscout.main import app

    calls = []
    llm = FakeLLM(default={"summary": "Backend match"})

    def factory(provider, model):
        calls.append((provider, model))
        return llm

    app.dependency_overrides[get_llm_factory] = lambda: factory
    return calls


class TestMatchCollaborative:
    """Test POST /ai/resume/match-collaborative."""

    def test_requires_user(self, api_client):
        """Test that anonymous requests are rejected."""
        response = api_client.post("/ai/resume/match-collaborative", json={})

        assert response.status_code == 401

    def test_missing_inputs(self, api_client):
        """Test 400 without a model selection."""
        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={"resume": RESUME_TEXT, "job": JOB_TEXT},
            headers=USER,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Resume, job, and model selection required"

    def test_unknown_provider(self, api_client):
        """Test that only supported providers validate."""
        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={
                "selectedModel": {"provider": "claude", "model": "x"},
                "resume": RESUME_TEXT,
                "job": JOB_TEXT,
            },
            headers=USER,
        )

        assert response.status_code == 422

    def test_rate_limited(self, api_client, api_services):
        """Test 429 once the per-user AI window is used up."""
        api_services.ai_limiter = UserRateLimiter(max_requests=1, window_seconds=60)

        first = api_client.post("/ai/resume/match-collaborative", json={}, headers=USER)
        second = api_client.post("/ai/resume/match-collaborative", json={}, headers=USER)

        assert first.status_code == 400
        assert second.status_code == 429
        assert second.headers["Retry-After"] == "60"
        assert second.json() == {
            "message": "Rate limit exceeded. Try again in 60 seconds.",
            "retry_after": 60,
        }

    def test_streams_progress_and_result(self, api_client, llm_factory):
        """Test the event stream of a collaborative match with inline texts."""
        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={"selectedModel": MODEL, "resume": RESUME_TEXT, "job": JOB_TEXT},
            headers=USER,
        )

        assert response.status_code == 200
        payloads = sse_payloads(response)
        assert payloads[0]["step"] == "data-analyzer"
        assert payloads[0]["status"] == "started"
        assert {"step": "complete", "status": "completed"}.items() <= payloads[-2].items()
        assert payloads[-1]["type"] == "result"
        assert 0 <= payloads[-1]["data"]["score"] <= 100
        assert payloads[-1]["data"]["validation"]["verdict"]
        assert llm_factory == [("ollama", "llama3.2")]

    def test_stored_resume_and_job(self, api_client, api_services, llm_factory):
        """Test that ids are resolved to the stored resume and job."""
        api_services.session.get = AsyncMock(
            return_value=Resume(id=2, user_id="user-1", title="Backend", content=RESUME_TEXT)
        )
        get_job_text = AsyncMock(return_value=JOB_TEXT)

        with patch("jobscout.routers.ai.discovery_service.get_job_text", get_job_text):
            response = api_client.post(
                "/ai/resume/match-collaborative",
                json={"selectedModel": MODEL, "resumeId": 2, "jobId": 7},
                headers=USER,
            )

        assert response.status_code == 200
        assert sse_payloads(response)[-1]["type"] == "result"
        assert get_job_text.await_args.args[1:] == ("user-1", 7)

    def test_foreign_resume(self, api_client, api_services):
        """Test 400 when the resume belongs to someone else."""
        api_services.session.get = AsyncMock(
            return_value=Resume(id=2, user_id="user-2", title="Other", content="text")
        )

        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={"selectedModel": MODEL, "resumeId": 2, "job": JOB_TEXT},
            headers=USER,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Resume not found"

    def test_unknown_job(self, api_client):
        """Test 400 when the job id is unknown."""
        get_job_text = AsyncMock(side_effect=DiscoveredJobNotFoundError(7))

        with patch("jobscout.routers.ai.discovery_service.get_job_text", get_job_text):
            response = api_client.post(
                "/ai/resume/match-collaborative",
                json={"selectedModel": MODEL, "resume": RESUME_TEXT, "jobId": 7},
                headers=USER,
            )

        assert response.status_code == 400
        assert response.json()["detail"] == "Job not found"

    def test_provider_not_configured(self, api_client):
        """Test 400 when the chosen provider cannot be built."""
        from jobscout.main import app

        def factory(provider, model):
            raise ValueError("OPENAI_API_KEY is not configured")

        app.dependency_overrides[get_llm_factory] = lambda: factory

        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={
                "selectedModel": {"provider": "openai", "model": "gpt-4o-mini"},
                "resume": RESUME_TEXT,
                "job": JOB_TEXT,
            },
            headers=USER,
        )

        assert response.status_code == 400
        assert "OPENAI_API_KEY" in response.json()["detail"]

    def test_provider_outage_is_error_frame(self, api_client):
        """Test that an unreachable provider ends the stream with an error frame."""
        from jobscout.main import app

        llm = FakeLLM(default=AIUnavailableError("Cannot connect to Ollama"))
        app.dependency_overrides[get_llm_factory] = lambda: lambda provider, model: llm

        response = api_client.post(
            "/ai/resume/match-collaborative",
            json={"selectedModel": MODEL, "resume": RESUME_TEXT, "job": JOB_TEXT},
            headers=USER,
        )

        assert response.status_code == 200
        assert sse_payloads(response)[-1] == {
            "type": "error",
            "message": "Cannot connect to Ollama",
        }


class TestReviewCollaborative:
    """Test POST /ai/resume/review-collaborative."""

    def test_missing_inputs(self, api_client):
        """Test 400 without a resume."""
        response = api_client.post(
            "/ai/resume/review-collaborative",
            json={"selectedModel": MODEL},
            headers=USER,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Resume and model selection required"

    def test_streams_review(self, api_client, llm_factory):
        """Test the event stream of a collaborative resume review."""
        response = api_client.post(
            "/ai/resume/review-collaborative",
            json={"selectedModel": MODEL, "resume": RESUME_TEXT},
            headers=USER,
        )

        assert response.status_code == 200
        payloads = sse_payloads(response)
        assert payloads[-1]["type"] == "result"
        assert "breakdown" in payloads[-1]["data"]
