"""Tests for the collaborative multi-agent pipeline."""

import asyncio
from unittest.mock import patch

import pytest
from conftest import JOB_TEXT, RESUME_TEXT, FakeLLM

from jobscout.core.exceptions import (
    AIUnavailableError,
    LLMRequestError,
    MalformedResponseError,
    StageError,
)
from jobscout.schemas.matching import JobMatchResult, ResumeReviewResult
from jobscout.services.matching import (
    AgentStep,
    ProgressChannel,
    collaborative_job_match,
    collaborative_resume_review,
)
from jobscout.services.matching import prompts
from jobscout.services.matching.job_match import build_job_match_context
from jobscout.services.matching.pipeline import CollaborativeOrchestrator, Stage

STAGE_ORDER = [
    AgentStep.DATA_ANALYZER,
    AgentStep.KEYWORD_EXPERT,
    AgentStep.SCORING_SPECIALIST,
    AgentStep.FEEDBACK_EXPERT,
    AgentStep.SYNTHESIS_COORDINATOR,
    AgentStep.VALIDATION,
]


def job_match_replies(**overrides):
    replies = {
        prompts.DATA_ANALYZER_JOB: {
            "required_skills": ["Python", "FastAPI", "PostgreSQL", "Kubernetes"],
            "matched_skills": [{"point": "Python", "evidence": "Python services"}],
            "missing_skills": ["GraphQL"],
        },
        prompts.KEYWORD_EXPERT: {
            "matched_keywords": [{"point": "fastapi", "evidence": "FastAPI"}],
            "missing_keywords": ["graphql", "terraform"],
        },
        prompts.SCORING_SPECIALIST: {
            "adjustments": [
                {
                    "criterion": "qualifications",
                    "adjustment": 2,
                    "reason": "Led an engineering team",
                    "evidence": "Led a team of 4 engineers",
                }
            ],
        },
        prompts.FEEDBACK_EXPERT: {
            "strengths": [
                {"point": "Ships FastAPI services", "evidence": "Built FastAPI microservices"}
            ],
            "weaknesses": [
                {"point": "No GraphQL exposure", "evidence": "GraphQL are a plus"}
            ],
            "suggestions": ["Mention any GraphQL work"],
        },
        prompts.SYNTHESIS_COORDINATOR: {
            "summary": "Backend profile that covers the core stack.",
            "detailed_analysis": [{"category": "Skills", "points": ["FastAPI"]}],
        },
    }
    replies.update(overrides)
    return replies


async def drain(progress: ProgressChannel) -> list:
    progress.close()
    return [update async for update in progress]


class SlowLLM(FakeLLM):
    """Sleeps before answering the prompts listed in ``slow``."""

    def __init__(self, replies, slow=None, delay=1.0):
        super().__init__(replies)
        self.slow = slow
        self.delay = delay

    async def generate_json(self, system, prompt, *, temperature=0.0):
        if self.slow is None or system in self.slow:
            await asyncio.sleep(self.delay)
        return await super().generate_json(system, prompt, temperature=temperature)


class TestCollaborativeJobMatch:
    """Tests for collaborative_job_match."""

    @pytest.mark.asyncio
    async def test_happy_path(self):
        """Test a full run producing a validated, approved result."""
        llm = FakeLLM(job_match_replies())
        progress = ProgressChannel()
        baseline = build_job_match_context(RESUME_TEXT, JOB_TEXT).baseline

        result = await collaborative_job_match(llm, RESUME_TEXT, JOB_TEXT, progress)

        assert isinstance(result, JobMatchResult)
        assert result.score == baseline.total + 2
        assert result.breakdown.qualifications == baseline.qualifications + 2
        assert result.validation.verdict == "APPROVED"
        assert result.validation.recomputed_total == result.score
        assert result.fallback is False
        assert [s.point for s in result.strengths] == ["Ships FastAPI services"]
        assert result.summary == "Backend profile that covers the core stack."
        assert len(llm.calls) == 5

    @pytest.mark.asyncio
    async def test_progress_frames_in_order(self):
        """Test started and completed frames for every stage, then complete."""
        progress = ProgressChannel()

        await collaborative_job_match(
            FakeLLM(job_match_replies()), RESUME_TEXT, JOB_TEXT, progress
        )
        updates = await drain(progress)

        expected = []
        for step in STAGE_ORDER:
            expected += [(step, "started"), (step, "completed")]
        expected.append((AgentStep.COMPLETE, "completed"))
        assert [(u.step, u.status) for u in updates] == expected
        assert updates[0].agent_number == 1
        assert updates[0].total_agents == 6
        frame = updates[0].to_frame()
        assert frame["step"] == "data-analyzer"
        assert frame["agentNumber"] == 1
        assert "estimatedDurationMs" in frame

    @pytest.mark.asyncio
    async def test_malformed_reply_is_retried(self):
        """Test that one malformed reply is retried and then succeeds."""
        replies = job_match_replies()
        replies[prompts.KEYWORD_EXPERT] = [
            MalformedResponseError("not json"),
            replies[prompts.KEYWORD_EXPERT],
        ]
        llm = FakeLLM(replies)

        result = await collaborative_job_match(llm, RESUME_TEXT, JOB_TEXT, max_retries=1)

        assert result.validation is not None
        assert llm.calls.count(prompts.KEYWORD_EXPERT) == 2

    @pytest.mark.asyncio
    async def test_schema_mismatch_fails_stage_after_retries(self):
        """Test that a reply of the wrong shape fails the stage once retries run out."""
        replies = job_match_replies(
            **{prompts.FEEDBACK_EXPERT: {"strengths": "everything is great"}}
        )
        progress = ProgressChannel()

        with pytest.raises(StageError) as exc_info:
            await collaborative_job_match(
                FakeLLM(replies), RESUME_TEXT, JOB_TEXT, progress, max_retries=1
            )

        assert exc_info.value.stage == AgentStep.FEEDBACK_EXPERT
        updates = await drain(progress)
        assert (updates[-1].step, updates[-1].status) == (AgentStep.FEEDBACK_EXPERT, "error")

    @pytest.mark.asyncio
    async def test_ai_unavailable_is_not_retried(self):
        """Test that provider outages propagate immediately."""
        llm = FakeLLM(
            job_match_replies(**{prompts.DATA_ANALYZER_JOB: AIUnavailableError("down")})
        )

        with pytest.raises(AIUnavailableError):
            await collaborative_job_match(llm, RESUME_TEXT, JOB_TEXT, max_retries=3)

        assert llm.calls == [prompts.DATA_ANALYZER_JOB]

    @pytest.mark.asyncio
    async def test_rejected_request_fails_stage(self):
        """Test that a rejected LLM call fails its stage without retries."""
        llm = FakeLLM(
            job_match_replies(
                **{prompts.KEYWORD_EXPERT: LLMRequestError("LLM API error: too long", 400)}
            )
        )

        with pytest.raises(StageError) as exc_info:
            await collaborative_job_match(llm, RESUME_TEXT, JOB_TEXT, max_retries=3)

        assert exc_info.value.stage == AgentStep.KEYWORD_EXPERT
        assert llm.calls.count(prompts.KEYWORD_EXPERT) == 1

    @pytest.mark.asyncio
    async def test_overall_timeout_returns_baseline(self):
        """Test that exceeding the overall deadline yields the baseline result."""
        llm = SlowLLM(job_match_replies(), delay=1.0)
        progress = ProgressChannel()
        baseline = build_job_match_context(RESUME_TEXT, JOB_TEXT).baseline

        result = await collaborative_job_match(
            llm, RESUME_TEXT, JOB_TEXT, progress, overall_timeout=0.05
        )

        assert result.fallback is True
        assert result.score == baseline.total
        assert result.validation is None
        assert any("timed out" in warning for warning in result.warnings)
        assert result.strengths
        updates = await drain(progress)
        assert (updates[-1].step, updates[-1].status) == (AgentStep.COMPLETE, "completed")

    @pytest.mark.asyncio
    async def test_synthesis_timeout_uses_fallback_synthesis(self):
        """Test that a slow synthesis is replaced by a deterministic report."""
        llm = SlowLLM(job_match_replies(), slow={prompts.SYNTHESIS_COORDINATOR}, delay=1.0)

        with patch("jobscout.services.matching.agents.settings") as mock_settings:
            mock_settings.ai_synthesis_timeout_seconds = 0.05
            result = await collaborative_job_match(llm, RESUME_TEXT, JOB_TEXT)

        assert result.fallback is True
        assert result.summary.startswith(f"Score {result.score}/100")
        assert any("Synthesis Coordinator timed out" in w for w in result.warnings)
        assert result.validation is not None
        assert len(result.detailed_analysis) == 5


class TestCollaborativeResumeReview:
    """Tests for collaborative_resume_review."""

    @pytest.mark.asyncio
    async def test_review_without_job(self):
        """Test the resume review pipeline and its rubric."""
        replies = {
            prompts.DATA_ANALYZER_RESUME: {"sections": ["SUMMARY", "EXPERIENCE"], "has_summary": True},
            prompts.KEYWORD_EXPERT: {},
            prompts.SCORING_SPECIALIST: {
                "adjustments": [
                    {"criterion": "summary", "adjustment": 1, "evidence": "Backend engineer with 6 years"},
                    {"criterion": "keywords", "adjustment": 5, "evidence": "Python"},
                ]
            },
            prompts.FEEDBACK_EXPERT: {
                "strengths": [{"point": "Quantified latency win", "evidence": "reduced latency by 40%"}],
                "weaknesses": [{"point": "Skills list lacks levels", "evidence": "Python, FastAPI, PostgreSQL"}],
            },
            prompts.SYNTHESIS_COORDINATOR: {"summary": "Clear backend resume."},
        }
        llm = FakeLLM(replies)

        result = await collaborative_resume_review(llm, RESUME_TEXT)

        assert isinstance(result, ResumeReviewResult)
        assert result.score == result.breakdown.total
        assert any("fixed criterion keywords" in i for i in result.validation.issues)
        assert llm.calls[0] == prompts.DATA_ANALYZER_RESUME


class TestCollaborativeOrchestrator:
    """Tests for CollaborativeOrchestrator."""

    def test_requires_stages(self):
        """Test that an empty pipeline is rejected."""
        with pytest.raises(ValueError):
            CollaborativeOrchestrator([], fallback=lambda ctx: None)

    @pytest.mark.asyncio
    async def test_stage_timeout_without_fallback_fails(self):
        """Test that a stage without a timeout fallback fails when it times out."""

        async def slow(ctx):
            await asyncio.sleep(1)

        orchestrator = CollaborativeOrchestrator(
            [Stage(AgentStep.DATA_ANALYZER, slow)],
            fallback=lambda ctx: None,
            stage_timeout=0.05,
        )

        with pytest.raises(StageError, match="timed out"):
            await orchestrator.run(build_job_match_context(RESUME_TEXT, JOB_TEXT))

    @pytest.mark.asyncio
    async def test_later_stages_see_earlier_outputs(self):
        """Test that each stage reads the finalized outputs of prior stages."""
        seen = []

        async def first(ctx):
            return build_job_match_context(RESUME_TEXT, JOB_TEXT).baseline

        async def second(ctx):
            seen.append(AgentStep.DATA_ANALYZER in ctx.outputs)
            return JobMatchResult(breakdown=ctx.outputs[AgentStep.DATA_ANALYZER], summary="ok")

        orchestrator = CollaborativeOrchestrator(
            [Stage(AgentStep.DATA_ANALYZER, first), Stage(AgentStep.VALIDATION, second)],
            fallback=lambda ctx: None,
        )

        result = await orchestrator.run(build_job_match_context(RESUME_TEXT, JOB_TEXT))

        assert seen == [True]
        assert result.summary == "ok"
