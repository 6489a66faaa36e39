"""Tests for agent output validation and the match scorers."""

import pytest
from conftest import JOB_TEXT, RESUME_TEXT, FakeLLM, breakdown_for

from jobscout.core.exceptions import AIUnavailableError, MalformedResponseError
from jobscout.schemas.matching import (
    EvidencePoint,
    FeedbackAnalysis,
    ScoreAdjustment,
    ScoringOutcome,
    Synthesis,
)
from jobscout.services.matching import MatchScorer, SimpleMatchScorer, prompts
from jobscout.services.matching.agents import ask, is_generic, validate_collaborative_output
from jobscout.services.matching.job_match import JOB_MATCH_PIPELINE, build_job_match_context
from jobscout.services.matching.progress import AgentStep

GROUNDED_STRENGTH = EvidencePoint(
    point="Runs FastAPI in production", evidence="Built FastAPI microservices"
)
GROUNDED_WEAKNESS = EvidencePoint(point="No Terraform", evidence="Terraform and GraphQL")


def context_with(
    score: int = 60,
    stated: int | None = None,
    applied: list[ScoreAdjustment] | None = None,
    strengths: list[EvidencePoint] | None = None,
    weaknesses: list[EvidencePoint] | None = None,
    summary: str = "Good overlap on the core stack.",
):
    ctx = build_job_match_context(RESUME_TEXT, JOB_TEXT)
    ctx.outputs[AgentStep.SCORING_SPECIALIST] = ScoringOutcome(
        breakdown=breakdown_for(score), stated_score=stated, applied=applied or []
    )
    ctx.outputs[AgentStep.FEEDBACK_EXPERT] = FeedbackAnalysis(
        strengths=[GROUNDED_STRENGTH] if strengths is None else strengths,
        weaknesses=[GROUNDED_WEAKNESS] if weaknesses is None else weaknesses,
        suggestions=["Add Terraform projects"],
    )
    ctx.outputs[AgentStep.SYNTHESIS_COORDINATOR] = Synthesis(summary=summary)
    return ctx


class TestValidateCollaborativeOutput:
    """Tests for validate_collaborative_output."""

    def test_approved(self):
        """Test that grounded, consistent output is approved."""
        result = validate_collaborative_output(context_with(stated=61), JOB_MATCH_PIPELINE)

        assert result.validation.verdict == "APPROVED"
        assert result.validation.issues == []
        assert result.score == 60

    def test_score_mismatch_needs_revision(self):
        """Test that a stated score far from the sub-score sum is flagged."""
        result = validate_collaborative_output(context_with(stated=70), JOB_MATCH_PIPELINE)

        assert result.validation.verdict == "NEEDS REVISION"
        assert result.score == 60
        assert "does not match sub-score sum 60" in result.validation.issues[0]

    def test_unquoted_adjustment_is_flagged(self):
        """Test that an adjustment without a supporting quote is reported."""
        ctx = context_with(
            applied=[
                ScoreAdjustment(
                    criterion="industry_fit", adjustment=2, evidence="ten years in fintech"
                )
            ]
        )

        result = validate_collaborative_output(ctx, JOB_MATCH_PIPELINE)

        assert result.validation.verdict == "NEEDS REVISION"
        assert any("industry_fit" in issue for issue in result.validation.issues)

    def test_generic_and_unquoted_points_are_removed(self):
        """Test that only grounded, specific feedback survives."""
        ctx = context_with(
            strengths=[
                GROUNDED_STRENGTH,
                EvidencePoint(point="Strong candidate overall", evidence="Python"),
                EvidencePoint(point="Knows Rust", evidence="Rust compiler work"),
            ]
        )

        result = validate_collaborative_output(ctx, JOB_MATCH_PIPELINE)

        assert result.strengths == [GROUNDED_STRENGTH]
        assert "Removed 2 generic or unquoted feedback points" in result.validation.issues

    def test_no_grounded_feedback_is_rejected(self):
        """Test that fully ungrounded feedback is replaced by deterministic feedback."""
        ctx = context_with(
            strengths=[EvidencePoint(point="Great fit for the team", evidence="")],
            weaknesses=[],
        )

        result = validate_collaborative_output(ctx, JOB_MATCH_PIPELINE)

        assert result.validation.verdict == "REJECTED"
        assert result.strengths
        assert all(s.point.startswith("Resume mentions") for s in result.strengths)

    def test_high_score_with_negative_feedback(self):
        """Test that a high score contradicting the feedback is flagged."""
        ctx = context_with(
            score=85,
            weaknesses=[GROUNDED_WEAKNESS] * 3,
        )

        result = validate_collaborative_output(ctx, JOB_MATCH_PIPELINE)

        assert "High score contradicts predominantly negative feedback" in (
            result.validation.issues
        )

    def test_low_score_without_weaknesses(self):
        """Test that a low score must be explained by a weakness."""
        result = validate_collaborative_output(
            context_with(score=30, weaknesses=[]), JOB_MATCH_PIPELINE
        )

        assert "Low score is not explained by any weakness" in result.validation.issues

    def test_empty_summary(self):
        """Test that an empty synthesis summary is flagged and replaced."""
        result = validate_collaborative_output(context_with(summary="  "), JOB_MATCH_PIPELINE)

        assert result.summary == "Score 60/100."
        assert "Synthesis summary is empty" in result.validation.issues

    def test_is_generic(self):
        """Test generic phrase detection."""
        assert is_generic("A Team Player with drive")
        assert not is_generic("Migrated PostgreSQL clusters")


class TestAsk:
    """Tests for the schema-validated LLM call."""

    @pytest.mark.asyncio
    async def test_wrong_shape_is_malformed(self):
        """Test that a reply not matching the schema raises MalformedResponseError."""
        llm = FakeLLM(default={"summary": 42})

        with pytest.raises(MalformedResponseError) as exc_info:
            await ask(llm, "system", "prompt", Synthesis)

        assert exc_info.value.raw == '{"summary": 42}'


class TestSimpleMatchScorer:
    """Tests for SimpleMatchScorer."""

    @pytest.mark.asyncio
    async def test_single_call_with_clamping(self):
        """Test that one call produces a bounded breakdown."""
        llm = FakeLLM(
            {
                prompts.SIMPLE_JOB_MATCH: {
                    "skills_match": 40,
                    "experience_match": 20,
                    "keyword_overlap": 15,
                    "qualifications": 10,
                    "industry_fit": 5,
                    "summary": "Close match",
                }
            }
        )

        result = await SimpleMatchScorer(llm).score(RESUME_TEXT, JOB_TEXT)

        assert llm.calls == [prompts.SIMPLE_JOB_MATCH]
        assert result.breakdown.skills_match == 30
        assert result.score == 80
        assert result.warnings


class TestMatchScorer:
    """Tests for MatchScorer."""

    @pytest.mark.asyncio
    async def test_provider_created_lazily(self):
        """Test that the LLM factory is only called when scoring."""
        calls = []

        def factory():
            calls.append(1)
            return FakeLLM(default={"summary": "ok"})

        scorer = MatchScorer("simple", factory)
        assert calls == []

        await scorer.score(RESUME_TEXT, JOB_TEXT)
        await scorer.score(RESUME_TEXT, JOB_TEXT)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_misconfigured_provider_is_unavailable(self):
        """Test that a provider configuration error surfaces as AIUnavailableError."""

        def factory():
            raise ValueError("OPENAI_API_KEY is not configured")

        scorer = MatchScorer("collaborative", factory)

        with pytest.raises(AIUnavailableError, match="OPENAI_API_KEY"):
            await scorer.score(RESUME_TEXT, JOB_TEXT)

    @pytest.mark.asyncio
    async def test_collaborative_mode_runs_pipeline(self):
        """Test that collaborative mode goes through every agent."""
        llm = FakeLLM(default={"summary": "Backend match"})
        scorer = MatchScorer("collaborative", lambda: llm)

        result = await scorer.score(RESUME_TEXT, JOB_TEXT)

        assert len(llm.calls) == 5
        assert result.validation is not None
