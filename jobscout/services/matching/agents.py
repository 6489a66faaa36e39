"""Agent stages shared by the job match and resume review pipelines."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from jobscout.core.config import settings
from jobscout.core.exceptions import MalformedResponseError
from jobscout.schemas.matching import (
    AnalysisCategory,
    EvidencePoint,
    FeedbackAnalysis,
    KeywordAnalysis,
    ScoreBreakdown,
    ScoredResult,
    ScoringOutcome,
    ScoringProposal,
    Synthesis,
    ValidationReport,
)
from jobscout.services.llm.base import LLMProvider
from jobscout.services.matching import prompts
from jobscout.services.matching.pipeline import (
    CollaborativeOrchestrator,
    Stage,
    StageContext,
)
from jobscout.services.matching.progress import AgentStep
from jobscout.services.matching.scoring import apply_adjustments
from jobscout.services.matching.tools import quote_found

logger = logging.getLogger(__name__)

GENERIC_PHRASES = (
    "strong candidate",
    "good fit",
    "great fit",
    "team player",
    "excellent communication",
    "hard worker",
    "detail-oriented",
    "well-rounded",
    "solid background",
)

MAX_SCORE_MISMATCH = 2


@dataclass(frozen=True)
class PipelineDefinition:
    """What differs between the job match and resume review pipelines."""

    analysis_type: str
    result_type: type[ScoredResult]
    adjustable: tuple[str, ...]
    data_prompt: str
    data_schema: type[BaseModel]
    tool_summary: Callable[[StageContext], str]
    fallback_feedback: Callable[[StageContext], FeedbackAnalysis]


async def ask(
    llm: LLMProvider, system: str, prompt: str, schema: type[BaseModel]
) -> BaseModel:
    """One deterministic JSON-mode call validated against ``schema``."""
    data = await llm.generate_json(system, prompt, temperature=0.0)
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response does not match {schema.__name__}: {e.error_count()} errors",
            raw=json.dumps(data)[:500],
        ) from e


def _dump(model: BaseModel | None) -> str:
    return model.model_dump_json(indent=1) if model else "{}"


def is_generic(point: str) -> bool:
    lowered = point.lower()
    return any(phrase in lowered for phrase in GENERIC_PHRASES)


def build_stages(definition: PipelineDefinition, llm: LLMProvider) -> list[Stage]:
    """Stage descriptors in their fixed execution order."""

    def source(ctx: StageContext) -> str:
        return prompts.source_block(ctx.resume_text, ctx.job_text)

    async def data_analyzer(ctx: StageContext) -> BaseModel:
        prompt = f"{source(ctx)}\n\nTOOL DATA:\n{definition.tool_summary(ctx)}"
        return await ask(llm, definition.data_prompt, prompt, definition.data_schema)

    async def keyword_expert(ctx: StageContext) -> BaseModel:
        prompt = (
            f"{source(ctx)}\n\nTOOL DATA:\n{definition.tool_summary(ctx)}\n\n"
            f"DATA ANALYSIS:\n{_dump(ctx.outputs.get(AgentStep.DATA_ANALYZER))}"
        )
        return await ask(llm, prompts.KEYWORD_EXPERT, prompt, KeywordAnalysis)

    async def scoring_specialist(ctx: StageContext) -> BaseModel:
        baseline = ctx.baseline
        prompt = (
            f"{source(ctx)}\n\n"
            f"BASELINE SCORE: {baseline.total}/100 "
            f"(allowed variance +/- {ctx.allowed_variance})\n"
            f"{prompts.format_breakdown(baseline.sub_scores(), baseline.BOUNDS, definition.adjustable)}\n\n"
            f"DATA ANALYSIS:\n{_dump(ctx.outputs.get(AgentStep.DATA_ANALYZER))}\n\n"
            f"KEYWORD ANALYSIS:\n{_dump(ctx.outputs.get(AgentStep.KEYWORD_EXPERT))}"
        )
        proposal = await ask(llm, prompts.SCORING_SPECIALIST, prompt, ScoringProposal)
        breakdown, applied, notes = apply_adjustments(
            baseline, proposal.adjustments, definition.adjustable, ctx.allowed_variance
        )
        return ScoringOutcome(
            breakdown=breakdown,
            stated_score=proposal.final_score,
            applied=applied,
            notes=notes,
        )

    async def feedback_expert(ctx: StageContext) -> BaseModel:
        scoring = ctx.outputs[AgentStep.SCORING_SPECIALIST]
        prompt = (
            f"{source(ctx)}\n\nFINAL SCORE: {scoring.breakdown.total}/100\n"
            f"SCORING:\n{_dump(scoring)}\n\n"
            f"KEYWORD ANALYSIS:\n{_dump(ctx.outputs.get(AgentStep.KEYWORD_EXPERT))}"
        )
        return await ask(llm, prompts.FEEDBACK_EXPERT, prompt, FeedbackAnalysis)

    async def synthesis_coordinator(ctx: StageContext) -> BaseModel:
        scoring = ctx.outputs[AgentStep.SCORING_SPECIALIST]
        prompt = (
            f"SCORE: {scoring.breakdown.total}/100\n"
            f"SCORING:\n{_dump(scoring)}\n\n"
            f"FEEDBACK:\n{_dump(ctx.outputs.get(AgentStep.FEEDBACK_EXPERT))}\n\n"
            f"KEYWORDS:\n{_dump(ctx.outputs.get(AgentStep.KEYWORD_EXPERT))}"
        )
        return await ask(llm, prompts.SYNTHESIS_COORDINATOR, prompt, Synthesis)

    async def validation(ctx: StageContext) -> BaseModel:
        return validate_collaborative_output(ctx, definition)

    return [
        Stage(AgentStep.DATA_ANALYZER, data_analyzer),
        Stage(AgentStep.KEYWORD_EXPERT, keyword_expert),
        Stage(AgentStep.SCORING_SPECIALIST, scoring_specialist),
        Stage(AgentStep.FEEDBACK_EXPERT, feedback_expert),
        Stage(
            AgentStep.SYNTHESIS_COORDINATOR,
            synthesis_coordinator,
            timeout=settings.ai_synthesis_timeout_seconds,
            on_timeout=fallback_synthesis,
        ),
        Stage(AgentStep.VALIDATION, validation),
    ]


def build_orchestrator(
    definition: PipelineDefinition, llm: LLMProvider, **kwargs
) -> CollaborativeOrchestrator:
    return CollaborativeOrchestrator(
        build_stages(definition, llm),
        fallback=lambda ctx: baseline_result(ctx, definition),
        **kwargs,
    )


def _breakdown_categories(breakdown: ScoreBreakdown) -> list[AnalysisCategory]:
    return [
        AnalysisCategory(
            category=f"{name.replace('_', ' ').title()} ({value}/{breakdown.BOUNDS[name]} pts)",
            points=[],
        )
        for name, value in breakdown.sub_scores().items()
    ]


def fallback_synthesis(ctx: StageContext) -> Synthesis:
    """Report assembled from prior stages when synthesis runs out of time."""
    scoring = ctx.outputs.get(AgentStep.SCORING_SPECIALIST)
    feedback = ctx.outputs.get(AgentStep.FEEDBACK_EXPERT)
    breakdown = scoring.breakdown if scoring else ctx.baseline

    categories = _breakdown_categories(breakdown)
    if scoring:
        for category, name in zip(categories, breakdown.BOUNDS, strict=True):
            category.points = [
                a.reason for a in scoring.applied if a.criterion == name and a.reason
            ]

    comments = list(feedback.suggestions[:3]) if feedback else []
    return Synthesis(
        summary=f"Score {breakdown.total}/100 based on the specialists' analysis.",
        detailed_analysis=categories,
        additional_comments=comments,
    )


def baseline_result(ctx: StageContext, definition: PipelineDefinition) -> ScoredResult:
    """Result built only from deterministic analysis."""
    feedback = ctx.outputs.get(AgentStep.FEEDBACK_EXPERT)
    if not isinstance(feedback, FeedbackAnalysis):
        feedback = definition.fallback_feedback(ctx)
    return definition.result_type(
        breakdown=ctx.baseline,
        summary=f"Baseline score {ctx.baseline.total}/100 from objective metrics.",
        strengths=feedback.strengths,
        weaknesses=feedback.weaknesses,
        suggestions=feedback.suggestions,
        detailed_analysis=_breakdown_categories(ctx.baseline),
        fallback=True,
        warnings=list(ctx.warnings),
    )


def _supported(points: list[EvidencePoint], sources: tuple[str, ...]) -> list[EvidencePoint]:
    return [
        p for p in points if quote_found(p.evidence, *sources) and not is_generic(p.point)
    ]


def validate_collaborative_output(
    ctx: StageContext, definition: PipelineDefinition
) -> ScoredResult:
    """Cross-check the specialists and assemble the final result.

    The total is always recomputed from the sub-scores. Feedback that cannot
    be traced to a quote in the source text is dropped; if nothing survives
    the result is REJECTED and deterministic feedback takes its place.
    """
    scoring: ScoringOutcome = ctx.outputs[AgentStep.SCORING_SPECIALIST]
    feedback: FeedbackAnalysis = ctx.outputs[AgentStep.FEEDBACK_EXPERT]
    synthesis: Synthesis = ctx.outputs[AgentStep.SYNTHESIS_COORDINATOR]
    breakdown = scoring.breakdown
    sources = ctx.sources

    issues: list[str] = []
    rejected = False

    recomputed = sum(breakdown.sub_scores().values())
    if (
        scoring.stated_score is not None
        and abs(scoring.stated_score - recomputed) > MAX_SCORE_MISMATCH
    ):
        issues.append(
            f"Stated score {scoring.stated_score} does not match sub-score sum {recomputed}"
        )
    issues.extend(scoring.notes)

    for adjustment in scoring.applied:
        if not quote_found(adjustment.evidence, *sources):
            issues.append(f"Adjustment to {adjustment.criterion} has no supporting quote")

    strengths = _supported(feedback.strengths, sources)
    weaknesses = _supported(feedback.weaknesses, sources)
    dropped = len(feedback.strengths) + len(feedback.weaknesses) - len(strengths) - len(weaknesses)
    if dropped:
        issues.append(f"Removed {dropped} generic or unquoted feedback points")

    suggestions = feedback.suggestions
    if not strengths and not weaknesses:
        rejected = True
        issues.append("Feedback is generic or not grounded in the source text")
        replacement = definition.fallback_feedback(ctx)
        strengths, weaknesses = replacement.strengths, replacement.weaknesses
        suggestions = suggestions or replacement.suggestions

    if recomputed >= 75 and len(weaknesses) > 2 * max(len(strengths), 1):
        issues.append("High score contradicts predominantly negative feedback")
    if recomputed < 40 and not weaknesses:
        issues.append("Low score is not explained by any weakness")
    if not synthesis.summary.strip():
        issues.append("Synthesis summary is empty")

    if rejected:
        verdict = "REJECTED"
    elif issues:
        verdict = "NEEDS REVISION"
    else:
        verdict = "APPROVED"
    logger.info(
        f"Validation {verdict} for {ctx.analysis_type}: score {recomputed}, {len(issues)} issues"
    )

    return definition.result_type(
        breakdown=breakdown,
        summary=synthesis.summary.strip() or f"Score {recomputed}/100.",
        strengths=strengths,
        weaknesses=weaknesses,
        suggestions=suggestions,
        detailed_analysis=synthesis.detailed_analysis,
        additional_comments=synthesis.additional_comments,
        validation=ValidationReport(
            verdict=verdict, issues=issues, recomputed_total=recomputed
        ),
        fallback=ctx.used_fallback,
        warnings=list(ctx.warnings),
    )
