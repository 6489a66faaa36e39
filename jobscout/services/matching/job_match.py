"""Collaborative resume-to-job matching."""

from jobscout.schemas.matching import (
    EvidencePoint,
    FeedbackAnalysis,
    JobDataAnalysis,
    JobMatchResult,
)
from jobscout.services.llm.base import LLMProvider
from jobscout.services.matching import prompts
from jobscout.services.matching.agents import PipelineDefinition, build_orchestrator
from jobscout.services.matching.pipeline import StageContext
from jobscout.services.matching.progress import ProgressChannel
from jobscout.services.matching.scoring import (
    JOB_MATCH_ADJUSTABLE,
    calculate_allowed_variance,
    calculate_job_match_score,
)
from jobscout.services.matching.tools import JobMatchToolData, analyze_job_match


def _tool_summary(ctx: StageContext) -> str:
    tools: JobMatchToolData = ctx.tool_data
    return (
        f"Keyword overlap: {tools.overlap.percent:.0f}% "
        f"({len(tools.overlap.matched)}/{tools.overlap.total})\n"
        f"Matched keywords: {', '.join(tools.overlap.matched[:25]) or 'none'}\n"
        f"Missing keywords: {', '.join(tools.overlap.missing[:25]) or 'none'}\n"
        f"Candidate experience: {tools.candidate_years} years\n"
        f"Required experience: {tools.required_years or 'not stated'} years"
    )


def _fallback_feedback(ctx: StageContext) -> FeedbackAnalysis:
    tools: JobMatchToolData = ctx.tool_data
    strengths = [
        EvidencePoint(point=f"Resume mentions {keyword}", evidence=keyword)
        for keyword in tools.overlap.matched[:3]
    ]
    weaknesses = [
        EvidencePoint(point=f"Job asks for {keyword}", evidence=keyword)
        for keyword in tools.overlap.missing[:3]
    ]
    if tools.required_years and tools.candidate_years < tools.required_years:
        weaknesses.append(
            EvidencePoint(
                point=f"{tools.candidate_years} years of experience, "
                f"{tools.required_years} required"
            )
        )
    suggestions = [
        f"Show concrete experience with {keyword}" for keyword in tools.overlap.missing[:3]
    ]
    return FeedbackAnalysis(
        strengths=strengths, weaknesses=weaknesses, suggestions=suggestions
    )


JOB_MATCH_PIPELINE = PipelineDefinition(
    analysis_type="job-match",
    result_type=JobMatchResult,
    adjustable=JOB_MATCH_ADJUSTABLE,
    data_prompt=prompts.DATA_ANALYZER_JOB,
    data_schema=JobDataAnalysis,
    tool_summary=_tool_summary,
    fallback_feedback=_fallback_feedback,
)


def build_job_match_context(resume_text: str, job_text: str) -> StageContext:
    tools = analyze_job_match(resume_text, job_text)
    baseline = calculate_job_match_score(tools)
    return StageContext(
        analysis_type="job-match",
        resume_text=resume_text,
        job_text=job_text,
        tool_data=tools,
        baseline=baseline,
        allowed_variance=calculate_allowed_variance(baseline.total, "job-match"),
    )


async def collaborative_job_match(
    llm: LLMProvider,
    resume_text: str,
    job_text: str,
    progress: ProgressChannel | None = None,
    **orchestrator_options,
) -> JobMatchResult:
    """Score how well a resume fits a job using the six-stage pipeline."""
    context = build_job_match_context(resume_text, job_text)
    orchestrator = build_orchestrator(JOB_MATCH_PIPELINE, llm, **orchestrator_options)
    return await orchestrator.run(context, progress)
