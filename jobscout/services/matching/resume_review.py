"""Collaborative standalone resume review."""

from jobscout.schemas.matching import (
    EvidencePoint,
    FeedbackAnalysis,
    ResumeDataAnalysis,
    ResumeReviewResult,
)
from jobscout.services.llm.base import LLMProvider
from jobscout.services.matching import prompts
from jobscout.services.matching.agents import PipelineDefinition, build_orchestrator
from jobscout.services.matching.pipeline import StageContext
from jobscout.services.matching.progress import ProgressChannel
from jobscout.services.matching.scoring import (
    RESUME_REVIEW_ADJUSTABLE,
    calculate_allowed_variance,
    calculate_resume_score,
)
from jobscout.services.matching.tools import ResumeToolData, analyze_resume


def _tool_summary(ctx: StageContext) -> str:
    tools: ResumeToolData = ctx.tool_data
    return (
        f"Distinct keywords: {len(tools.keywords)}\n"
        f"Quantified achievements: {len(tools.achievements)} "
        f"({', '.join(tools.achievements[:10]) or 'none'})\n"
        f"Action verbs: {len(tools.verbs)} ({', '.join(tools.verbs) or 'none'})\n"
        f"Bullet lines: {tools.formatting.bullet_lines}, "
        f"sections: {tools.formatting.section_count}"
    )


def _fallback_feedback(ctx: StageContext) -> FeedbackAnalysis:
    tools: ResumeToolData = ctx.tool_data
    strengths = [
        EvidencePoint(point=f"Quantified result: {item}", evidence=item)
        for item in tools.achievements[:3]
    ]
    strengths += [
        EvidencePoint(point=f"Uses the action verb '{verb}'", evidence=verb)
        for verb in tools.verbs[:2]
    ]
    weaknesses = []
    suggestions = []
    if len(tools.achievements) < 3:
        weaknesses.append(EvidencePoint(point="Few quantified achievements"))
        suggestions.append("Add numbers to results: percentages, revenue, team size")
    if len(tools.verbs) < 5:
        weaknesses.append(EvidencePoint(point="Limited use of strong action verbs"))
        suggestions.append("Start bullet points with verbs such as led, built, reduced")
    if not tools.formatting.has_bullet_points:
        weaknesses.append(EvidencePoint(point="Experience is not broken into bullet points"))
        suggestions.append("List responsibilities and results as bullet points")
    return FeedbackAnalysis(
        strengths=strengths, weaknesses=weaknesses, suggestions=suggestions
    )


RESUME_REVIEW_PIPELINE = PipelineDefinition(
    analysis_type="resume",
    result_type=ResumeReviewResult,
    adjustable=RESUME_REVIEW_ADJUSTABLE,
    data_prompt=prompts.DATA_ANALYZER_RESUME,
    data_schema=ResumeDataAnalysis,
    tool_summary=_tool_summary,
    fallback_feedback=_fallback_feedback,
)


def build_resume_review_context(resume_text: str) -> StageContext:
    tools = analyze_resume(resume_text)
    baseline = calculate_resume_score(tools)
    return StageContext(
        analysis_type="resume",
        resume_text=resume_text,
        job_text=None,
        tool_data=tools,
        baseline=baseline,
        allowed_variance=calculate_allowed_variance(baseline.total, "resume"),
    )


async def collaborative_resume_review(
    llm: LLMProvider,
    resume_text: str,
    progress: ProgressChannel | None = None,
    **orchestrator_options,
) -> ResumeReviewResult:
    """Review a resume on its own using the six-stage pipeline."""
    context = build_resume_review_context(resume_text)
    orchestrator = build_orchestrator(RESUME_REVIEW_PIPELINE, llm, **orchestrator_options)
    return await orchestrator.run(context, progress)
