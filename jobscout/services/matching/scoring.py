"""Baseline scoring and the bounds agents must stay within.

The baseline is computed from deterministic text analysis only. Agents may
adjust the subjective criteria, but the adjusted total is kept within an
allowed variance of the baseline.
"""

import logging
from typing import Literal

from jobscout.schemas.matching import (
    JobMatchBreakdown,
    ResumeReviewBreakdown,
    ScoreAdjustment,
    ScoreBreakdown,
)
from jobscout.services.matching.tools import JobMatchToolData, ResumeToolData

logger = logging.getLogger(__name__)

AnalysisType = Literal["resume", "job-match"]

JOB_MATCH_ADJUSTABLE = ("qualifications", "industry_fit")
RESUME_REVIEW_ADJUSTABLE = ("summary", "experience_clarity", "skills_section", "grammar")


def _keywords_points(count: int) -> float:
    if count == 0:
        return 0
    if count < 5:
        return min(count * 1.6, 8)
    if count < 10:
        return 8 + (count - 5) * 1.2
    if count < 15:
        return 14 + (count - 10) * 1.2
    return 20


def _achievement_points(count: int) -> float:
    if count == 0:
        return 0
    if count < 3:
        return count * 3.3
    if count < 6:
        return 10 + (count - 3) * 2.7
    if count < 10:
        return 18 + (count - 6) * 1.75
    return 25


def _verb_points(count: int) -> float:
    if count == 0:
        return 0
    if count < 5:
        return count
    if count < 10:
        return 5 + (count - 5) * 0.6
    if count < 15:
        return 8 + (count - 10) * 0.4
    return 10


def calculate_resume_score(tools: ResumeToolData) -> ResumeReviewBreakdown:
    """Baseline resume review breakdown."""
    formatting = 8 if tools.formatting.has_bullet_points else 3
    sections = tools.formatting.section_count
    if sections < 3:
        formatting += 2
    elif sections < 5:
        formatting += 5
    else:
        formatting += 7

    breakdown, _ = ResumeReviewBreakdown.clamped(
        {
            "keywords": _keywords_points(len(tools.keywords)),
            "achievements": _achievement_points(len(tools.achievements)),
            "action_verbs": _verb_points(len(tools.verbs)),
            "formatting": formatting,
            # Subjective criteria start in the middle for agents to adjust.
            "summary": 6,
            "experience_clarity": 6,
            "skills_section": 3,
            "grammar": 4,
        }
    )
    return breakdown


def _experience_points(candidate_years: int, required_years: int) -> float:
    if required_years == 0:
        return 15
    ratio = candidate_years / required_years
    if ratio >= 1.5:
        return 25
    if ratio >= 1.0:
        return 20
    if ratio >= 0.75:
        return 15
    if ratio >= 0.5:
        return 10
    return ratio * 20


def calculate_job_match_score(tools: JobMatchToolData) -> JobMatchBreakdown:
    """Baseline job match breakdown."""
    matched = len(tools.overlap.matched)
    required = tools.overlap.total

    if required == 0:
        skills = 15
    else:
        skills = round(matched / required * 30)
        if matched > 0 and skills < 5:
            skills = 5

    keyword_points = round(tools.overlap.percent / 100 * 20)
    if tools.overlap.percent > 0 and keyword_points < 2:
        keyword_points = 2

    breakdown, _ = JobMatchBreakdown.clamped(
        {
            "skills_match": skills,
            "experience_match": _experience_points(
                tools.candidate_years, tools.required_years
            ),
            "keyword_overlap": keyword_points,
            "qualifications": 8,
            "industry_fit": 5,
        }
    )
    return breakdown


def calculate_allowed_variance(baseline: int, analysis_type: AnalysisType) -> int:
    """How far the agent total may move away from the baseline."""
    if 40 <= baseline <= 60:
        return 12 if analysis_type == "resume" else 15
    if 30 <= baseline < 40 or 60 < baseline <= 70:
        return 10
    if baseline < 30 or baseline > 80:
        return 7
    return 10


def validate_score(proposed: int, baseline: int, allowed_variance: int = 10) -> int:
    """Clamp a proposed total into ``baseline +/- allowed_variance``."""
    low = max(0, baseline - allowed_variance)
    high = min(100, baseline + allowed_variance)
    if proposed < low:
        logger.warning(f"Score {proposed} too low, adjusting to {low}")
        return low
    if proposed > high:
        logger.warning(f"Score {proposed} too high, adjusting to {high}")
        return high
    return round(proposed)


def apply_adjustments(
    baseline: ScoreBreakdown,
    adjustments: list[ScoreAdjustment],
    adjustable: tuple[str, ...],
    allowed_variance: int,
) -> tuple[ScoreBreakdown, list[ScoreAdjustment], list[str]]:
    """Apply agent adjustments to a baseline breakdown.

    Adjustments to fixed criteria are ignored, each sub-score is clamped to
    its bound, and the total is pulled back into the allowed variance band by
    shrinking the largest adjustments first.

    Returns:
        Tuple of (breakdown, adjustments that were applied, notes)
    """
    values = dict(baseline.sub_scores())
    applied = []
    notes = []

    for adjustment in adjustments:
        if adjustment.criterion not in adjustable:
            notes.append(f"Ignored adjustment to fixed criterion {adjustment.criterion}")
            continue
        values[adjustment.criterion] += adjustment.adjustment
        applied.append(adjustment)

    breakdown, clamp_notes = type(baseline).clamped(values)
    notes.extend(clamp_notes)
    values = breakdown.sub_scores()

    target = validate_score(breakdown.total, baseline.total, allowed_variance)
    excess = breakdown.total - target
    if excess:
        notes.append(
            f"Total {breakdown.total} outside {baseline.total} +/- {allowed_variance}, "
            f"constrained to {target}"
        )
        base_values = baseline.sub_scores()
        deltas = sorted(
            adjustable,
            key=lambda name: (values[name] - base_values[name]) * (1 if excess > 0 else -1),
            reverse=True,
        )
        for name in deltas:
            if excess == 0:
                break
            delta = values[name] - base_values[name]
            if excess > 0 and delta > 0:
                step = min(delta, excess)
            elif excess < 0 and delta < 0:
                step = max(delta, excess)
            else:
                continue
            values[name] -= step
            excess -= step
        breakdown = type(baseline)(**values)

    return breakdown, applied, notes
