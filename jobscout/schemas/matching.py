"""Schemas for collaborative AI matching and resume review."""

import math
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from jobscout.core.exceptions import MalformedResponseError

Verdict = Literal["APPROVED", "NEEDS REVISION", "REJECTED"]


class ScoreBreakdown(BaseModel):
    """Independently bounded sub-scores whose sum is the total score."""

    BOUNDS: ClassVar[dict[str, int]] = {}

    def sub_scores(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in self.BOUNDS}

    @computed_field
    @property
    def total(self) -> int:
        return sum(self.sub_scores().values())

    @classmethod
    def max_total(cls) -> int:
        return sum(cls.BOUNDS.values())

    @classmethod
    def clamped(cls, values: dict[str, float]) -> tuple["ScoreBreakdown", list[str]]:
        """Build a breakdown, pulling out-of-range values into their bounds.

        Returns:
            Tuple of (breakdown, notes describing every clamp applied)

        Raises:
            MalformedResponseError: a value is NaN or infinite
        """
        notes = []
        kept = {}
        for name, bound in cls.BOUNDS.items():
            raw = values.get(name, 0)
            if not math.isfinite(raw):
                raise MalformedResponseError(f"{name} is not a finite number: {raw}")
            value = min(max(round(raw), 0), bound)
            if value != raw:
                notes.append(f"{name} {raw} clamped to {value} (bound 0-{bound})")
            kept[name] = value
        return cls(**kept), notes


class JobMatchBreakdown(ScoreBreakdown):
    BOUNDS: ClassVar[dict[str, int]] = {
        "skills_match": 30,
        "experience_match": 25,
        "keyword_overlap": 20,
        "qualifications": 15,
        "industry_fit": 10,
    }

    skills_match: int = Field(ge=0, le=30)
    experience_match: int = Field(ge=0, le=25)
    keyword_overlap: int = Field(ge=0, le=20)
    qualifications: int = Field(ge=0, le=15)
    industry_fit: int = Field(ge=0, le=10)


class ResumeReviewBreakdown(ScoreBreakdown):
    BOUNDS: ClassVar[dict[str, int]] = {
        "keywords": 20,
        "achievements": 25,
        "action_verbs": 10,
        "formatting": 15,
        "summary": 10,
        "experience_clarity": 10,
        "skills_section": 5,
        "grammar": 5,
    }

    keywords: int = Field(ge=0, le=20)
    achievements: int = Field(ge=0, le=25)
    action_verbs: int = Field(ge=0, le=10)
    formatting: int = Field(ge=0, le=15)
    summary: int = Field(ge=0, le=10)
    experience_clarity: int = Field(ge=0, le=10)
    skills_section: int = Field(ge=0, le=5)
    grammar: int = Field(ge=0, le=5)


# Agent outputs. Models are lenient about missing lists so a terse but
# well-formed reply still parses; wrong types are a malformed response.


class EvidencePoint(BaseModel):
    """A claim together with the source span that supports it."""

    point: str
    evidence: str = ""


class JobDataAnalysis(BaseModel):
    required_skills: list[str] = Field(default_factory=list)
    matched_skills: list[EvidencePoint] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)
    education_requirements: list[str] = Field(default_factory=list)


class ResumeDataAnalysis(BaseModel):
    sections: list[str] = Field(default_factory=list)
    achievements: list[EvidencePoint] = Field(default_factory=list)
    strong_verbs: list[str] = Field(default_factory=list)
    weak_verbs: list[str] = Field(default_factory=list)
    has_summary: bool = False


class KeywordAnalysis(BaseModel):
    matched_keywords: list[EvidencePoint] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)
    critical_missing: list[str] = Field(default_factory=list)


class ScoreAdjustment(BaseModel):
    criterion: str
    adjustment: int
    reason: str = ""
    evidence: str = ""

    @field_validator("criterion")
    @classmethod
    def _normalize_criterion(cls, value: str) -> str:
        return value.strip().lower().replace(" ", "_").replace("-", "_")


class ScoringProposal(BaseModel):
    """Raw scoring specialist reply."""

    adjustments: list[ScoreAdjustment] = Field(default_factory=list)
    final_score: int | None = None
    math: str = ""


class ScoringOutcome(BaseModel):
    """Scoring specialist reply after bounds and variance enforcement."""

    breakdown: JobMatchBreakdown | ResumeReviewBreakdown
    stated_score: int | None = None
    applied: list[ScoreAdjustment] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class FeedbackAnalysis(BaseModel):
    strengths: list[EvidencePoint] = Field(default_factory=list)
    weaknesses: list[EvidencePoint] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class AnalysisCategory(BaseModel):
    category: str
    points: list[str] = Field(default_factory=list)


class Synthesis(BaseModel):
    summary: str
    detailed_analysis: list[AnalysisCategory] = Field(default_factory=list)
    additional_comments: list[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    verdict: Verdict
    issues: list[str] = Field(default_factory=list)
    recomputed_total: int


class ScoredResult(BaseModel):
    """Common shape of a completed collaborative result."""

    summary: str
    strengths: list[EvidencePoint] = Field(default_factory=list)
    weaknesses: list[EvidencePoint] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    detailed_analysis: list[AnalysisCategory] = Field(default_factory=list)
    additional_comments: list[str] = Field(default_factory=list)
    validation: ValidationReport | None = None
    fallback: bool = False
    warnings: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def score(self) -> int:
        return self.breakdown.total


class JobMatchResult(ScoredResult):
    breakdown: JobMatchBreakdown


class ResumeReviewResult(ScoredResult):
    breakdown: ResumeReviewBreakdown


class SelectedModel(BaseModel):
    provider: Literal["ollama", "openai", "deepseek"]
    model: str = Field(..., min_length=1)


class CollaborativeMatchRequest(BaseModel):
    """Body of the collaborative job match endpoint."""

    selected_model: SelectedModel | None = Field(default=None, alias="selectedModel")
    resume_id: int | None = Field(default=None, alias="resumeId")
    resume: str | None = None
    job_id: int | None = Field(default=None, alias="jobId")
    job: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class CollaborativeReviewRequest(BaseModel):
    """Body of the collaborative resume review endpoint."""

    selected_model: SelectedModel | None = Field(default=None, alias="selectedModel")
    resume_id: int | None = Field(default=None, alias="resumeId")
    resume: str | None = None

    model_config = ConfigDict(populate_by_name=True)
