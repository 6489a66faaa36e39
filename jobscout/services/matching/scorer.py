"""Match scorers used by the automation runner."""

import logging
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from jobscout.core.exceptions import AIUnavailableError
from jobscout.schemas.matching import EvidencePoint, JobMatchBreakdown, JobMatchResult
from jobscout.services.llm.base import LLMProvider
from jobscout.services.matching import prompts
from jobscout.services.matching.agents import ask
from jobscout.services.matching.job_match import collaborative_job_match
from jobscout.services.matching.progress import ProgressChannel
from jobscout.services.matching.text import truncate_for_model

logger = logging.getLogger(__name__)

MatchingMode = Literal["simple", "collaborative"]


class SimpleMatchReply(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    skills_match: float = 0
    experience_match: float = 0
    keyword_overlap: float = 0
    qualifications: float = 0
    industry_fit: float = 0
    summary: str = ""
    strengths: list[EvidencePoint] = Field(default_factory=list)
    weaknesses: list[EvidencePoint] = Field(default_factory=list)


class SimpleMatchScorer:
    """One LLM call scoring every bucket at once."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def score(self, resume_text: str, job_text: str) -> JobMatchResult:
        reply = await ask(
            self.llm,
            prompts.SIMPLE_JOB_MATCH,
            prompts.source_block(resume_text, job_text),
            SimpleMatchReply,
        )
        breakdown, notes = JobMatchBreakdown.clamped(reply.model_dump())
        if notes:
            logger.warning(f"Simple scorer returned out-of-range values: {notes}")
        return JobMatchResult(
            breakdown=breakdown,
            summary=reply.summary or f"Score {breakdown.total}/100.",
            strengths=reply.strengths,
            weaknesses=reply.weaknesses,
            warnings=notes,
        )


class MatchScorer:
    """Scores a resume against a posting with the configured strategy.

    The LLM provider is created on first use, so a misconfigured provider
    only fails runs that actually need to score something.
    """

    def __init__(
        self,
        mode: MatchingMode,
        llm_factory: Callable[[], LLMProvider],
        **orchestrator_options,
    ):
        self.mode = mode
        self.llm_factory = llm_factory
        self.orchestrator_options = orchestrator_options
        self._llm: LLMProvider | None = None

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            try:
                self._llm = self.llm_factory()
            except ValueError as e:
                raise AIUnavailableError(str(e)) from e
        return self._llm

    async def score(
        self,
        resume_text: str,
        job_text: str,
        progress: ProgressChannel | None = None,
    ) -> JobMatchResult:
        """Score one posting.

        Raises:
            StageError: a collaborative stage failed after its retries
            MalformedResponseError: the simple scorer got unusable JSON
            AIUnavailableError: the LLM provider could not be reached
        """
        llm = self.llm
        resume_text = truncate_for_model(resume_text, "resume", llm.is_local)
        job_text = truncate_for_model(job_text, "job", llm.is_local)

        if self.mode == "simple":
            return await SimpleMatchScorer(llm).score(resume_text, job_text)
        return await collaborative_job_match(
            llm, resume_text, job_text, progress, **self.orchestrator_options
        )
