"""Staged multi-agent pipeline.

A pipeline is an ordered list of ``Stage`` descriptors. The orchestrator
folds over them, storing each stage's validated output in the shared
``StageContext`` so later stages only ever see finalized results, and
publishes a ``started`` and a ``completed`` update around every stage.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from jobscout.core.config import settings
from jobscout.core.exceptions import (
    AIUnavailableError,
    LLMRequestError,
    MalformedResponseError,
    StageError,
)
from jobscout.schemas.matching import ScoreBreakdown, ScoredResult
from jobscout.services.matching.progress import (
    AGENT_NAMES,
    ESTIMATED_DURATION_MS,
    AgentStep,
    ProgressChannel,
    ProgressUpdate,
    StepStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Inputs and accumulated stage outputs of one collaborative run."""

    analysis_type: str
    resume_text: str
    job_text: str | None
    tool_data: Any
    baseline: ScoreBreakdown
    allowed_variance: int
    outputs: dict[AgentStep, BaseModel] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.resume_text, self.job_text or "")


@dataclass(frozen=True)
class Stage:
    """One agent step.

    ``on_timeout`` builds a substitute output when the stage exceeds its
    timeout; without it a timeout fails the pipeline.
    """

    name: AgentStep
    execute: Callable[[StageContext], Awaitable[BaseModel]]
    timeout: float | None = None
    on_timeout: Callable[[StageContext], BaseModel] | None = None


class CollaborativeOrchestrator:
    """Runs stages sequentially under an overall deadline."""

    def __init__(
        self,
        stages: list[Stage],
        fallback: Callable[[StageContext], ScoredResult],
        overall_timeout: float | None = None,
        stage_timeout: float | None = None,
        max_retries: int | None = None,
    ):
        if not stages:
            raise ValueError("A pipeline needs at least one stage")
        self.stages = stages
        self.fallback = fallback
        self.overall_timeout = overall_timeout or settings.ai_overall_timeout_seconds
        self.stage_timeout = stage_timeout or settings.ai_stage_timeout_seconds
        self.max_retries = (
            max_retries if max_retries is not None else settings.ai_stage_max_retries
        )

    def _emit(
        self,
        progress: ProgressChannel | None,
        step: AgentStep,
        status: StepStatus,
        message: str,
        agent_number: int | None = None,
    ) -> None:
        if progress is None:
            return
        progress.publish(
            ProgressUpdate(
                step=step,
                status=status,
                message=message,
                agent_number=agent_number,
                total_agents=len(self.stages) if agent_number else None,
                estimated_duration_ms=ESTIMATED_DURATION_MS.get(step),
            )
        )

    async def run(
        self, context: StageContext, progress: ProgressChannel | None = None
    ) -> ScoredResult:
        """Run every stage and return the final stage's result.

        Raises:
            StageError: a stage failed after its retries
            AIUnavailableError: the LLM provider could not be reached
        """
        try:
            return await asyncio.wait_for(
                self._run_stages(context, progress), self.overall_timeout
            )
        except TimeoutError:
            logger.warning(
                f"Collaborative {context.analysis_type} exceeded {self.overall_timeout:.0f}s, "
                f"using baseline result"
            )
            context.used_fallback = True
            context.warnings.append(
                "Collaborative analysis timed out - using baseline score"
            )
            result = self.fallback(context)
            self._emit(
                progress, AgentStep.COMPLETE, "completed", "Analysis complete (baseline)"
            )
            return result

    async def _run_stages(
        self, context: StageContext, progress: ProgressChannel | None
    ) -> ScoredResult:
        for number, stage in enumerate(self.stages, start=1):
            agent = AGENT_NAMES.get(stage.name, stage.name)
            self._emit(progress, stage.name, "started", f"{agent} working...", number)
            try:
                output = await self._execute(stage, context)
            except (StageError, AIUnavailableError) as e:
                self._emit(progress, stage.name, "error", e.message, number)
                raise
            context.outputs[stage.name] = output
            self._emit(progress, stage.name, "completed", f"{agent} finished", number)

        self._emit(progress, AgentStep.COMPLETE, "completed", "Analysis complete")
        result = context.outputs[self.stages[-1].name]
        if not isinstance(result, ScoredResult):
            raise StageError(self.stages[-1].name, "final stage produced no result")
        return result

    async def _execute(self, stage: Stage, context: StageContext) -> BaseModel:
        timeout = stage.timeout or self.stage_timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(stage.execute(context), timeout)
            except LLMRequestError as e:
                raise StageError(stage.name, e.message) from e
            except MalformedResponseError as e:
                if attempt > self.max_retries:
                    raise StageError(
                        stage.name, f"malformed response after {attempt} attempts: {e.message}"
                    ) from e
                logger.warning(
                    f"Stage {stage.name} returned malformed JSON, "
                    f"retry {attempt}/{self.max_retries}: {e.message}"
                )
            except TimeoutError as e:
                if stage.on_timeout is None:
                    raise StageError(stage.name, f"timed out after {timeout:.0f}s") from e
                agent = AGENT_NAMES.get(stage.name, stage.name)
                logger.warning(f"Stage {stage.name} timed out after {timeout:.0f}s, using fallback")
                context.used_fallback = True
                context.warnings.append(f"{agent} timed out - using simplified response")
                return stage.on_timeout(context)
