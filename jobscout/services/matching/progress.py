"""Progress events emitted by the collaborative pipeline."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AgentStep(StrEnum):
    DATA_ANALYZER = "data-analyzer"
    KEYWORD_EXPERT = "keyword-expert"
    SCORING_SPECIALIST = "scoring-specialist"
    FEEDBACK_EXPERT = "feedback-expert"
    SYNTHESIS_COORDINATOR = "synthesis-coordinator"
    VALIDATION = "validation"
    COMPLETE = "complete"


AGENT_NAMES = {
    AgentStep.DATA_ANALYZER: "Data Analyzer",
    AgentStep.KEYWORD_EXPERT: "Keyword Expert",
    AgentStep.SCORING_SPECIALIST: "Scoring Specialist",
    AgentStep.FEEDBACK_EXPERT: "Feedback Expert",
    AgentStep.SYNTHESIS_COORDINATOR: "Synthesis Coordinator",
    AgentStep.VALIDATION: "Quality Assurance",
}

# Typical stage durations, for client-side progress bars.
ESTIMATED_DURATION_MS = {
    AgentStep.DATA_ANALYZER: 8000,
    AgentStep.KEYWORD_EXPERT: 8000,
    AgentStep.SCORING_SPECIALIST: 10000,
    AgentStep.FEEDBACK_EXPERT: 8000,
    AgentStep.SYNTHESIS_COORDINATOR: 12000,
    AgentStep.VALIDATION: 2000,
}

StepStatus = Literal["started", "completed", "error"]


class ProgressUpdate(BaseModel):
    """A single progress frame."""

    step: AgentStep
    status: StepStatus
    message: str = ""
    agent_number: int | None = Field(default=None, serialization_alias="agentNumber")
    total_agents: int | None = Field(default=None, serialization_alias="totalAgents")
    estimated_duration_ms: int | None = Field(
        default=None, serialization_alias="estimatedDurationMs"
    )
    timestamp: float = Field(default_factory=lambda: time.time() * 1000)

    def to_frame(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProgressChannel:
    """Single-consumer queue of progress updates.

    Publishing never blocks, so a slow or vanished consumer cannot stall the
    pipeline. ``close()`` ends iteration for the consumer.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def publish(self, update: ProgressUpdate) -> None:
        if self._closed:
            logger.debug(f"Progress update after close dropped: {update.step}")
            return
        self._queue.put_nowait(update)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressUpdate]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item
