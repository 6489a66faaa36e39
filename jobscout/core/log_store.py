"""In-memory, per-automation run log buffers.

The store is the user-facing view of a background run: the runner appends,
any number of HTTP observers poll ``get_store`` and receive copies.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from jobscout.core.storage import utc_now

logger = logging.getLogger(__name__)

LogLevel = Literal["info", "success", "warning", "error"]

MAX_LOGS_PER_RUN = 500
LOG_RETENTION_SECONDS = 3600


@dataclass(frozen=True)
class AutomationLog:
    """A single user-facing log line."""

    timestamp: datetime
    level: LogLevel
    message: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data


@dataclass
class LogSnapshot:
    """Read-only copy of one automation's log buffer."""

    logs: list[AutomationLog]
    is_running: bool
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [entry.to_dict() for entry in self.logs],
            "isRunning": self.is_running,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


@dataclass
class _RunBuffer:
    logs: deque[AutomationLog]
    is_running: bool = True
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None
    eviction: asyncio.TimerHandle | None = None


class RunLogStore:
    """Bounded log buffers keyed by automation id."""

    def __init__(
        self,
        max_entries: int = MAX_LOGS_PER_RUN,
        retention_seconds: float = LOG_RETENTION_SECONDS,
    ):
        self.max_entries = max_entries
        self.retention_seconds = retention_seconds
        self._buffers: dict[int, _RunBuffer] = {}

    def start_run(self, automation_id: int) -> None:
        """Reset the buffer for a new run and mark it running."""
        previous = self._buffers.get(automation_id)
        if previous and previous.eviction:
            previous.eviction.cancel()

        self._buffers[automation_id] = _RunBuffer(
            logs=deque(maxlen=self.max_entries)
        )
        self.log(automation_id, "info", "Automation run started")

    def log(
        self,
        automation_id: int,
        level: LogLevel,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append an entry; unknown or finished runs are ignored with a warning."""
        buffer = self._buffers.get(automation_id)
        if buffer is None or not buffer.is_running:
            logger.warning(
                f"Log for automation {automation_id} dropped, no active run: {message}"
            )
            return

        buffer.logs.append(
            AutomationLog(
                timestamp=utc_now(),
                level=level,
                message=message,
                metadata=dict(metadata) if metadata else None,
            )
        )

    def end_run(self, automation_id: int) -> None:
        """Mark the run completed and schedule its buffer for eviction."""
        buffer = self._buffers.get(automation_id)
        if buffer is None or not buffer.is_running:
            logger.warning(f"end_run for automation {automation_id} without active run")
            return

        self.log(automation_id, "info", "Automation run completed")
        buffer.is_running = False
        buffer.completed_at = utc_now()
        buffer.eviction = self._schedule_eviction(automation_id, buffer)

    def _schedule_eviction(
        self, automation_id: int, buffer: _RunBuffer
    ) -> asyncio.TimerHandle | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Without a loop, expiry is enforced lazily on read.
            return None
        return loop.call_later(
            self.retention_seconds, self._evict, automation_id, buffer
        )

    def _evict(self, automation_id: int, buffer: _RunBuffer) -> None:
        # A newer run may have replaced the buffer since eviction was scheduled.
        if self._buffers.get(automation_id) is buffer:
            del self._buffers[automation_id]
            logger.debug(f"Evicted run logs for automation {automation_id}")

    def _current(self, automation_id: int) -> _RunBuffer | None:
        buffer = self._buffers.get(automation_id)
        if buffer is None:
            return None
        if buffer.completed_at is not None:
            age = (utc_now() - buffer.completed_at).total_seconds()
            if age >= self.retention_seconds:
                self._evict(automation_id, buffer)
                return None
        return buffer

    def get_store(self, automation_id: int) -> LogSnapshot | None:
        """Return a snapshot of the buffer, or None if nothing is retained."""
        buffer = self._current(automation_id)
        if buffer is None:
            return None
        return LogSnapshot(
            logs=list(buffer.logs),
            is_running=buffer.is_running,
            started_at=buffer.started_at,
            completed_at=buffer.completed_at,
        )

    def get_logs(self, automation_id: int) -> list[AutomationLog]:
        """Return a copy of the log entries for an automation."""
        buffer = self._current(automation_id)
        return list(buffer.logs) if buffer else []

    def is_running(self, automation_id: int) -> bool:
        buffer = self._buffers.get(automation_id)
        return bool(buffer and buffer.is_running)

    def clear_logs(self, automation_id: int) -> None:
        """Drop the buffer for an automation, running or not."""
        buffer = self._buffers.pop(automation_id, None)
        if buffer and buffer.eviction:
            buffer.eviction.cancel()
