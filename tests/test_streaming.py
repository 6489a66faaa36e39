"""Tests for the Server-Sent Event frame generators."""

import asyncio
import json

import pytest
from conftest import match_result

from jobscout.core.exceptions import AIUnavailableError
from jobscout.routers.streaming import EMPTY_SNAPSHOT, collaborative_frames, log_snapshots
from jobscout.services.matching.progress import AgentStep, ProgressChannel, ProgressUpdate


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []
        self.on_sleep = None

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


async def collect(frames) -> list[dict]:
    return [json.loads(frame["data"]) async for frame in frames]


def stream(log_store, clock, automation_id=1, interval=1.0, max_seconds=3.0):
    return log_snapshots(
        log_store, automation_id, interval, max_seconds, clock=clock, sleep=clock.sleep
    )


class TestLogSnapshots:
    """Tests for log_snapshots."""

    @pytest.mark.asyncio
    async def test_unknown_automation(self, log_store):
        """Test that an empty snapshot is sent and polling continues until the limit."""
        clock = FakeClock()

        payloads = await collect(stream(log_store, clock))

        assert payloads == [EMPTY_SNAPSHOT]
        assert clock.sleeps == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_completed_run_sends_one_frame(self, log_store):
        """Test that a finished run is sent once and the stream ends."""
        log_store.start_run(1)
        log_store.log(1, "success", "Job saved successfully (1 total)")
        log_store.end_run(1)
        clock = FakeClock()

        payloads = await collect(stream(log_store, clock))

        assert len(payloads) == 1
        assert payloads[0]["isRunning"] is False
        assert payloads[0]["completedAt"] is not None
        assert [entry["message"] for entry in payloads[0]["logs"]] == [
            "Automation run started",
            "Job saved successfully (1 total)",
            "Automation run completed",
        ]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_follows_run_until_completion(self, log_store):
        """Test that snapshots are sent every tick until the run completes."""
        log_store.start_run(1)
        clock = FakeClock()

        def progress(tick):
            log_store.log(1, "info", f"tick {tick}")
            if tick == 2:
                log_store.end_run(1)

        clock.on_sleep = progress

        payloads = await collect(stream(log_store, clock, max_seconds=10))

        assert [p["isRunning"] for p in payloads] == [True, True, False]
        assert payloads[-1]["logs"][-1]["message"] == "Automation run completed"
        assert len(clock.sleeps) == 2

    @pytest.mark.asyncio
    async def test_stops_at_time_limit(self, log_store):
        """Test that a run that never finishes is streamed until the limit."""
        log_store.start_run(1)
        clock = FakeClock()

        payloads = await collect(stream(log_store, clock, max_seconds=3))

        assert len(payloads) == 4
        assert all(p["isRunning"] for p in payloads)
        assert log_store.is_running(1) is True

    @pytest.mark.asyncio
    async def test_closing_stream_leaves_run_alone(self, log_store):
        """Test that a disconnecting observer does not affect the run."""
        log_store.start_run(1)
        frames = stream(log_store, FakeClock())

        await frames.__anext__()
        await frames.aclose()

        assert log_store.is_running(1) is True
        log_store.log(1, "info", "still logging")
        assert log_store.get_logs(1)[-1].message == "still logging"


def _update(step: AgentStep, status: str) -> ProgressUpdate:
    return ProgressUpdate(step=step, status=status, agent_number=1, total_agents=6)


class TestCollaborativeFrames:
    """Tests for collaborative_frames."""

    @pytest.mark.asyncio
    async def test_progress_then_result(self):
        """Test that progress frames precede the result frame."""
        progress = ProgressChannel()

        async def analysis():
            progress.publish(_update(AgentStep.DATA_ANALYZER, "started"))
            progress.publish(_update(AgentStep.DATA_ANALYZER, "completed"))
            return match_result(70)

        payloads = await collect(collaborative_frames(analysis, progress))

        assert [(p.get("step"), p.get("status")) for p in payloads[:2]] == [
            ("data-analyzer", "started"),
            ("data-analyzer", "completed"),
        ]
        assert payloads[0]["agentNumber"] == 1
        assert payloads[-1]["type"] == "result"
        assert payloads[-1]["data"]["score"] == 70

    @pytest.mark.asyncio
    async def test_application_error_frame(self):
        """Test that a known failure becomes an error frame with its message."""
        progress = ProgressChannel()

        async def analysis():
            raise AIUnavailableError("Cannot connect to Ollama")

        payloads = await collect(collaborative_frames(analysis, progress))

        assert payloads == [{"type": "error", "message": "Cannot connect to Ollama"}]

    @pytest.mark.asyncio
    async def test_unexpected_error_frame(self):
        """Test that an unexpected crash is reported without internals."""
        progress = ProgressChannel()

        async def analysis():
            raise KeyError("secret")

        payloads = await collect(collaborative_frames(analysis, progress))

        assert payloads == [{"type": "error", "message": "Analysis failed"}]

    @pytest.mark.asyncio
    async def test_disconnect_cancels_analysis(self):
        """Test that closing the stream cancels the running analysis."""
        progress = ProgressChannel()
        cancelled = asyncio.Event()

        async def analysis():
            progress.publish(_update(AgentStep.DATA_ANALYZER, "started"))
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        frames = collaborative_frames(analysis, progress)
        first = json.loads((await frames.__anext__())["data"])
        await frames.aclose()
        await asyncio.wait_for(cancelled.wait(), timeout=1)

        assert first["step"] == "data-analyzer"
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_unconsumed_stream_never_starts_analysis(self):
        """Test that a stream closed before its first frame creates no analysis."""
        started = []

        async def analysis():
            started.append(True)
            return match_result(70)

        frames = collaborative_frames(analysis, ProgressChannel())
        await frames.aclose()

        assert started == []
