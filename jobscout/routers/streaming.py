"""Server-Sent Event frame generators.

Generators yield plain dicts for ``EventSourceResponse``. When a client
disconnects the response closes the generator, which ends the subscription
but never the automation run being observed.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable

from jobscout.core.exceptions import ApplicationError
from jobscout.core.log_store import RunLogStore
from jobscout.schemas.matching import ScoredResult
from jobscout.services.matching.progress import ProgressChannel

logger = logging.getLogger(__name__)

EMPTY_SNAPSHOT = {"logs": [], "isRunning": False}


def _frame(payload: dict) -> dict:
    return {"data": json.dumps(payload, ensure_ascii=False)}


async def log_snapshots(
    log_store: RunLogStore,
    automation_id: int,
    interval: float,
    max_seconds: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[dict]:
    """Poll the log store and emit a snapshot per tick.

    Stops once the run has completed or ``max_seconds`` have passed.
    """
    deadline = clock() + max_seconds

    snapshot = log_store.get_store(automation_id)
    yield _frame(snapshot.to_dict() if snapshot else EMPTY_SNAPSHOT)
    if snapshot and not snapshot.is_running and snapshot.completed_at:
        return

    while clock() < deadline:
        await sleep(interval)
        snapshot = log_store.get_store(automation_id)
        if snapshot is None:
            continue
        yield _frame(snapshot.to_dict())
        if not snapshot.is_running and snapshot.completed_at:
            return
    logger.debug(f"Log stream for automation {automation_id} reached its time limit")


async def _close_when_done(
    start: Callable[[], Awaitable[ScoredResult]], progress: ProgressChannel
) -> ScoredResult:
    try:
        return await start()
    finally:
        progress.close()


async def collaborative_frames(
    start: Callable[[], Awaitable[ScoredResult]], progress: ProgressChannel
) -> AsyncIterator[dict]:
    """Relay progress updates, then the final result or an error frame.

    ``start`` begins the analysis, which must publish to ``progress``. It is
    only called once the stream is consumed. If the client goes away the
    analysis is cancelled, since nobody is left to receive its result.
    """
    task = asyncio.create_task(_close_when_done(start, progress))
    try:
        async for update in progress:
            yield _frame(update.to_frame())

        try:
            result = await task
        except ApplicationError as e:
            logger.warning(f"Collaborative analysis failed: {e.message}")
            yield _frame({"type": "error", "message": e.message})
        except Exception:
            logger.exception("Collaborative analysis crashed")
            yield _frame({"type": "error", "message": "Analysis failed"})
        else:
            yield _frame({"type": "result", "data": result.model_dump(mode="json")})
    finally:
        if not task.done():
            task.cancel()
