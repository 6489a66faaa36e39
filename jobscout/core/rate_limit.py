"""Rate limiting primitives.

Two algorithms live here:

* ``TokenBucketRateLimiter`` paces outbound calls. ``acquire()`` never fails,
  it only waits until a token is available.
* ``UserRateLimiter`` guards user-facing triggers on top of ``limits``.
  ``check()`` never waits, it rejects once a user has used up the moving
  window and reports how long until the oldest hit expires.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger(__name__)


class TokenBucketRateLimiter:
    """Token bucket with lazy refill computed on every acquire."""

    def __init__(
        self,
        capacity: int,
        refill_rate_ms: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate_ms < 1:
            raise ValueError("refill_rate_ms must be positive")

        self.capacity = capacity
        self.refill_rate_ms = refill_rate_ms
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> int:
        """Tokens currently available, without triggering a refill."""
        return self._tokens

    @property
    def _refill_interval(self) -> float:
        return self.refill_rate_ms / 1000

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        earned = int(elapsed // self._refill_interval)
        if earned <= 0:
            return

        self._tokens = min(self.capacity, self._tokens + earned)
        if self._tokens == self.capacity:
            # A full bucket does not bank credit for later.
            self._last_refill = now
        else:
            self._last_refill += earned * self._refill_interval

    async def acquire(self) -> None:
        """Wait until a token is available and consume it."""
        async with self._lock:
            self._refill()
            while self._tokens < 1:
                wait = self._refill_interval - (self._clock() - self._last_refill)
                logger.debug(f"Rate limiter empty, waiting {wait:.3f}s for refill")
                await self._sleep(max(wait, 0))
                self._refill()
            self._tokens -= 1


@dataclass
class RateLimitDecision:
    """Outcome of a per-user limit check."""

    allowed: bool
    remaining: int
    retry_after: float = 0.0


class UserRateLimiter:
    """Per-user limiter over a moving window of recent hits."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        storage: MemoryStorage | None = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.storage = storage or MemoryStorage()
        self._limiter = MovingWindowRateLimiter(self.storage)

    def check(self, key: str) -> RateLimitDecision:
        """Record a hit for ``key`` unless its window is already full."""
        allowed = self._limiter.hit(self.item, key)
        stats = self._limiter.get_window_stats(self.item, key)
        if allowed:
            return RateLimitDecision(allowed=True, remaining=stats.remaining)

        retry_after = max(stats.reset_time - time.time(), 0.0)
        logger.debug(f"Rate limit hit for {key}, retry after {retry_after:.0f}s")
        return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

    def reset(self, key: str | None = None) -> None:
        """Forget recorded hits for one key, or for all keys."""
        if key is None:
            self.storage.reset()
        else:
            self._limiter.clear(self.item, key)
