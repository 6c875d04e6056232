"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: every worker (and every serverless instance) keeps its own
  table, so under horizontal scaling the effective limit is approximate.
- Thread-safe: uses a lock around shared state.
- Rejected requests are not recorded, so hammering while throttled does not
  push the next free slot further out.
- Memory is bounded by a high-water mark on tracked clients. The default
  ``reset`` policy clears the entire table when it is exceeded, which briefly
  un-throttles every client at once. That is a known limitation of the policy;
  ``lru`` evicts only the least recently seen client instead.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict, deque
from typing import Callable, Literal

from genproxy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)

EvictionPolicy = Literal["reset", "lru"]

DEFAULT_MAX_TRACKED_CLIENTS = 5000


def _now_ms() -> float:
    return time.time() * 1000


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter that counts admitted requests within a trailing window.

    Each client key maps to an ordered sequence of admission timestamps
    (epoch milliseconds). Entries older than the window are purged lazily when
    that key is checked again.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        max_tracked_clients: int = DEFAULT_MAX_TRACKED_CLIENTS,
        eviction: EvictionPolicy = "reset",
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """Initialize the sliding-window rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_ms: Size of the trailing window in milliseconds.
            max_tracked_clients: High-water mark for distinct client keys.
            eviction: What to do once the high-water mark is exceeded.
            clock: Time source returning epoch milliseconds.

        Raises:
            ValueError: If any argument is out of range.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if max_tracked_clients < 1:
            raise ValueError("max_tracked_clients must be >= 1")
        if eviction not in ("reset", "lru"):
            raise ValueError("eviction must be 'reset' or 'lru'")

        self._limit = limit
        self._window_ms = window_ms
        self._max_tracked_clients = max_tracked_clients
        self._eviction = eviction
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: OrderedDict[str, deque[float]] = OrderedDict()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def tracked_clients(self) -> int:
        """Number of client keys currently held in the table."""
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _enforce_capacity(self, key: str) -> None:
        """Apply the eviction policy before a key is looked up."""
        if self._eviction == "reset":
            if len(self._windows) > self._max_tracked_clients:
                logger.warning(
                    "rate_limit.table_reset",
                    extra={
                        "tracked_clients": len(self._windows),
                        "max_tracked_clients": self._max_tracked_clients,
                    },
                )
                self._windows.clear()
            return

        if key in self._windows:
            return
        while len(self._windows) >= self._max_tracked_clients:
            self._windows.popitem(last=False)

    def _purge(self, timestamps: deque[float], now: float) -> None:
        while timestamps and now - timestamps[0] >= self._window_ms:
            timestamps.popleft()

    def consume(self, key: str) -> RateLimitResult:
        """Check the client's window and record the request if admitted.

        Args:
            key: Unique client identifier.

        Returns:
            RateLimitResult with the admission decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            self._enforce_capacity(key)

            timestamps = self._windows.get(key)
            if timestamps is None:
                timestamps = deque()
            self._purge(timestamps, now)

            # The filtered sequence is stored even on rejection so expired
            # entries never pile up for a throttled client.
            self._windows[key] = timestamps
            self._windows.move_to_end(key)

            if len(timestamps) >= self._limit:
                reset_at = timestamps[0] + self._window_ms
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(reset_at),
                    retry_after_seconds=max(0, math.ceil((reset_at - now) / 1000)),
                )

            timestamps.append(now)
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - len(timestamps),
                reset_at=int(timestamps[0] + self._window_ms),
                retry_after_seconds=None,
            )
