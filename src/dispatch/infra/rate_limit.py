"""In-process sliding window rate limiter.

Each key keeps the timestamps of its accepted requests inside the current
window. A request is allowed while fewer than ``limit`` timestamps remain.
State lives in process memory, so limits are per worker and reset on restart.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int  # whole seconds until a slot frees up; 0 when allowed


class SlidingWindowLimiter:
    """Thread-safe limiter shared by the HTTP middleware and the dispatcher."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: float) -> RateLimitDecision:
        """Record one request for ``key`` if it fits in the window.

        Rejected requests are not recorded, so a caller hammering a closed
        window does not push its own reset further out.
        """
        now = self._clock()
        cutoff = now - window_seconds

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= limit:
                retry_after = max(1, math.ceil(hits[0] + window_seconds - now))
                return RateLimitDecision(allowed=False, limit=limit, remaining=0, retry_after=retry_after)

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=limit - len(hits),
                retry_after=0,
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
