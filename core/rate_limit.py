"""
Sliding-window rate limiter.

Bounds the number of calls admitted to the text-generation service within a
rolling time window. One limiter is shared by every model behind a gateway,
since the quota belongs to the account rather than to a model.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque

from core.errors import RateLimitExceeded

__all__ = ["SlidingWindowRateLimiter"]


class SlidingWindowRateLimiter:
    """
    Bound admitted calls within a sliding time window.

    Keeps the timestamps of recent admissions. Every ``admit()`` prunes
    entries older than ``now - window_seconds`` before counting, so the
    window moves continuously instead of resetting at fixed boundaries.
    """

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def admit(self) -> None:
        """Record a call or raise ``RateLimitExceeded`` with the wait time."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.max_calls:
                oldest = self._timestamps[0]
                raise RateLimitExceeded(self.window_seconds - (now - oldest))
            self._timestamps.append(now)

    def try_admit(self) -> bool:
        try:
            self.admit()
        except RateLimitExceeded:
            return False
        return True

    def remaining(self) -> int:
        """Admissions still available in the current window."""
        with self._lock:
            self._prune(self._clock())
            return self.max_calls - len(self._timestamps)

    def retry_after(self) -> float:
        """Seconds until the next admission would succeed (0 if now)."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) < self.max_calls:
                return 0.0
            return self.window_seconds - (now - self._timestamps[0])

    def __len__(self) -> int:
        with self._lock:
            return len(self._timestamps)
