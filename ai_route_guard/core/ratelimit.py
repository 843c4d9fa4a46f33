"""
Sliding-window rate limiting.

Counts accepted sends inside a trailing 60-second window rather than in
fixed buckets.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque

from ai_route_guard.core.errors import RateLimitExceeded
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0
DEFAULT_REQUESTS_PER_MINUTE = 60


class RateLimiter:
    """Gate consulted before every send attempt.

    ``is_limited`` prunes the window before deciding, so callers must invoke
    it before ``record`` on every attempt.
    """

    def __init__(
        self,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        clock: Callable[[], float] = time.time,
        window_seconds: float = WINDOW_SECONDS,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be > 0")
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def is_limited(self) -> bool:
        """Prune expired timestamps and report whether the window is full."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps) >= self.requests_per_minute

    def record(self) -> None:
        """Record an accepted send."""
        with self._lock:
            self._timestamps.append(self._clock())

    def check_and_record(self) -> None:
        """Check the window, then record the send.

        Raises:
            RateLimitExceeded: If the window is already full
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.requests_per_minute:
                retry_after = self.window_seconds - (now - self._timestamps[0])
                logger.warning(
                    "Rate limit of %d requests/minute reached", self.requests_per_minute
                )
                raise RateLimitExceeded(
                    "Rate limit exceeded. Please wait before sending another message.",
                    retry_after_seconds=max(0.0, retry_after),
                )
            self._timestamps.append(now)

    def current_count(self) -> int:
        """Number of sends retained in the current window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps)

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()

    def _prune(self, now: float) -> None:
        """Drop timestamps that are not newer than now - window."""
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
