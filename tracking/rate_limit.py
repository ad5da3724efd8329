"""
In-memory sliding-window rate limiter.

check() runs before routing and rejects callers over budget; completed
requests are counted through the usage hook interface.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from common.logging import get_logger
from gateway.exceptions import RateLimitExceededError
from tracking.hooks import UsageEvent, UsageHook

logger = get_logger(__name__)


class RateLimiter(UsageHook):
    """
    Allows at most `limit` completed requests per user within any
    `window_seconds` span.

    Args:
        limit: Requests allowed per window
        window_seconds: Length of the sliding window
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        limit: int = 60,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window = window_seconds
        self._clock = clock or time.monotonic
        self._requests: Dict[str, Deque[float]] = {}
        self._last_sweep = self._clock()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "rate_limiter"

    def _prune(self, key: str, now: float) -> Optional[Deque[float]]:
        window = self._requests.get(key)
        if window is None:
            return None
        while window and window[0] <= now - self._window:
            window.popleft()
        if not window:
            del self._requests[key]
            return None
        return window

    def _sweep(self, now: float) -> None:
        # At most once per window; drops users whose requests have all expired.
        if now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        for key in list(self._requests):
            self._prune(key, now)

    def remaining(self, key: str) -> int:
        with self._lock:
            window = self._prune(key, self._clock())
            return max(0, self._limit - len(window or ()))

    def check(self, key: str) -> None:
        """
        Raises:
            RateLimitExceededError: If the caller has used up the window's budget
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._prune(key, now)
            if window is None or len(window) < self._limit:
                return
            retry_after = window[0] + self._window - now

        logger.warning("rate_limit_exceeded", user=key, limit=self._limit, window_seconds=self._window)
        raise RateLimitExceededError(
            f"Rate limit of {self._limit} requests per {self._window:g} seconds exceeded",
            retry_after_seconds=max(retry_after, 0.0),
        )

    def record(self, event: UsageEvent) -> None:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            self._prune(event.user, now)
            self._requests.setdefault(event.user, deque()).append(now)
