import math
import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """In-memory fixed-window limiter keyed by caller identity. Resets on restart."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            self._evict(now)
            count, reset_at = self._windows.get(key, (0, now + self.window_seconds))
            count += 1
            self._windows[key] = (count, reset_at)

        if count > self.max_requests:
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                retry_after=max(1, math.ceil(reset_at - now)),
            )
        return RateLimitDecision(allowed=True, limit=self.max_requests, remaining=self.max_requests - count)

    def _evict(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for k in expired:
            del self._windows[k]
