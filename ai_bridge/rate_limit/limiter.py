# ai_bridge/rate_limit/limiter.py
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, NamedTuple, Optional

from ..core.periodic import PeriodicSweeper

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60
RETRY_AFTER_SECONDS = 60
DEFAULT_IDLE_COOLDOWN_SECONDS = 300


class RateLimitDecision(NamedTuple):
    allowed: bool
    retry_after_seconds: Optional[int] = None


class _RateWindow:
    __slots__ = ("timestamps", "last_request_at")

    def __init__(self):
        self.timestamps: Deque[float] = deque()
        self.last_request_at: float = 0.0

    def prune(self, now: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= RATE_WINDOW_SECONDS:
            self.timestamps.popleft()


class UserRateLimiter:
    """
    Sliding-window rate limiter keyed by validated identity.

    Each identity owns an ordered list of request timestamps from the last
    sixty seconds. A request is admitted only while fewer than
    ``requests_per_minute`` remain in the window.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        idle_cooldown_seconds: float = DEFAULT_IDLE_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1.")
        self.requests_per_minute = requests_per_minute
        self.idle_cooldown_seconds = idle_cooldown_seconds
        self._clock = clock
        self._windows: Dict[str, _RateWindow] = {}
        self._sweeper: Optional[PeriodicSweeper] = None
        logger.info(f"UserRateLimiter initialized. Limit: {requests_per_minute} requests/minute")

    def admit(self, identity_key: str) -> RateLimitDecision:
        """Record and admit the request, or reject it with a retry-after hint."""
        now = self._clock()
        window = self._windows.get(identity_key)
        if window is None:
            window = self._windows[identity_key] = _RateWindow()

        window.prune(now)
        if len(window.timestamps) >= self.requests_per_minute:
            logger.warning(
                f"Rate limit exceeded for identity '{identity_key}' "
                f"({len(window.timestamps)}/{self.requests_per_minute} in window)"
            )
            return RateLimitDecision(allowed=False, retry_after_seconds=RETRY_AFTER_SECONDS)

        window.timestamps.append(now)
        window.last_request_at = now
        return RateLimitDecision(allowed=True)

    def remaining(self, identity_key: str) -> int:
        window = self._windows.get(identity_key)
        if window is None:
            return self.requests_per_minute
        window.prune(self._clock())
        return self.requests_per_minute - len(window.timestamps)

    @property
    def tracked_identities(self) -> int:
        return len(self._windows)

    def cleanup_idle_windows(self) -> int:
        """Remove identities whose window has been empty for the cooldown period."""
        now = self._clock()
        idle_keys = []
        for key, window in self._windows.items():
            window.prune(now)
            if not window.timestamps and now - window.last_request_at >= self.idle_cooldown_seconds:
                idle_keys.append(key)
        for key in idle_keys:
            del self._windows[key]
        return len(idle_keys)

    def start_sweeper(self, interval_seconds: float) -> None:
        if self._sweeper is None:
            self._sweeper = PeriodicSweeper("rate-windows", self.cleanup_idle_windows, interval_seconds)
        self._sweeper.start()

    async def shutdown(self) -> None:
        if self._sweeper:
            await self._sweeper.stop()
        self._windows.clear()
        logger.info("UserRateLimiter shut down.")
