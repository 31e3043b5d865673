# ai_bridge/rate_limit/__init__.py
from .limiter import UserRateLimiter, RateLimitDecision, RATE_WINDOW_SECONDS, RETRY_AFTER_SECONDS
from .errors import RateLimitExceededError

__all__ = [
    "UserRateLimiter",
    "RateLimitDecision",
    "RateLimitExceededError",
    "RATE_WINDOW_SECONDS",
    "RETRY_AFTER_SECONDS",
]
