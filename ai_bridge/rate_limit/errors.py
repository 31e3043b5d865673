# ai_bridge/rate_limit/errors.py
from fastapi import status

from ..errors import BridgeError


class RateLimitExceededError(BridgeError):
    """Raised when an identity exceeds its per-minute request budget."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error="rate_limited",
            message="Rate limit exceeded. Please wait before sending more requests.",
            extra={"retryAfter": retry_after_seconds},
            headers={"Retry-After": str(retry_after_seconds)}
        )
