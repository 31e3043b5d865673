# ai_bridge/ai_services/errors.py
from fastapi import status
from typing import Optional

from ..errors import BridgeError


class AIServiceError(BridgeError):
    """Base class for failures talking to a language-model backend."""

    def __init__(self, status_code: int, error: str, message: str, provider: str, headers=None):
        self.provider = provider
        super().__init__(
            status_code=status_code,
            error=error,
            message=message,
            extra={"provider": provider},
            headers=headers
        )


class InvalidCredentialsError(AIServiceError):
    """The model provider rejected the configured API key (upstream 401)."""

    def __init__(self, provider: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="upstream_credentials",
            message=f"Invalid API key configured for AI provider '{provider}'",
            provider=provider
        )


class UpstreamRateLimitedError(AIServiceError):
    """The model provider throttled the request (upstream 429)."""

    def __init__(self, provider: str, retry_after: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error="upstream_rate_limited",
            message=f"AI provider '{provider}' rate limit exceeded. Please try again later.",
            provider=provider,
            headers={"Retry-After": retry_after} if retry_after else None
        )


class UpstreamError(AIServiceError):
    """Any other model provider failure; carries the backend's message."""

    def __init__(self, provider: str, message: str):
        self.upstream_message = message
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="upstream_error",
            message=f"AI provider '{provider}' error: {message}",
            provider=provider
        )
