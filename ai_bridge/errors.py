# ai_bridge/errors.py
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional


class BridgeError(HTTPException):
    """
    Base class for every error the bridge surfaces to its callers.

    Carries a stable machine-readable ``error`` code, a human-readable
    message and optional extra fields (``retryAfter``, ``requiredHeaders``,
    ``missingFields``) that are rendered alongside the message.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.error = error
        self.message = message
        self.extra = extra or {}

        detail = {"error": error, "message": message}
        detail.update(self.extra)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return self.message


class InvalidChatRequestError(BridgeError):
    """The chat request body is malformed or missing required fields."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        extra = {"missingFields": missing_fields} if missing_fields else None
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="validation_error",
            message=message,
            extra=extra
        )


class SessionNotFoundError(BridgeError):
    """The requested chat session does not exist or has expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="session_not_found",
            message="Session not found"
        )


class InternalError(BridgeError):
    """Unexpected internal failure. Never carries the underlying exception text."""

    def __init__(self, message: str = "An error occurred processing your request"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="internal_error",
            message=message
        )
