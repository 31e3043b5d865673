# ai_bridge/salesforce_auth/errors.py
from fastapi import status
from typing import List, Optional

from ..errors import BridgeError

ACCESS_TOKEN_HEADER = "Authorization"
INSTANCE_URL_HEADER = "X-Salesforce-Instance-URL"
REQUIRED_AUTH_HEADERS = [ACCESS_TOKEN_HEADER, INSTANCE_URL_HEADER]


class SalesforceAuthError(BridgeError):
    """Base class for Salesforce identity failures."""
    pass


class MissingAuthHeadersError(SalesforceAuthError):
    """Raised when the bearer token and instance URL headers are not both present."""

    def __init__(self, required_headers: Optional[List[str]] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="unauthorized",
            message="Salesforce authentication required: provide both a bearer access token and an instance URL.",
            extra={"requiredHeaders": required_headers or list(REQUIRED_AUTH_HEADERS)},
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidSalesforceTokenError(SalesforceAuthError):
    """The identity provider rejected the token (HTTP 401)."""

    def __init__(self, message: str = "Invalid or expired Salesforce access token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="unauthorized",
            message=message,
            headers={"WWW-Authenticate": 'Bearer error="invalid_token"'}
        )


class InsufficientPermissionsError(SalesforceAuthError):
    """The identity provider refused the token for this resource (HTTP 403)."""

    def __init__(self, message: str = "Insufficient permissions for Salesforce access token"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="forbidden",
            message=message
        )


class TokenValidationFailedError(SalesforceAuthError):
    """
    Any other validation failure: timeout, connection error, 5xx, malformed body.

    The upstream detail is attached; the token never is.
    """

    def __init__(self, detail: str):
        self.upstream_detail = detail
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="token_validation_failed",
            message=f"Failed to validate Salesforce token: {detail}"
        )
