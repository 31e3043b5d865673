# ai_bridge/salesforce_auth/__init__.py
"""
Salesforce identity validation for the bridge.

Validates bearer tokens against the org's userinfo endpoint, caches the
resulting identity for a bounded time and exposes the error taxonomy used
by the authentication dependency.
"""

from .models import SalesforceUserInfo, SalesforceAuth, TokenCacheEntry
from .validator import SalesforceAuthService
from .errors import (
    SalesforceAuthError,
    MissingAuthHeadersError,
    InvalidSalesforceTokenError,
    InsufficientPermissionsError,
    TokenValidationFailedError,
    ACCESS_TOKEN_HEADER,
    INSTANCE_URL_HEADER,
    REQUIRED_AUTH_HEADERS,
)

__all__ = [
    "SalesforceUserInfo",
    "SalesforceAuth",
    "TokenCacheEntry",
    "SalesforceAuthService",
    "SalesforceAuthError",
    "MissingAuthHeadersError",
    "InvalidSalesforceTokenError",
    "InsufficientPermissionsError",
    "TokenValidationFailedError",
    "ACCESS_TOKEN_HEADER",
    "INSTANCE_URL_HEADER",
    "REQUIRED_AUTH_HEADERS",
]
