# ai_bridge/dependencies.py
import logging
from fastapi import Depends, Header, Request
from typing import Optional, Annotated

from .core.components import BridgeComponents
from .rate_limit.errors import RateLimitExceededError
from .salesforce_auth.errors import MissingAuthHeadersError
from .salesforce_auth.models import SalesforceAuth
from .settings import Settings
from .utils.security import mask_token

logger = logging.getLogger(__name__)


def get_components(request: Request) -> BridgeComponents:
    return request.app.state.components


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


async def get_salesforce_auth(
    components: Annotated[BridgeComponents, Depends(get_components)],
    app_settings: Annotated[Settings, Depends(get_app_settings)],
    authorization: Annotated[
        Optional[str],
        Header(description="Bearer Salesforce access token.")
    ] = None,
    x_salesforce_instance_url: Annotated[
        Optional[str],
        Header(alias="X-Salesforce-Instance-URL", description="Salesforce instance URL for the token.")
    ] = None
) -> Optional[SalesforceAuth]:
    """
    Resolves the caller's Salesforce identity from the auth headers.

    Both headers are validated whenever both are present. When neither pair
    is complete the request proceeds anonymously, unless
    REQUIRE_SALESFORCE_AUTH is set, in which case it is rejected with 401.
    """
    access_token = _parse_bearer_token(authorization)
    instance_url = (x_salesforce_instance_url or "").strip() or None

    if not access_token or not instance_url:
        if app_settings.require_salesforce_auth:
            logger.warning("Salesforce auth required but bearer token or instance URL header missing.")
            raise MissingAuthHeadersError()
        if access_token or instance_url:
            logger.debug("Incomplete Salesforce auth headers on optional-auth request; proceeding anonymously.")
        return None

    logger.debug(f"Authenticating request with token {mask_token(access_token)} for {instance_url}")
    return await components.auth_service.validate_token(access_token, instance_url)


def enforce_rate_limit(components: BridgeComponents, salesforce_auth: Optional[SalesforceAuth]) -> None:
    """Admit the request against the caller's identity window. Anonymous requests are not limited."""
    if salesforce_auth is None:
        return
    decision = components.rate_limiter.admit(salesforce_auth.user_info.rate_limit_key)
    if not decision.allowed:
        raise RateLimitExceededError(decision.retry_after_seconds)
