# ai_bridge/salesforce_auth/validator.py
import logging
import time
from typing import Callable, Dict, Optional

import httpx
from pydantic import SecretStr, ValidationError

from .errors import (
    InvalidSalesforceTokenError, InsufficientPermissionsError, TokenValidationFailedError
)
from .models import SalesforceAuth, SalesforceUserInfo, TokenCacheEntry
from ..core.periodic import PeriodicSweeper
from ..utils.security import mask_token, derive_token_cache_key

logger = logging.getLogger(__name__)

USERINFO_PATH = "/services/oauth2/userinfo"
DEFAULT_TOKEN_VALIDATION_TTL_SECONDS = 300
DEFAULT_VALIDATION_TIMEOUT_SECONDS = 10.0


class SalesforceAuthService:
    """
    Validates Salesforce OAuth access tokens against the org's userinfo endpoint.

    Successful validations are cached for ``token_validation_ttl_seconds`` under
    a key derived from a token suffix and the instance URL, so repeated
    requests from the same user make no outbound call until the entry expires.
    Expired entries are inert and are removed by a periodic sweep.
    """

    def __init__(
        self,
        token_validation_ttl_seconds: float = DEFAULT_TOKEN_VALIDATION_TTL_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = DEFAULT_VALIDATION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.token_validation_ttl_seconds = token_validation_ttl_seconds
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._token_cache: Dict[str, TokenCacheEntry] = {}
        self._sweeper: Optional[PeriodicSweeper] = None
        logger.info(
            f"SalesforceAuthService initialized. Token validation TTL: {token_validation_ttl_seconds}s"
        )

    async def validate_token(self, access_token: str, instance_url: str) -> SalesforceAuth:
        """
        Validate a Salesforce access token and return the authenticated context.

        Raises:
            InvalidSalesforceTokenError: userinfo answered 401
            InsufficientPermissionsError: userinfo answered 403
            TokenValidationFailedError: any other failure (timeout, 5xx, malformed body)
        """
        instance_url = instance_url.rstrip("/")
        cache_key = derive_token_cache_key(access_token, instance_url)
        cached = self._token_cache.get(cache_key)

        if cached and self._is_cache_valid(cached.validated_at):
            logger.debug(
                f"Using cached token validation for {mask_token(access_token)} "
                f"(user {cached.user_info.user_id})"
            )
            return SalesforceAuth(
                access_token=SecretStr(access_token),
                instance_url=instance_url,
                user_info=cached.user_info,
                validated_at=cached.validated_at,
            )

        logger.info(
            f"Validating Salesforce token {mask_token(access_token)} for instance: {instance_url}"
        )
        user_info = await self._fetch_user_info(access_token, instance_url)

        validated_at = self._clock()
        self._token_cache[cache_key] = TokenCacheEntry(user_info=user_info, validated_at=validated_at)
        logger.info(f"Token validated for user: {user_info.username} ({user_info.user_id})")

        return SalesforceAuth(
            access_token=SecretStr(access_token),
            instance_url=instance_url,
            user_info=user_info,
            validated_at=validated_at,
        )

    async def _fetch_user_info(self, access_token: str, instance_url: str) -> SalesforceUserInfo:
        url = f"{instance_url}{USERINFO_PATH}"
        masked = mask_token(access_token)
        try:
            response = await self._http_client.get(
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self._timeout_seconds,
            )
        except httpx.RequestError as e:
            detail = self._scrub(f"{type(e).__name__}: {e}", access_token)
            logger.error(f"Salesforce token validation request failed for {masked}: {detail}")
            raise TokenValidationFailedError(detail) from e

        if response.status_code == 401:
            logger.warning(f"Salesforce rejected token {masked} (401)")
            raise InvalidSalesforceTokenError()
        if response.status_code == 403:
            logger.warning(f"Salesforce refused token {masked} (403)")
            raise InsufficientPermissionsError()
        if response.status_code >= 400:
            detail = self._scrub(
                f"identity provider returned HTTP {response.status_code}: {response.text[:200]}",
                access_token
            )
            logger.error(f"Salesforce token validation error for {masked}: {detail}")
            raise TokenValidationFailedError(detail)

        try:
            return SalesforceUserInfo.from_userinfo_response(response.json())
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            detail = self._scrub(f"malformed userinfo response ({type(e).__name__})", access_token)
            logger.error(f"Salesforce token validation error for {masked}: {detail}")
            raise TokenValidationFailedError(detail) from e

    @staticmethod
    def _scrub(text: str, access_token: str) -> str:
        if access_token and access_token in text:
            return text.replace(access_token, mask_token(access_token))
        return text

    def _is_cache_valid(self, validated_at: float) -> bool:
        return self._clock() - validated_at < self.token_validation_ttl_seconds

    def invalidate_token(self, access_token: str, instance_url: str) -> None:
        """Drop a single token from the cache."""
        cache_key = derive_token_cache_key(access_token, instance_url.rstrip("/"))
        self._token_cache.pop(cache_key, None)

    def clear_cache(self) -> None:
        """Drop every cached validation."""
        self._token_cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._token_cache)

    def cleanup_expired_tokens(self) -> int:
        """Remove cache entries past the TTL. Returns the number removed."""
        now = self._clock()
        expired_keys = [
            key for key, entry in self._token_cache.items()
            if now - entry.validated_at >= self.token_validation_ttl_seconds
        ]
        for key in expired_keys:
            del self._token_cache[key]
        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired token cache entries")
        return len(expired_keys)

    def start_sweeper(self, interval_seconds: float) -> None:
        if self._sweeper is None:
            self._sweeper = PeriodicSweeper("token-cache", self.cleanup_expired_tokens, interval_seconds)
        self._sweeper.start()

    async def shutdown(self) -> None:
        """Stop the sweep, release the cache and close an owned HTTP client."""
        if self._sweeper:
            await self._sweeper.stop()
        self._token_cache.clear()
        if self._owns_http_client:
            await self._http_client.aclose()
        logger.info("SalesforceAuthService shut down.")
