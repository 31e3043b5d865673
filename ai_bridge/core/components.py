# ai_bridge/core/components.py
import logging
from typing import Optional

import httpx

from ..ai_services.base import BaseAIService
from ..ai_services.factory import create_ai_service
from ..mcp_client.client import McpClientService
from ..rate_limit.limiter import UserRateLimiter
from ..salesforce_auth.validator import SalesforceAuthService
from ..sessions.session_manager import ChatSessionManager
from ..settings import Settings

logger = logging.getLogger(__name__)


class BridgeComponents:
    """
    The process-owned singletons behind the HTTP surface.

    Each component exclusively owns its state (token cache, rate windows,
    sessions, tool catalog); this container only wires them together and
    drives their lifecycle.
    """

    def __init__(
        self,
        auth_service: SalesforceAuthService,
        rate_limiter: UserRateLimiter,
        session_manager: ChatSessionManager,
        mcp_client: McpClientService,
        ai_service: BaseAIService
    ):
        self.auth_service = auth_service
        self.rate_limiter = rate_limiter
        self.session_manager = session_manager
        self.mcp_client = mcp_client
        self.ai_service = ai_service

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "BridgeComponents":
        """Build every component from configuration. ``http_client`` is shared when given."""
        auth_service = SalesforceAuthService(
            token_validation_ttl_seconds=settings.salesforce_token_validation_ttl_seconds,
            http_client=http_client,
            timeout_seconds=settings.salesforce_validation_timeout_seconds,
        )
        rate_limiter = UserRateLimiter(
            requests_per_minute=settings.user_rate_limit_per_minute,
            idle_cooldown_seconds=settings.rate_limit_idle_cooldown_seconds,
        )
        session_manager = ChatSessionManager(timeout_seconds=settings.session_timeout_seconds)
        mcp_client = McpClientService(
            server_url=settings.mcp_server_url,
            timeout_seconds=settings.mcp_request_timeout_seconds,
            http_client=http_client,
        )
        ai_service = create_ai_service(settings, mcp_client, http_client=http_client)
        return cls(auth_service, rate_limiter, session_manager, mcp_client, ai_service)

    async def start(self, sweep_interval_seconds: float) -> None:
        """Connect to the tool server (never fatal) and start the periodic sweeps."""
        try:
            await self.mcp_client.connect()
        except Exception as e:
            logger.warning(f"MCP client not connected at startup: {e}. Continuing without MCP...")

        self.auth_service.start_sweeper(sweep_interval_seconds)
        self.rate_limiter.start_sweeper(sweep_interval_seconds)
        self.session_manager.start_sweeper(sweep_interval_seconds)
        logger.info(
            f"Bridge components started (AI provider: {self.ai_service.get_provider_name()}, "
            f"model: {self.ai_service.get_model_name()})"
        )

    async def shutdown(self) -> None:
        """Stop sweeps, release in-memory state and close outbound clients."""
        await self.session_manager.shutdown()
        await self.rate_limiter.shutdown()
        await self.auth_service.shutdown()
        await self.mcp_client.disconnect()
        await self.ai_service.aclose()
        logger.info("Bridge components shut down.")
