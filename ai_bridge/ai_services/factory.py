# ai_bridge/ai_services/factory.py
import logging
from typing import Optional

import httpx

from .anthropic_service import AnthropicService
from .base import BaseAIService
from .openai_service import OpenAIService
from .openrouter_service import OpenRouterService
from .perplexity_service import PerplexityService
from ..mcp_client.client import McpClientService
from ..settings import Settings

logger = logging.getLogger(__name__)


def create_ai_service(
    settings: Settings,
    mcp_client: McpClientService,
    http_client: Optional[httpx.AsyncClient] = None
) -> BaseAIService:
    """Build the backend adapter selected by ``settings.ai_provider``."""
    provider = settings.ai_provider
    api_key = getattr(settings, f"{provider}_api_key", None)
    if not api_key:
        raise ValueError(f"{provider.upper()}_API_KEY is required when AI_PROVIDER={provider}")

    timeout = settings.ai_request_timeout_seconds
    logger.info(f"Creating AI service for provider: {provider}")

    if provider == "anthropic":
        return AnthropicService(
            api_key, settings.anthropic_model, mcp_client,
            base_url=settings.anthropic_api_base_url, timeout_seconds=timeout, http_client=http_client
        )
    if provider == "openrouter":
        return OpenRouterService(
            api_key, settings.openrouter_model, mcp_client,
            base_url=settings.openrouter_api_base_url,
            app_name=settings.openrouter_app_name,
            site_url=settings.openrouter_site_url,
            timeout_seconds=timeout,
            http_client=http_client
        )
    if provider == "openai":
        return OpenAIService(
            api_key, settings.openai_model, mcp_client,
            base_url=settings.openai_api_base_url, timeout_seconds=timeout, http_client=http_client
        )
    if provider == "perplexity":
        return PerplexityService(
            api_key, settings.perplexity_model, mcp_client,
            base_url=settings.perplexity_api_base_url, timeout_seconds=timeout, http_client=http_client
        )
    raise ValueError(f"Unsupported AI provider: {provider}")
