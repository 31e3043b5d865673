# ai_bridge/ai_services/__init__.py
from .base import BaseAIService, ConversationState, ToolOutcome, MAX_TOOL_ITERATIONS
from .anthropic_service import AnthropicService
from .openrouter_service import OpenRouterService
from .openai_service import OpenAIService
from .perplexity_service import PerplexityService
from .factory import create_ai_service
from .errors import AIServiceError, InvalidCredentialsError, UpstreamRateLimitedError, UpstreamError
from .prompts import TOO_MANY_STEPS_MESSAGE, NO_RESPONSE_MESSAGE, SYSTEM_PROMPT

__all__ = [
    "BaseAIService",
    "ConversationState",
    "ToolOutcome",
    "MAX_TOOL_ITERATIONS",
    "AnthropicService",
    "OpenRouterService",
    "OpenAIService",
    "PerplexityService",
    "create_ai_service",
    "AIServiceError",
    "InvalidCredentialsError",
    "UpstreamRateLimitedError",
    "UpstreamError",
    "TOO_MANY_STEPS_MESSAGE",
    "NO_RESPONSE_MESSAGE",
    "SYSTEM_PROMPT",
]
