# ai_bridge/ai_services/openrouter_service.py
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .base import BaseAIService, ConversationState, DEFAULT_AI_TIMEOUT_SECONDS
from .prompts import SYSTEM_PROMPT, format_record_context
from .response_parsing import parse_tool_arguments, extract_text_with_fallbacks
from ..mcp_client.client import McpClientService
from ..mcp_client.models import McpTool, ToolInvocation
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, RecordContext

logger = logging.getLogger(__name__)


def first_choice_message(response: Dict[str, Any]) -> Dict[str, Any]:
    """``choices[0].message`` of a chat-completions response, or ``{}``."""
    choices = response.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            return message
        return choices[0]
    message = response.get("message")
    return message if isinstance(message, dict) else {}


class OpenRouterService(BaseAIService):
    """OpenRouter chat completions: tools nested under a ``function`` object."""

    provider_name = "OpenRouter"
    endpoint_path = "/chat/completions"

    def __init__(
        self,
        api_key: str,
        model: str,
        mcp_client: McpClientService,
        base_url: str,
        app_name: str = "Salesforce-AI-Bridge",
        site_url: str = "http://localhost:3001",
        timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.app_name = app_name
        self.site_url = site_url
        super().__init__(api_key, model, mcp_client, base_url, timeout_seconds, http_client)

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.site_url,
            "X-Title": self.app_name,
            "Content-Type": "application/json",
        }

    def translate_catalog(self, tools: Sequence[McpTool]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters_schema(),
                },
            }
            for tool in tools
        ]

    def build_conversation(
        self,
        history: Sequence[ChatMessage],
        user_message: str,
        salesforce_auth: Optional[SalesforceAuth] = None,
        record_context: Optional[RecordContext] = None
    ) -> ConversationState:
        content = user_message
        if record_context is not None:
            content = format_record_context(record_context) + user_message
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(self.replayable_history(history))
        messages.append({"role": "user", "content": content})
        return ConversationState(messages=messages)

    def build_request(self, state: ConversationState, tool_declarations: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": state.messages,
            "temperature": 0.7,
            "max_tokens": 4096,
        }
        if tool_declarations:
            payload["tools"] = tool_declarations
            payload["tool_choice"] = "auto"
        return payload

    def detect_pending_calls(self, response: Dict[str, Any]) -> List[ToolInvocation]:
        # Tool calls count only when the turn ended to make them
        if self._finish_reason(response) != "tool_calls":
            return []
        tool_calls = first_choice_message(response).get("tool_calls")
        if not isinstance(tool_calls, list):
            return []
        invocations = []
        for call in tool_calls:
            function = call.get("function") if isinstance(call, dict) else None
            if not isinstance(function, dict) or not isinstance(function.get("name"), str):
                logger.warning(f"Skipping unrecognized tool call entry: {str(call)[:200]}")
                continue
            invocations.append(ToolInvocation(
                id=call.get("id"),
                name=function["name"],
                arguments=parse_tool_arguments(function.get("arguments")),
            ))
        return invocations

    @staticmethod
    def _finish_reason(response: Dict[str, Any]) -> Optional[str]:
        choices = response.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            return choices[0].get("finish_reason")
        return None

    def append_tool_results(self, state: ConversationState, response: Dict[str, Any], results: List[tuple]) -> None:
        message = first_choice_message(response)
        state.messages.append({
            "role": "assistant",
            "content": message.get("content") or "",
            "tool_calls": message.get("tool_calls"),
        })
        for invocation, outcome in results:
            state.messages.append({
                "role": "tool",
                "content": outcome.text,
                "tool_call_id": invocation.id,
                "name": invocation.name,
            })

    def extract_final_text(self, response: Dict[str, Any], state: ConversationState) -> str:
        message = first_choice_message(response)
        content = message.get("content")
        return extract_text_with_fallbacks(
            response,
            direct_text=content if isinstance(content, str) else None,
            items=content if isinstance(content, list) else None,
            tool_outputs=state.tool_outputs,
        )
