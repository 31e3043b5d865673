# ai_bridge/ai_services/anthropic_service.py
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import BaseAIService, ConversationState
from .prompts import SYSTEM_PROMPT, format_record_context
from .response_parsing import parse_tool_arguments, extract_text_with_fallbacks
from ..mcp_client.models import McpTool, ToolInvocation
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, RecordContext

logger = logging.getLogger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 4096


class AnthropicService(BaseAIService):
    """Anthropic Messages API: flat ``input_schema`` declarations, typed ``tool_use`` blocks."""

    provider_name = "Anthropic"
    endpoint_path = "/messages"

    def build_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def translate_catalog(self, tools: Sequence[McpTool]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters_schema(),
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
        messages = self.replayable_history(history)
        messages.append({"role": "user", "content": content})
        return ConversationState(messages=messages, instructions=SYSTEM_PROMPT)

    def build_request(self, state: ConversationState, tool_declarations: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "system": state.instructions,
            "messages": state.messages,
        }
        if tool_declarations:
            payload["tools"] = tool_declarations
        return payload

    def detect_pending_calls(self, response: Dict[str, Any]) -> List[ToolInvocation]:
        # Only an explicit end of turn rules tool use out
        if response.get("stop_reason") not in ("tool_use", None):
            return []
        blocks = response.get("content")
        if not isinstance(blocks, list):
            return []
        return [
            ToolInvocation(
                id=block.get("id"),
                name=block["name"],
                arguments=parse_tool_arguments(block.get("input")),
            )
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "tool_use" and isinstance(block.get("name"), str)
        ]

    def append_tool_results(self, state: ConversationState, response: Dict[str, Any], results: List[tuple]) -> None:
        state.messages.append({"role": "assistant", "content": response.get("content") or []})
        state.messages.append({
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": invocation.id,
                    "content": outcome.text,
                    "is_error": outcome.is_error,
                }
                for invocation, outcome in results
            ],
        })

    def extract_final_text(self, response: Dict[str, Any], state: ConversationState) -> str:
        blocks = response.get("content") if isinstance(response.get("content"), list) else []
        text = "\n".join(
            block["text"] for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        )
        return extract_text_with_fallbacks(
            response,
            direct_text=text,
            items=[block for block in blocks if isinstance(block, dict) and block.get("type") != "tool_use"],
            tool_outputs=state.tool_outputs,
        )
