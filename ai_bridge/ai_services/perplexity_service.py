# ai_bridge/ai_services/perplexity_service.py
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import BaseAIService, ConversationState
from .openrouter_service import first_choice_message
from .prompts import SYSTEM_PROMPT, format_record_context
from .response_parsing import parse_tool_arguments, find_trailing_tool_call, extract_text_with_fallbacks
from ..mcp_client.models import McpTool, ToolInvocation
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, RecordContext

logger = logging.getLogger(__name__)


class PerplexityService(BaseAIService):
    """
    Perplexity chat completions.

    Declarations carry the nested ``function`` object plus a duplicated
    top-level name and description, and are sent under the ``function`` key
    with ``function_call: "auto"``. Tool calls may come back structurally or
    only as a JSON object at the end of the message text.
    """

    provider_name = "Perplexity"
    endpoint_path = "/chat/completions"

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def translate_catalog(self, tools: Sequence[McpTool]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
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
        return {
            "model": self.model,
            "messages": state.messages,
            "function": tool_declarations,
            "function_call": "auto",
            "temperature": 0.7,
        }

    def detect_pending_calls(self, response: Dict[str, Any]) -> List[ToolInvocation]:
        message = first_choice_message(response)
        raw_calls = message.get("tool_calls") or message.get("toolCalls")
        if not raw_calls:
            embedded = find_trailing_tool_call(message.get("content"))
            if embedded is None:
                return []
            logger.info(f"[Perplexity] Found tool call embedded in message text: {embedded.get('name')}")
            raw_calls = [embedded]
        if not isinstance(raw_calls, list):
            return []

        invocations = []
        for call in raw_calls:
            if not isinstance(call, dict):
                continue
            function = call.get("function") if isinstance(call.get("function"), dict) else {}
            name = call.get("name") or function.get("name")
            if not isinstance(name, str):
                logger.warning(f"Skipping tool call without a name: {str(call)[:200]}")
                continue
            raw_arguments = call.get("arguments")
            if raw_arguments is None:
                raw_arguments = function.get("arguments")
            invocations.append(ToolInvocation(
                id=call.get("id"),
                name=name,
                arguments=parse_tool_arguments(raw_arguments),
            ))
        return invocations

    def append_tool_results(self, state: ConversationState, response: Dict[str, Any], results: List[tuple]) -> None:
        # Perplexity has no call correlation; results are plain tool-role turns
        message = first_choice_message(response)
        content = message.get("content")
        state.messages.append({"role": "assistant", "content": content if isinstance(content, str) else ""})
        for _, outcome in results:
            state.messages.append({"role": "tool", "content": outcome.text})

    def extract_final_text(self, response: Dict[str, Any], state: ConversationState) -> str:
        message = first_choice_message(response)
        content = message.get("content")
        return extract_text_with_fallbacks(
            response,
            direct_text=content if isinstance(content, str) else None,
            items=content if isinstance(content, list) else None,
            tool_outputs=state.tool_outputs,
        )
