# ai_bridge/ai_services/openai_service.py
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import BaseAIService, ConversationState
from .prompts import SYSTEM_PROMPT, format_record_context, format_user_context
from .response_parsing import parse_tool_arguments, extract_text_with_fallbacks
from ..mcp_client.models import McpTool, ToolInvocation
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, RecordContext

logger = logging.getLogger(__name__)

OPENAI_MAX_OUTPUT_TOKENS = 8096


class OpenAIService(BaseAIService):
    """
    OpenAI Responses API.

    Tools are declared flat (``{type, name, description, parameters}``),
    calls arrive as ``function_call`` output items correlated by ``call_id``,
    and user and record context go into ``instructions`` rather than the
    user message.
    """

    provider_name = "OpenAI"
    endpoint_path = "/responses"

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def translate_catalog(self, tools: Sequence[McpTool]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema(),
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
        instructions = SYSTEM_PROMPT + format_user_context(salesforce_auth)
        if record_context is not None:
            instructions += format_record_context(record_context)
        input_items = self.replayable_history(history)
        input_items.append({"role": "user", "content": user_message})
        return ConversationState(messages=input_items, instructions=instructions)

    def build_request(self, state: ConversationState, tool_declarations: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "instructions": state.instructions,
            "input": state.messages,
            "temperature": 1,
            "max_output_tokens": OPENAI_MAX_OUTPUT_TOKENS,
        }
        if tool_declarations:
            payload["tools"] = tool_declarations
        return payload

    @staticmethod
    def _output_items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
        output = response.get("output")
        if not isinstance(output, list):
            return []
        return [item for item in output if isinstance(item, dict)]

    def detect_pending_calls(self, response: Dict[str, Any]) -> List[ToolInvocation]:
        return [
            ToolInvocation(
                id=item.get("call_id") or item.get("id"),
                name=item["name"],
                arguments=parse_tool_arguments(item.get("arguments")),
            )
            for item in self._output_items(response)
            if item.get("type") == "function_call" and isinstance(item.get("name"), str)
        ]

    def append_tool_results(self, state: ConversationState, response: Dict[str, Any], results: List[tuple]) -> None:
        # The function_call items (and any reasoning items) must precede their outputs
        state.messages.extend(self._output_items(response))
        for invocation, outcome in results:
            state.messages.append({
                "type": "function_call_output",
                "call_id": invocation.id,
                "output": outcome.text,
            })

    def extract_final_text(self, response: Dict[str, Any], state: ConversationState) -> str:
        items = self._output_items(response)
        messages = [item for item in items if item.get("type") == "message"]
        others = [item for item in items if item.get("type") not in ("message", "function_call")]
        direct = response.get("output_text")
        return extract_text_with_fallbacks(
            response,
            direct_text=direct if isinstance(direct, str) else None,
            items=messages + others,
            tool_outputs=state.tool_outputs,
        )
