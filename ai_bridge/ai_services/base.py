# ai_bridge/ai_services/base.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import httpx

from .errors import InvalidCredentialsError, UpstreamRateLimitedError, UpstreamError
from .prompts import TOO_MANY_STEPS_MESSAGE
from ..mcp_client.client import McpClientService
from ..mcp_client.errors import McpRemoteError
from ..mcp_client.models import McpTool, ToolInvocation
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, RecordContext

logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 10
DEFAULT_AI_TIMEOUT_SECONDS = 60.0

# Only conversational turns are replayed to a backend
REPLAYED_ROLES = ("user", "assistant")


class ToolOutcome(NamedTuple):
    text: str
    is_error: bool = False


class ConversationState:
    """
    Mutable per-turn request state owned by one orchestration loop.

    ``messages`` is the backend-shaped message (or input item) list that
    grows as tool results are appended; ``tool_outputs`` keeps the raw text
    of every tool result for the answer-extraction fallback.
    """

    def __init__(self, messages: List[Dict[str, Any]], instructions: Optional[str] = None):
        self.messages = messages
        self.instructions = instructions
        self.tool_outputs: List[str] = []


class BaseAIService(ABC):
    """
    One language-model backend plus the bounded tool-calling loop.

    Subclasses only translate: the catalog into the backend's declaration
    shape, the conversation into a request, the response into pending tool
    invocations, tool outcomes back into the conversation, and the final
    response into text. The loop itself lives here and is shared.
    """

    provider_name: str = ""
    endpoint_path: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        mcp_client: McpClientService,
        base_url: str,
        timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.model = model
        self.mcp_client = mcp_client
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        logger.info(f"{self.get_provider_name()} service initialized with model: {model}")

    def get_provider_name(self) -> str:
        return self.provider_name

    def get_model_name(self) -> str:
        return self.model

    # --- backend translation hooks -------------------------------------

    @abstractmethod
    def translate_catalog(self, tools: Sequence[McpTool]) -> List[Dict[str, Any]]:
        """Map the tool catalog into this backend's tool-declaration shape."""

    @abstractmethod
    def build_conversation(
        self,
        history: Sequence[ChatMessage],
        user_message: str,
        salesforce_auth: Optional[SalesforceAuth] = None,
        record_context: Optional[RecordContext] = None
    ) -> ConversationState:
        """Assemble system instructions, prior turns and the new user message."""

    @abstractmethod
    def build_request(self, state: ConversationState, tool_declarations: List[Dict[str, Any]]) -> Dict[str, Any]:
        """The JSON payload for one dispatch."""

    @abstractmethod
    def build_headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def detect_pending_calls(self, response: Dict[str, Any]) -> List[ToolInvocation]:
        """Pending tool invocations in a response, in the order the backend returned them."""

    @abstractmethod
    def append_tool_results(
        self,
        state: ConversationState,
        response: Dict[str, Any],
        results: List[tuple]
    ) -> None:
        """Append the backend's turn and the (invocation, outcome) pairs to the conversation."""

    @abstractmethod
    def extract_final_text(self, response: Dict[str, Any], state: ConversationState) -> str:
        pass

    # --- shared machinery ----------------------------------------------

    async def dispatch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one request to the backend.

        Raises:
            InvalidCredentialsError: upstream 401 (bad provider API key)
            UpstreamRateLimitedError: upstream 429
            UpstreamError: any other upstream or transport failure
        """
        url = f"{self.base_url}{self.endpoint_path}"
        try:
            response = await self._http_client.post(
                url,
                json=payload,
                headers=self.build_headers(),
                timeout=self.timeout_seconds,
            )
        except httpx.RequestError as e:
            logger.error(f"{self.provider_name} request failed: {type(e).__name__}: {e}")
            raise UpstreamError(self.provider_name, f"request failed ({type(e).__name__})") from e

        if response.status_code == 401:
            logger.error(f"{self.provider_name} rejected the configured API key (401)")
            raise InvalidCredentialsError(self.provider_name)
        if response.status_code == 429:
            logger.warning(f"{self.provider_name} rate limit exceeded (429)")
            raise UpstreamRateLimitedError(self.provider_name, response.headers.get("retry-after"))
        if response.status_code >= 400:
            message = self._upstream_error_message(response)
            logger.error(f"{self.provider_name} API error: HTTP {response.status_code} {message}")
            raise UpstreamError(self.provider_name, message)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(self.provider_name, "response body is not valid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError(self.provider_name, "response body is not a JSON object")
        return data

    @staticmethod
    def _upstream_error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:200]}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status_code}"

    async def execute_tool(
        self,
        invocation: ToolInvocation,
        salesforce_auth: Optional[SalesforceAuth] = None
    ) -> ToolOutcome:
        """
        Run one tool call. A tool that reports an error comes back as an
        error outcome the model can explain; transport and protocol failures
        propagate and abort the turn.
        """
        try:
            result = await self.mcp_client.call_tool(invocation.name, invocation.arguments, salesforce_auth)
        except McpRemoteError as e:
            return ToolOutcome(text=f"Error: {e.remote_message}", is_error=True)

        text = result.render_for_model()
        if result.is_error:
            logger.warning(f"Tool {invocation.name} reported an error")
        return ToolOutcome(text=text, is_error=result.is_error)

    async def chat(
        self,
        history: Sequence[ChatMessage],
        user_message: str,
        salesforce_auth: Optional[SalesforceAuth] = None,
        record_context: Optional[RecordContext] = None
    ) -> str:
        """
        Answer one user message, resolving tool calls along the way.

        At most MAX_TOOL_ITERATIONS dispatches are made. When the last one
        still asks for tools, the turn ends with TOO_MANY_STEPS_MESSAGE
        instead of a partial answer.
        """
        tools = await self.mcp_client.list_tools()
        declarations = self.translate_catalog(tools)
        state = self.build_conversation(history, user_message, salesforce_auth, record_context)

        if record_context is not None:
            logger.info(
                f"[{self.provider_name}] Record context included for "
                f"{record_context.object_api_name} ({record_context.record_id})"
            )
        logger.info(f"[{self.provider_name}] Sending message with {len(declarations)} tools available")

        dispatches = 0
        while True:
            response = await self.dispatch(self.build_request(state, declarations))
            dispatches += 1

            pending = self.detect_pending_calls(response)
            if not pending:
                return self.extract_final_text(response, state)

            if dispatches >= MAX_TOOL_ITERATIONS:
                logger.warning(
                    f"[{self.provider_name}] Reached max iterations ({MAX_TOOL_ITERATIONS}) "
                    f"with {len(pending)} tool calls still pending"
                )
                return TOO_MANY_STEPS_MESSAGE

            logger.info(f"[{self.provider_name}] Iteration {dispatches}: processing {len(pending)} tool calls")
            results = []
            for invocation in pending:
                logger.info(
                    f"Executing tool: {invocation.name} "
                    f"{json.dumps(invocation.arguments, default=str)[:200]}"
                )
                outcome = await self.execute_tool(invocation, salesforce_auth)
                state.tool_outputs.append(outcome.text)
                results.append((invocation, outcome))
            self.append_tool_results(state, response, results)

    @staticmethod
    def replayable_history(history: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        return [
            {"role": message.role, "content": message.content}
            for message in history
            if message.role in REPLAYED_ROLES
        ]

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
