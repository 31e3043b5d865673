# ai_bridge/mcp_client/client.py
import asyncio
import itertools
import json
import logging
import secrets
import time
from typing import Any, Dict, List, Optional

import httpx

from .errors import (
    ToolProtocolError, InvalidProtocolResponseError, McpNotConnectedError, McpRemoteError
)
from .models import McpTool, McpToolResult
from ..salesforce_auth.models import SalesforceAuth

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "salesforce-ai-bridge", "version": "1.0.0"}
DEFAULT_MCP_TIMEOUT_SECONDS = 30.0

# MCP streamable-HTTP servers require both content types in Accept
_MCP_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


def unwrap_sse_payload(body: str) -> Any:
    """
    Parse a JSON-RPC response body, unwrapping server-sent-event framing.

    Bodies shaped like ``event: message\\ndata: {...}\\n\\n`` yield the first
    ``data:`` line that decodes as JSON; anything else is parsed as plain JSON.

    Raises:
        InvalidProtocolResponseError: if no JSON document can be recovered
    """
    data_lines = [line for line in body.splitlines() if line.startswith("data:")]
    if data_lines:
        for line in data_lines:
            json_str = line[len("data:"):].strip()
            try:
                return json.loads(json_str)
            except json.JSONDecodeError:
                logger.error(f"Failed to parse SSE data line: {json_str[:200]}")
        raise InvalidProtocolResponseError("MCP server sent an event stream with no parsable data")

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise InvalidProtocolResponseError(f"MCP server response is not valid JSON: {e}") from e


class McpClientService:
    """
    JSON-RPC 2.0 client for the remote tool-execution server.

    Keeps one logical MCP session, caches the tool catalog until the next
    reconnect, and forwards the caller's Salesforce authority with every
    tools/call. Calls are independent request/response exchanges correlated
    by request id; there is no call-level locking.
    """

    def __init__(
        self,
        server_url: str,
        timeout_seconds: float = DEFAULT_MCP_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.server_url = server_url
        self.timeout_seconds = timeout_seconds
        self.session_id = f"bridge-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._connected = False
        self._initialized = False
        self._server_session_id: Optional[str] = None
        self._tools_cache: Optional[List[McpTool]] = None
        self._catalog_lock = asyncio.Lock()
        self._request_ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._connected

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """
        Open the logical session and try to fetch the tool catalog eagerly.

        A catalog failure does not fail the connection: the catalog is fetched
        lazily on first use instead, so a tool server that is briefly
        unreachable at boot does not keep the bridge from starting.
        """
        logger.info(f"Connecting to MCP server at {self.server_url} (session {self.session_id})...")
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
            self._owns_http_client = True

        # A reconnect invalidates the catalog and the server-side session
        self._tools_cache = None
        self._initialized = False
        self._server_session_id = None
        self._connected = True

        try:
            tools = await self._refresh_tools()
            logger.info(f"Connected to MCP server ({len(tools)} tools available)")
        except ToolProtocolError as e:
            logger.warning(f"Could not fetch tools list, but marking as connected: {e}")
            logger.warning("Tools will be fetched on first use")

    async def disconnect(self) -> None:
        self._connected = False
        self._initialized = False
        self._tools_cache = None
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Disconnected from MCP server")

    async def list_tools(self) -> List[McpTool]:
        """Return the cached catalog, fetching it first if the cache is empty."""
        if not self._connected:
            raise McpNotConnectedError()
        if self._tools_cache is not None:
            return self._tools_cache
        return await self._refresh_tools()

    async def call_tool(
        self,
        name: str,
        arguments: Dict[str, Any],
        salesforce_auth: Optional[SalesforceAuth] = None
    ) -> McpToolResult:
        """
        Execute a tool on the remote server.

        The caller's Salesforce authority travels in ``params.meta.salesforceAuth``,
        never inside the arguments object.

        Raises:
            McpRemoteError: the server answered with a JSON-RPC error object
            ToolProtocolError: transport failure or malformed response
        """
        if not self._connected:
            raise McpNotConnectedError()
        await self._ensure_initialized()

        params: Dict[str, Any] = {"name": name, "arguments": arguments}
        if salesforce_auth is not None:
            params["meta"] = {"salesforceAuth": salesforce_auth.to_tool_metadata()}
            user_label = salesforce_auth.user_info.username
        else:
            user_label = "<service identity>"

        logger.info(f"Calling MCP tool: {name} as {user_label}")
        logger.debug(f"MCP tool {name} arguments: {json.dumps(arguments, default=str)[:500]}")

        result = await self._rpc("tools/call", params)
        try:
            return McpToolResult.model_validate(result)
        except ValueError as e:
            raise InvalidProtocolResponseError(f"Invalid tools/call result from MCP server: {e}") from e

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self._initialize()

    async def _initialize(self) -> None:
        logger.info(f"Initializing MCP session: {self.session_id}")
        await self._rpc(
            "initialize",
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        self._initialized = True
        await self._notify("notifications/initialized", {})
        logger.info("MCP session initialized")

    async def _refresh_tools(self) -> List[McpTool]:
        async with self._catalog_lock:
            if self._tools_cache is not None:
                return self._tools_cache
            await self._ensure_initialized()
            logger.info("Fetching tools list...")
            result = await self._rpc("tools/list", {})
            raw_tools = result.get("tools")
            if not isinstance(raw_tools, list):
                raise InvalidProtocolResponseError("Invalid tools response format")
            try:
                tools = [McpTool.model_validate(tool) for tool in raw_tools]
            except ValueError as e:
                raise InvalidProtocolResponseError(f"Invalid tool descriptor in tools/list: {e}") from e
            self._tools_cache = tools
            logger.info(f"Successfully fetched {len(tools)} tools")
            return tools

    def _build_headers(self) -> Dict[str, str]:
        headers = dict(_MCP_HEADERS)
        if self._server_session_id:
            headers["Mcp-Session-Id"] = self._server_session_id
        return headers

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._http_client is None:
            raise McpNotConnectedError()
        try:
            response = await self._http_client.post(
                self.server_url,
                params={"sessionId": self.session_id},
                json=payload,
                headers=self._build_headers(),
                timeout=self.timeout_seconds,
            )
        except httpx.RequestError as e:
            logger.error(f"MCP request '{payload.get('method')}' failed: {type(e).__name__}: {e}")
            raise ToolProtocolError(f"MCP server request failed: {type(e).__name__}") from e

        server_session_id = response.headers.get("mcp-session-id")
        if server_session_id and server_session_id != self._server_session_id:
            logger.debug(f"MCP server assigned session id {server_session_id}")
            self._server_session_id = server_session_id
        return response

    async def _rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        request_id = next(self._request_ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        response = await self._post(payload)

        if not response.content:
            raise InvalidProtocolResponseError(
                f"MCP server returned an empty body for '{method}' (HTTP {response.status_code})"
            )

        try:
            data = unwrap_sse_payload(response.text)
        except InvalidProtocolResponseError:
            if response.status_code >= 400:
                logger.error(f"MCP Server Error ({method}): HTTP {response.status_code} {response.text[:200]}")
                raise ToolProtocolError(f"MCP server returned HTTP {response.status_code} for '{method}'")
            raise

        if not isinstance(data, dict):
            raise InvalidProtocolResponseError()

        result = data.get("result")
        if isinstance(result, dict):
            if data.get("id") not in (None, request_id):
                logger.warning(f"MCP response id mismatch for '{method}': expected {request_id}, got {data.get('id')}")
            return result

        error = data.get("error")
        if isinstance(error, dict):
            remote_message = str(error.get("message") or "unknown error")
            logger.warning(f"MCP server returned error for '{method}': {remote_message}")
            raise McpRemoteError(remote_message, code=error.get("code"))

        if response.status_code >= 400:
            raise ToolProtocolError(f"MCP server returned HTTP {response.status_code} for '{method}'")
        raise InvalidProtocolResponseError()

    async def _notify(self, method: str, params: Dict[str, Any]) -> None:
        payload = {"jsonrpc": "2.0", "method": method, "params": params}
        try:
            response = await self._post(payload)
        except ToolProtocolError as e:
            logger.warning(f"MCP notification '{method}' not delivered: {e}")
            return
        if response.status_code >= 400:
            logger.warning(f"MCP notification '{method}' rejected with HTTP {response.status_code}")
