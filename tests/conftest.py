# tests/conftest.py
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

# Settings are instantiated on import; give them a complete environment first
os.environ.setdefault("MCP_SERVER_URL", "http://mcp.test/mcp")
os.environ.setdefault("AI_PROVIDER", "openrouter")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")

import httpx  # noqa: E402
import pytest  # noqa: E402

project_root_path = Path(__file__).parent.parent.resolve()
if str(project_root_path) not in sys.path:
    sys.path.insert(0, str(project_root_path))

SF_INSTANCE_URL = "https://acme.my.salesforce.com"
SF_ACCESS_TOKEN = "00Dxx0000001gPL!AQ4AQFakeAccessTokenValueForTests1234567890"
MCP_SERVER_URL = "http://mcp.test/mcp"
LLM_BASE_URL = "http://llm.test/api/v1"

DEFAULT_TOOLS = [
    {
        "name": "soql_query",
        "description": "Run a SOQL query",
        "inputSchema": {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    },
    {"name": "list_objects", "description": "List sObjects"},
]


def userinfo_payload(user_id: str = "005xx000001Sv6AAAS", org_id: str = "00Dxx0000001gPLEAY") -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "organization_id": org_id,
        "preferred_username": "jane@acme.example",
        "email": "jane@acme.example",
        "name": "Jane Admin",
    }


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentityProvider:
    """Salesforce userinfo endpoint. Counts every outbound validation."""

    def __init__(self, status_code: int = 200, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.payload = payload if payload is not None else userinfo_payload()
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "denied"})
        return httpx.Response(200, json=self.payload)

    @property
    def call_count(self) -> int:
        return len(self.requests)


class FakeMcpServer:
    """
    Minimal JSON-RPC tool server: initialize, tools/list, tools/call.

    ``call_results`` maps a tool name to a result dict, or to
    ``{"error": {...}}`` to answer with a JSON-RPC error object.
    """

    def __init__(self, tools: Optional[List[Dict[str, Any]]] = None, sse: bool = False):
        self.tools = tools if tools is not None else DEFAULT_TOOLS
        self.sse = sse
        self.call_results: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.payloads: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(request)
        self.payloads.append(payload)

        if "id" not in payload:
            return httpx.Response(202)

        method = payload["method"]
        if method == "initialize":
            body = {"result": {"protocolVersion": "2024-11-05", "capabilities": {"tools": {}},
                               "serverInfo": {"name": "fake-salesforce-mcp", "version": "0.0.1"}}}
        elif method == "tools/list":
            body = {"result": {"tools": self.tools}}
        elif method == "tools/call":
            name = payload["params"]["name"]
            entry = self.call_results.get(name, {"content": [{"type": "text", "text": f"{name} ok"}]})
            body = {"error": entry["error"]} if "error" in entry else {"result": entry}
        else:
            body = {"error": {"code": -32601, "message": f"Method not found: {method}"}}

        body.update({"jsonrpc": "2.0", "id": payload["id"]})
        if self.sse:
            return httpx.Response(
                200,
                text=f"event: message\ndata: {json.dumps(body)}\n\n",
                headers={"content-type": "text/event-stream", "mcp-session-id": "server-session-1"},
            )
        return httpx.Response(200, json=body, headers={"mcp-session-id": "server-session-1"})

    def payloads_for(self, method: str) -> List[Dict[str, Any]]:
        return [p for p in self.payloads if p.get("method") == method]


class ScriptedBackend:
    """
    Model backend that replays queued JSON responses, then repeats the last one.

    Each entry is either a dict (HTTP 200 body) or an ``(status, body)`` tuple.
    """

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        entry = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(entry, tuple):
            status, body = entry
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=entry)

    @property
    def dispatch_count(self) -> int:
        return len(self.requests)


def openrouter_text(text: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}]}


def openrouter_tool_call(name: str, arguments: str, call_id: str = "call_1") -> Dict[str, Any]:
    return {
        "choices": [{
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"id": call_id, "type": "function",
                                "function": {"name": name, "arguments": arguments}}],
            },
            "finish_reason": "tool_calls",
        }]
    }


def host_router(routes: Dict[str, Callable[[httpx.Request], httpx.Response]]):
    """Dispatch mock requests to a handler by host name."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.host)
        if route is None:
            return httpx.Response(404, json={"error": f"no route for {request.url.host}"})
        return route(request)

    return handler


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def mcp_server() -> FakeMcpServer:
    return FakeMcpServer()
