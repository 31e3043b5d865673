# tests/test_mcp_client.py
import httpx
import pytest
from pydantic import SecretStr

from ai_bridge.mcp_client import (
    McpClientService,
    McpNotConnectedError,
    McpRemoteError,
    InvalidProtocolResponseError,
    ToolProtocolError,
    unwrap_sse_payload,
)
from ai_bridge.salesforce_auth.models import SalesforceAuth, SalesforceUserInfo

from conftest import FakeMcpServer, MCP_SERVER_URL, SF_ACCESS_TOKEN, SF_INSTANCE_URL, mock_http_client


def make_client(handler) -> McpClientService:
    return McpClientService(MCP_SERVER_URL, http_client=mock_http_client(handler))


def test_unwrap_sse_payload_reads_data_line():
    body = 'event: message\ndata: {"jsonrpc": "2.0", "id": 1, "result": {"ok": true}}\n\n'
    assert unwrap_sse_payload(body) == {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}


def test_unwrap_sse_payload_skips_unparsable_data_lines():
    body = 'data: not-json\ndata: {"result": {}}\n'
    assert unwrap_sse_payload(body) == {"result": {}}


def test_unwrap_plain_json_and_garbage():
    assert unwrap_sse_payload('{"result": {"tools": []}}') == {"result": {"tools": []}}
    with pytest.raises(InvalidProtocolResponseError):
        unwrap_sse_payload("<html>gateway error</html>")


@pytest.mark.asyncio
@pytest.mark.parametrize("sse", [False, True])
async def test_connect_performs_handshake_and_caches_catalog(sse):
    server = FakeMcpServer(sse=sse)
    client = make_client(server)

    await client.connect()
    tools = await client.list_tools()
    await client.list_tools()

    assert client.is_connected()
    assert [t.name for t in tools] == ["soql_query", "list_objects"]
    assert [p["method"] for p in server.payloads] == [
        "initialize", "notifications/initialized", "tools/list"
    ]
    init_params = server.payloads[0]["params"]
    assert init_params["protocolVersion"] == "2024-11-05"
    assert init_params["clientInfo"] == {"name": "salesforce-ai-bridge", "version": "1.0.0"}
    assert server.requests[0].url.params["sessionId"] == client.session_id
    # The server-assigned session id is echoed on later requests
    assert server.requests[-1].headers["Mcp-Session-Id"] == "server-session-1"


@pytest.mark.asyncio
async def test_tool_without_schema_gets_empty_object_schema(mcp_server):
    client = make_client(mcp_server)
    await client.connect()
    tools = {t.name: t for t in await client.list_tools()}

    assert tools["list_objects"].parameters_schema() == {"type": "object", "properties": {}, "required": []}
    assert tools["soql_query"].parameters_schema()["required"] == ["query"]


@pytest.mark.asyncio
async def test_connect_survives_unreachable_server_and_fetches_lazily():
    server = FakeMcpServer()
    state = {"down": True}

    def handler(request):
        if state["down"]:
            raise httpx.ConnectError("connection refused", request=request)
        return server(request)

    client = make_client(handler)
    await client.connect()
    assert client.is_connected()

    state["down"] = False
    tools = await client.list_tools()

    assert len(tools) == 2
    assert server.payloads_for("initialize")


@pytest.mark.asyncio
async def test_call_tool_forwards_auth_in_meta_not_arguments(mcp_server):
    auth = SalesforceAuth(
        access_token=SecretStr(SF_ACCESS_TOKEN),
        instance_url=SF_INSTANCE_URL,
        user_info=SalesforceUserInfo(user_id="005A", username="jane@acme.example", organization_id="00D1"),
        validated_at=0.0,
    )
    client = make_client(mcp_server)
    await client.connect()

    result = await client.call_tool("soql_query", {"query": "SELECT Id FROM Account"}, auth)

    assert result.render_for_model() == "soql_query ok"
    params = mcp_server.payloads_for("tools/call")[0]["params"]
    assert params["arguments"] == {"query": "SELECT Id FROM Account"}
    assert params["meta"]["salesforceAuth"] == {
        "accessToken": SF_ACCESS_TOKEN,
        "instanceUrl": SF_INSTANCE_URL,
        "userId": "005A",
        "username": "jane@acme.example",
    }


@pytest.mark.asyncio
async def test_call_tool_without_auth_sends_no_meta(mcp_server):
    client = make_client(mcp_server)
    await client.connect()

    await client.call_tool("list_objects", {})

    assert "meta" not in mcp_server.payloads_for("tools/call")[0]["params"]


@pytest.mark.asyncio
async def test_error_object_surfaces_remote_message(mcp_server):
    mcp_server.call_results["soql_query"] = {"error": {"code": -32000, "message": "INVALID_FIELD: Foo__c"}}
    client = make_client(mcp_server)
    await client.connect()

    with pytest.raises(McpRemoteError) as exc_info:
        await client.call_tool("soql_query", {"query": "SELECT Foo__c FROM Account"})

    assert exc_info.value.remote_message == "INVALID_FIELD: Foo__c"
    assert exc_info.value.code == -32000


@pytest.mark.asyncio
async def test_result_without_text_part_renders_as_json(mcp_server):
    mcp_server.call_results["list_objects"] = {"content": [{"type": "image", "data": "..."}], "isError": False}
    client = make_client(mcp_server)
    await client.connect()

    result = await client.call_tool("list_objects", {})

    assert '"type":"image"' in result.render_for_model()
    assert result.is_error is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, content=b""),
        httpx.Response(200, text="not json at all"),
    ],
)
async def test_malformed_responses_are_invalid_protocol(response):
    client = make_client(lambda request: response)
    client._connected = True
    client._initialized = True

    with pytest.raises(InvalidProtocolResponseError):
        await client.call_tool("soql_query", {})


@pytest.mark.asyncio
async def test_http_error_without_jsonrpc_body_is_protocol_error():
    client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))
    client._connected = True
    client._initialized = True

    with pytest.raises(ToolProtocolError) as exc_info:
        await client.call_tool("soql_query", {})
    assert not isinstance(exc_info.value, InvalidProtocolResponseError)
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_requests_before_connect_are_rejected(mcp_server):
    client = make_client(mcp_server)

    with pytest.raises(McpNotConnectedError):
        await client.list_tools()
    with pytest.raises(McpNotConnectedError):
        await client.call_tool("soql_query", {})


@pytest.mark.asyncio
async def test_reconnect_invalidates_catalog(mcp_server):
    client = make_client(mcp_server)
    await client.connect()
    mcp_server.tools = [{"name": "new_tool", "description": "added later"}]

    assert [t.name for t in await client.list_tools()] == ["soql_query", "list_objects"]

    await client.disconnect()
    await client.connect()
    assert [t.name for t in await client.list_tools()] == ["new_tool"]


@pytest.mark.asyncio
async def test_empty_catalog_is_cached():
    server = FakeMcpServer(tools=[])
    client = make_client(server)

    await client.connect()
    assert await client.list_tools() == []
    assert await client.list_tools() == []

    assert [p["method"] for p in server.payloads].count("tools/list") == 1
