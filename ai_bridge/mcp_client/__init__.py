# ai_bridge/mcp_client/__init__.py
from .client import McpClientService, unwrap_sse_payload, MCP_PROTOCOL_VERSION
from .models import McpTool, McpToolResult, ToolInvocation
from .errors import (
    ToolProtocolError,
    InvalidProtocolResponseError,
    McpNotConnectedError,
    McpRemoteError,
)

__all__ = [
    "McpClientService",
    "unwrap_sse_payload",
    "MCP_PROTOCOL_VERSION",
    "McpTool",
    "McpToolResult",
    "ToolInvocation",
    "ToolProtocolError",
    "InvalidProtocolResponseError",
    "McpNotConnectedError",
    "McpRemoteError",
]
