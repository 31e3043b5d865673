# ai_bridge/mcp_client/errors.py
from fastapi import status

from ..errors import BridgeError


class ToolProtocolError(BridgeError):
    """Transport or protocol failure talking to the remote tool server."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="tool_protocol_error",
            message=message
        )


class InvalidProtocolResponseError(ToolProtocolError):
    """The tool server answered with a body that is not a usable JSON-RPC response."""

    def __init__(self, message: str = "Invalid response from MCP server"):
        super().__init__(message)


class McpNotConnectedError(ToolProtocolError):
    """A catalog or tool request was made before connect() or after disconnect()."""

    def __init__(self):
        super().__init__("MCP client not connected")


class McpRemoteError(ToolProtocolError):
    """The tool server answered with a JSON-RPC error object."""

    def __init__(self, remote_message: str, code=None):
        self.remote_message = remote_message
        self.code = code
        super().__init__(f"MCP tool error: {remote_message}")
