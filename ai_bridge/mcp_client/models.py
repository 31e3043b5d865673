# ai_bridge/mcp_client/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class McpTool(BaseModel):
    """A tool descriptor from the tool server's catalog (tools/list)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = Field(default=None, alias="inputSchema")

    def parameters_schema(self) -> Dict[str, Any]:
        """The declared JSON schema, or an empty object schema when absent."""
        if self.input_schema:
            return self.input_schema
        return {"type": "object", "properties": {}, "required": []}


class ToolInvocation(BaseModel):
    """A tool call requested by a model backend."""
    id: Optional[str] = Field(default=None, description="Backend correlation id, when the backend supplies one.")
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class McpToolResult(BaseModel):
    """Outcome of a tools/call request."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    content: List[Dict[str, Any]] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    def render_for_model(self) -> str:
        """
        The text handed back to the model: the first text content part,
        otherwise the JSON-serialized result.
        """
        for part in self.content:
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str):
                return part["text"]
        return self.model_dump_json(by_alias=True)
