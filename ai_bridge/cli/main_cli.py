# ai_bridge/cli/main_cli.py
import asyncio
import json
import typer
from typing import Annotated, Optional

from .utils_cli import make_api_request

app = typer.Typer(
    name="bridge",
    help="Salesforce AI Bridge Command Line Interface.",
    no_args_is_help=True
)


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 3001,
    reload: Annotated[bool, typer.Option(help="Reload on code changes.")] = False,
    log_level: Annotated[str, typer.Option(help="Uvicorn log level.")] = "info"
):
    """Run the bridge HTTP server."""
    import uvicorn

    typer.echo(f"Starting Salesforce AI Bridge on {host}:{port}")
    uvicorn.run("ai_bridge.main:app", host=host, port=port, reload=reload, log_level=log_level.lower())


@app.command("tools")
def list_tools(
    show_schema: Annotated[bool, typer.Option("--schema", help="Print each tool's input schema.")] = False
):
    """Connect to the configured tool server and print its catalog."""
    from ..mcp_client.client import McpClientService
    from ..mcp_client.errors import ToolProtocolError
    from ..settings import settings

    if not settings.mcp_server_url:
        typer.secho("MCP_SERVER_URL is not configured.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _fetch():
        client = McpClientService(settings.mcp_server_url, settings.mcp_request_timeout_seconds)
        await client.connect()
        try:
            return await client.list_tools()
        finally:
            await client.disconnect()

    try:
        tools = asyncio.run(_fetch())
    except ToolProtocolError as e:
        typer.secho(f"Could not fetch tools from {settings.mcp_server_url}: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho(f"{len(tools)} tools available at {settings.mcp_server_url}", fg=typer.colors.GREEN)
    for tool in tools:
        typer.echo(f"- {tool.name}: {tool.description}")
        if show_schema:
            typer.echo(json.dumps(tool.parameters_schema(), indent=2))


@app.command("chat")
def chat(
    message: Annotated[str, typer.Argument(help="Message to send.")],
    session_id: Annotated[
        Optional[str],
        typer.Option("--session-id", help="Continue an existing session.")
    ] = None
):
    """Send one message to a running bridge and print the reply."""
    payload = {"message": message}
    if session_id:
        payload["sessionId"] = session_id
    data = make_api_request("POST", "/api/chat", json_payload=payload)
    typer.secho(f"[{data['sessionId']}]", fg=typer.colors.CYAN)
    typer.echo(data["message"])


@app.command("history")
def history(
    session_id: Annotated[str, typer.Argument(help="Session to read.")]
):
    """Print a session's message history."""
    data = make_api_request("GET", f"/api/chat/{session_id}")
    for entry in data.get("messages", []):
        typer.secho(f"{entry['role']}:", fg=typer.colors.CYAN)
        typer.echo(entry["content"])


@app.command("clear")
def clear(
    session_id: Annotated[str, typer.Argument(help="Session to remove.")]
):
    """Remove a session from a running bridge."""
    data = make_api_request("DELETE", f"/api/chat/{session_id}")
    typer.secho(data.get("message", "Session cleared"), fg=typer.colors.GREEN)


@app.callback()
def main_callback():
    """
    Salesforce AI Bridge CLI.
    Use 'bridge serve' to run the server, or 'bridge chat' to talk to a running one.
    """
    pass


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
