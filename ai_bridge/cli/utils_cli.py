# ai_bridge/cli/utils_cli.py
import requests
import typer
import json
from typing import Optional, Dict, Any, Union, List

from ..utils.security import mask_token


def build_auth_headers() -> Dict[str, str]:
    """Salesforce auth headers from the CLI environment, when both values are set."""
    from .config import BRIDGE_CLI_SALESFORCE_ACCESS_TOKEN, BRIDGE_CLI_SALESFORCE_INSTANCE_URL

    if BRIDGE_CLI_SALESFORCE_ACCESS_TOKEN and BRIDGE_CLI_SALESFORCE_INSTANCE_URL:
        return {
            "Authorization": f"Bearer {BRIDGE_CLI_SALESFORCE_ACCESS_TOKEN}",
            "X-Salesforce-Instance-URL": BRIDGE_CLI_SALESFORCE_INSTANCE_URL,
        }
    return {}


def make_api_request(
    method: str,
    endpoint: str,
    json_payload: Optional[Dict[str, Any]] = None,
    expected_status: Union[int, List[int]] = 200,
    timeout: float = 120
) -> Any:
    """
    Calls the bridge HTTP API and prints the exchange.

    The access token is only ever echoed in masked form. Non-expected
    statuses print the bridge's error body and exit with code 1.
    """
    from .config import BRIDGE_CLI_API_BASE_URL

    full_url = f"{BRIDGE_CLI_API_BASE_URL}{endpoint}"
    headers = build_auth_headers()

    typer.echo(f"CLI: {method.upper()} {full_url}")
    if json_payload:
        typer.echo(f"CLI: JSON Payload: {json.dumps(json_payload, indent=2)}")
    if headers:
        log_headers = headers.copy()
        log_headers["Authorization"] = f"Bearer {mask_token(headers['Authorization'][len('Bearer '):])}"
        typer.echo(f"CLI: Headers: {log_headers}")

    try:
        response = requests.request(method, full_url, json=json_payload, headers=headers, timeout=timeout)
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"CLI: Response Status: {response.status_code}")
    expected_statuses = [expected_status] if isinstance(expected_status, int) else expected_status

    try:
        data = response.json()
    except ValueError:
        data = None

    if response.status_code not in expected_statuses:
        err_msg = f"CLI: API Error - Expected status {expected_status}, got {response.status_code}."
        if isinstance(data, dict):
            err_msg += f" {data.get('error', '')}: {data.get('message', response.text)}"
            if "retryAfter" in data:
                err_msg += f" (retry after {data['retryAfter']}s)"
        else:
            err_msg += f" Raw response: {response.text[:500]}"
        typer.secho(err_msg, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if data is None:
        typer.secho(f"CLI: Error - Could not decode JSON response. Raw text: {response.text[:500]}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return data
