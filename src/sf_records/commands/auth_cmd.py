"""CLI commands for authentication management."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from sf_records.auth import TokenManager
from sf_records.client import SalesforceClient
from sf_records.config import Config, get_config
from sf_records.utils.errors import SalesforceError, handle_error
from sf_records.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Manage authentication tokens.")


def _load_config() -> Config:
    try:
        return get_config()
    except SalesforceError as e:
        handle_error(e)
        raise typer.Exit(1)


def _status_result(auth: TokenManager, status: str) -> dict[str, object]:
    token_status = auth.get_status()
    return {
        "status": status,
        "grant_type": token_status.grant_type,
        "instance_url": token_status.instance_url,
        "expires_at": str(token_status.expires_at),
        "seconds_remaining": token_status.seconds_remaining,
    }


@app.command()
def login(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Authenticate and display token status."""
    config = _load_config()
    auth = TokenManager(config)

    try:
        console.print(f"Authenticating ([bold]{auth.grant_type}[/bold] grant)...", style="yellow")
        auth.get_access_token()
        print_output(_status_result(auth, "authenticated"), output, title="Authentication")
    except SalesforceError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        auth.close()


@app.command()
def status(
    check: Annotated[bool, typer.Option("--check", help="Also acquire a token to test connectivity")] = False,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show configured grant and, with --check, whether the platform is reachable."""
    config = _load_config()
    auth = TokenManager(config)

    try:
        missing = config.missing_credentials()
        result: dict[str, object] = {
            "grant_type": auth.grant_type,
            "token_url": config.settings.token_url or "N/A",
            "api_version": config.settings.api_version,
            "credentials": "incomplete: " + ", ".join(missing) if missing else "configured",
        }
        if check:
            try:
                token = auth.get_access_token()
                result["salesforce"] = "connected"
                result["instance_url"] = token.instance_url
            except SalesforceError as e:
                result["salesforce"] = "disconnected"
                result["salesforce_error"] = str(e)
        print_output(result, output, title="Token Status")
    finally:
        auth.close()


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Discard the cached token and acquire a new one."""
    config = _load_config()
    auth = TokenManager(config)

    try:
        console.print("Force refreshing token...", style="yellow")
        auth.invalidate()
        auth.get_access_token()
        print_output(_status_result(auth, "refreshed"), output, title="Token Refreshed")
    except SalesforceError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        auth.close()


@app.command()
def whoami(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show the identity the token was issued to."""
    config = _load_config()
    auth = TokenManager(config)
    client = SalesforceClient(config, auth)

    try:
        info = client.get_user_info()
        columns = ["user_id", "preferred_username", "name", "email", "organization_id"]
        print_output({k: info.get(k) for k in columns}, output, title="Identity")
    except SalesforceError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
