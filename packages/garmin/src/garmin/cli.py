"""CLI for signing in to Garmin Connect."""

import asyncio
import json
import logging
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from garmin.client import GarminClient
from garmin.config import AuthConfig
from garmin.exceptions import GarminAuthError
from garmin.models import ExportedCredentials
from shared_lib.baseclient.exceptions import ClientError, ConfigurationError
from shared_lib.logging import setup_logging

app = typer.Typer(help="Garmin Connect SSO authentication")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Garmin Connect SSO authentication."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


def _preview(value: str | None, length: int = 20) -> str:
    if not value:
        return "-"
    return f"{value[:length]}..." if len(value) > length else value


async def _login(config: AuthConfig, email: str, password: str) -> ExportedCredentials:
    async with GarminClient(config) as client:
        result = await client.login(email, password)
        if result.needs_mfa:
            console.print("[yellow]MFA required, check your email for the code[/yellow]")
            code = typer.prompt("Enter MFA code")
            result = await client.resume(result.session_token, code.strip())
        return result.credentials


def _print_summary(credentials: ExportedCredentials) -> None:
    table = Table(title="Garmin Connect credentials")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    if credentials.signing:
        table.add_row("OAuth1 token", _preview(credentials.signing.key))
    if credentials.bearer:
        bearer = credentials.bearer
        table.add_row("OAuth2 access token", _preview(bearer.access_token))
        table.add_row(
            "OAuth2 expires at",
            datetime.fromtimestamp(bearer.expires_at).strftime("%Y-%m-%d %H:%M:%S"),
        )
        table.add_row(
            "Refresh expires at",
            datetime.fromtimestamp(bearer.refresh_expires_at).strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Garmin account email"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Garmin account password"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Print credentials as JSON"),
):
    """Sign in, answering the MFA prompt if Garmin asks for one.

    Configuration is read from the environment (or a .env file):
    MFA_SECRET_KEY is required.
    """
    try:
        config = AuthConfig.from_env()
        config.validate()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(1)

    try:
        credentials = asyncio.run(_login(config, email, password))
    except GarminAuthError as e:
        console.print(f"[red]✗ Login failed:[/red] {e.message} [dim]({e.action})[/dim]")
        raise typer.Exit(1)
    except ClientError as e:
        console.print(f"[red]✗ Request failed:[/red] {e.message}")
        raise typer.Exit(1)

    if json_output:
        console.print_json(json.dumps(credentials.to_dict()))
        return

    console.print("[green]✓ Login successful![/green]")
    _print_summary(credentials)
