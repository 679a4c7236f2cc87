"""Account commands for the wingusync CLI.

Commands:
- login: Obtain a token and save the connection
- logout: Forget the saved token
"""

from __future__ import annotations

import sys

import click

from wingusync.client.cli.config import load_config, save_config
from wingusync.client.connection import Connection
from wingusync.client.errors import AuthFailure, SyncError
from wingusync.core.config import TransportConfig
from wingusync.core.types import Account


@click.command()
@click.option("--server", required=True, help="Server URL (e.g., https://cloud.example.com/).")
@click.option("--email", required=True, help="Account email.")
@click.option("--password", prompt=True, hide_input=True, help="Account password.")
@click.option(
    "--insecure",
    is_flag=True,
    help="Accept self-signed TLS certificates (disables verification).",
)
def login(server: str, email: str, password: str, insecure: bool) -> None:
    """Log in to a server and save the token."""
    account = Account(server_url=server, email=email, password=password)
    config = TransportConfig(server_url=server, verify_ssl=not insecure)

    try:
        with Connection(account, config) as connection:
            token = connection.login()
    except AuthFailure as e:
        click.echo(f"Error: Login refused ({e.status_code}): {e.message}", err=True)
        sys.exit(1)
    except SyncError as e:
        click.echo(f"Error: Login failed: {e}", err=True)
        sys.exit(1)

    saved = load_config()
    saved.update(
        {
            "server_url": account.server_url,
            "email": email,
            "token": token,
            "insecure": insecure,
        }
    )
    save_config(saved)
    click.echo(f"Logged in to {account.server_host} as {email}")


@click.command()
def logout() -> None:
    """Forget the saved token."""
    config = load_config()
    if not config.pop("token", None):
        click.echo("Not logged in.")
        return
    save_config(config)
    click.echo("Logged out.")
