"""Configuration utilities for the wingusync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from wingusync.client.cache import CacheStore
from wingusync.client.connection import Connection
from wingusync.client.errors import AuthFailure, UserCancelled
from wingusync.core.config import TransportConfig
from wingusync.core.types import Account


def get_config_dir() -> Path:
    """Get the configuration directory for wingusync.

    Returns:
        Path to ~/.wingusync or equivalent.
    """
    return Path.home() / ".wingusync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_cache_file() -> Path:
    """Get the path to the content-ID cache database."""
    return get_config_dir() / "cache.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def setup_logging(verbose: bool) -> None:
    """Send wingusync log records to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root_logger = logging.getLogger("wingusync")
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root_logger.propagate = False


def open_connection() -> Connection:
    """Build a connection from the saved login.

    Exits with an error if no login was saved.
    """
    config = load_config()
    if not config.get("server_url") or not config.get("token"):
        click.echo("Error: Not logged in. Run 'wingusync login' first.", err=True)
        sys.exit(1)

    account = Account(
        server_url=config["server_url"],
        email=config.get("email", ""),
        token=config["token"],
    )
    transport_config = TransportConfig(
        server_url=config["server_url"],
        verify_ssl=not config.get("insecure", False),
    )
    return Connection(account, transport_config, cache=CacheStore(get_cache_file()))


def exit_with_error(error: Exception, path: str | None = None) -> NoReturn:
    """Print a failure the way users expect it and exit non-zero."""
    if isinstance(error, AuthFailure) and error.not_found and path:
        click.echo(f'Error: "{path}" was deleted on the server.', err=True)
    elif isinstance(error, AuthFailure) and error.needs_password:
        click.echo("Error: This library is encrypted. Run 'wingusync unlock' first.", err=True)
    elif isinstance(error, UserCancelled):
        click.echo("Cancelled.", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)
