"""Command-line interface for wingusync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- login / logout: Manage the saved token
- repos: List libraries
- ls: List a directory
- mkdir / touch: Create a directory or an empty file
- unlock: Unlock an encrypted library
- pull / push: Download or upload a file
"""

from __future__ import annotations

import click

from wingusync.client.cli.account import login, logout
from wingusync.client.cli.browse import ls, mkdir, repos, touch, unlock
from wingusync.client.cli.config import (
    get_cache_file,
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
    setup_logging,
)
from wingusync.client.cli.transfer import pull, push


@click.group()
@click.version_option(package_name="wingusync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """wingusync - content-addressed file cache client."""
    setup_logging(verbose)


# Account commands
cli.add_command(login)
cli.add_command(logout)

# Browsing commands
cli.add_command(repos)
cli.add_command(ls)
cli.add_command(mkdir)
cli.add_command(touch)
cli.add_command(unlock)

# Transfer commands
cli.add_command(pull)
cli.add_command(push)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_cache_file",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
