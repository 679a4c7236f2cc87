"""Browsing commands for the wingusync CLI.

Commands:
- repos: List libraries
- ls: List a directory (served from cache when unchanged)
- mkdir: Create a directory
- touch: Create an empty file
- unlock: Provide the password of an encrypted library
"""

from __future__ import annotations

import datetime
import sys

import click

from wingusync.client.cli.config import exit_with_error, open_connection
from wingusync.client.errors import PASSWORD_REQUIRED, AuthFailure, SyncError
from wingusync.core.types import DirectoryListing

# Codes the server uses to reject a library password.
WRONG_PASSWORD = (400, PASSWORD_REQUIRED)


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _print_listing(listing: DirectoryListing) -> None:
    if not len(listing):
        click.echo("(empty)")
        return
    for dirent in listing:
        mtime = datetime.datetime.fromtimestamp(dirent.modified_at).strftime("%Y-%m-%d %H:%M")
        if dirent.is_dir:
            click.echo(f"{'<dir>':>10}  {mtime}  {dirent.name}/")
        else:
            click.echo(f"{_format_size(dirent.size or 0):>10}  {mtime}  {dirent.name}")


@click.command()
def repos() -> None:
    """List the libraries of the account."""
    with open_connection() as connection:
        try:
            libraries = connection.list_repos()
        except SyncError as e:
            exit_with_error(e)

    for repo in libraries:
        lock = " [encrypted]" if repo.encrypted else ""
        click.echo(f"{repo.id}  {repo.name}{lock}")


@click.command()
@click.argument("repo_id")
@click.argument("path", default="/")
def ls(repo_id: str, path: str) -> None:
    """List a directory of a library."""
    with open_connection() as connection:
        try:
            try:
                listing = connection.fetch_dir(repo_id, path)
            except AuthFailure as e:
                if not e.needs_password:
                    raise
                password = click.prompt("Library password", hide_input=True)
                connection.set_password(repo_id, password)
                listing = connection.fetch_dir(repo_id, path)
        except SyncError as e:
            exit_with_error(e, path)

    _print_listing(listing)


@click.command()
@click.argument("repo_id")
@click.argument("parent_dir")
@click.argument("name")
def mkdir(repo_id: str, parent_dir: str, name: str) -> None:
    """Create directory NAME inside PARENT_DIR."""
    with open_connection() as connection:
        try:
            connection.create_dir(repo_id, parent_dir, name)
        except SyncError as e:
            exit_with_error(e, parent_dir)
    click.echo(f"Created {name}/")


@click.command()
@click.argument("repo_id")
@click.argument("parent_dir")
@click.argument("name")
def touch(repo_id: str, parent_dir: str, name: str) -> None:
    """Create empty file NAME inside PARENT_DIR."""
    with open_connection() as connection:
        try:
            connection.create_file(repo_id, parent_dir, name)
        except SyncError as e:
            exit_with_error(e, parent_dir)
    click.echo(f"Created {name}")


@click.command()
@click.argument("repo_id")
@click.option("--password", prompt="Library password", hide_input=True)
def unlock(repo_id: str, password: str) -> None:
    """Unlock an encrypted library for this session."""
    with open_connection() as connection:
        try:
            connection.set_password(repo_id, password)
        except AuthFailure as e:
            if e.status_code not in WRONG_PASSWORD:
                exit_with_error(e)
            click.echo(f"Error: Wrong password ({e.status_code}).", err=True)
            sys.exit(1)
        except SyncError as e:
            exit_with_error(e)
    click.echo("Library unlocked.")
