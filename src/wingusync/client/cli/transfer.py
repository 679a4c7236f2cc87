"""Transfer commands for the wingusync CLI.

Commands:
- pull: Download a file unless the local copy is current
- push: Upload a local file (new or update)

Transfers run on a worker thread; Ctrl-C cancels them through the monitor.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import TypeVar

import click

from wingusync.client.cli.config import exit_with_error, open_connection
from wingusync.client.errors import SyncError
from wingusync.client.monitor import CancellableMonitor

T = TypeVar("T")

POLL_INTERVAL = 0.2  # seconds


class ConsoleMonitor(CancellableMonitor):
    """Monitor that draws a one-line progress indicator."""

    def __init__(self, label: str, quiet: bool = False) -> None:
        super().__init__()
        self._label = label
        self._quiet = quiet

    def on_progress_notify(self, bytes_so_far: int) -> None:
        super().on_progress_notify(bytes_so_far)
        if self._quiet:
            return
        if self.total:
            percent = min(100, bytes_so_far * 100 // self.total)
            status = f"\r  {self._label}  {percent:3d}%"
        else:
            status = f"\r  {self._label}  {bytes_so_far} bytes"
        sys.stderr.write(status)
        sys.stderr.flush()

    def done(self) -> None:
        if not self._quiet:
            sys.stderr.write("\n")
            sys.stderr.flush()


def run_cancellable(func: Callable[[], T], monitor: CancellableMonitor) -> T:
    """Run ``func`` on a worker thread, cancelling it on Ctrl-C."""
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="transfer") as pool:
        future = pool.submit(func)
        while True:
            try:
                return future.result(timeout=POLL_INTERVAL)
            except FutureTimeout:
                continue
            except KeyboardInterrupt:
                click.echo("\nCancelling...", err=True)
                monitor.cancel()


@click.command()
@click.argument("repo_id")
@click.argument("path")
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--quiet", "-q", is_flag=True, help="Do not show progress.")
def pull(repo_id: str, path: str, destination: Path, quiet: bool) -> None:
    """Download PATH of a library to DESTINATION."""
    destination = destination.expanduser().resolve()
    monitor = ConsoleMonitor(f"↓ {Path(path).name}", quiet=quiet)
    with open_connection() as connection:
        try:
            result = run_cancellable(
                lambda: connection.fetch_file(repo_id, path, destination, monitor),
                monitor,
            )
        except SyncError as e:
            monitor.done()
            exit_with_error(e, path)

    if result.was_cached:
        click.echo(f"{destination} is up to date.")
    else:
        monitor.done()
        click.echo(f"Downloaded {path} -> {destination}")


@click.command()
@click.argument("repo_id")
@click.argument("parent_dir")
@click.argument("local_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--update", is_flag=True, help="Replace the existing remote file.")
@click.option("--quiet", "-q", is_flag=True, help="Do not show progress.")
def push(repo_id: str, parent_dir: str, local_file: Path, update: bool, quiet: bool) -> None:
    """Upload LOCAL_FILE into PARENT_DIR of a library."""
    monitor = ConsoleMonitor(f"↑ {local_file.name}", quiet=quiet)
    with open_connection() as connection:
        try:
            run_cancellable(
                lambda: connection.upload_file(repo_id, parent_dir, local_file, monitor, update),
                monitor,
            )
        except SyncError as e:
            monitor.done()
            exit_with_error(e, parent_dir)

    monitor.done()
    click.echo(f"Uploaded {local_file.name} -> {parent_dir}")
