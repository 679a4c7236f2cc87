"""High-level connection to one account.

This module provides:
- Connection: wires transport, session, resolver and transfer engine
  together and keeps the content-ID cache in step with every fetch

Control flow:
    login -> resolve (conditional on the cached ID) -> transfer if stale
          -> persist the new content ID as the cache key
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import httpx

from wingusync.client.cache import CacheStore
from wingusync.client.engine import UPLOAD_ATTEMPTS, TransferEngine
from wingusync.client.errors import AuthFailure, MalformedResponse, SyncError, UserCancelled
from wingusync.client.monitor import ProgressMonitor
from wingusync.client.resolver import Resolver, path_join
from wingusync.client.retry import retry
from wingusync.client.session import Session
from wingusync.client.transfers import Transfer
from wingusync.client.transport import Transport
from wingusync.core.config import TransportConfig
from wingusync.core.types import Account, DirectoryListing, Repo, TransferResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes that mean the token is no longer accepted.
TOKEN_REJECTED = (401, 403)


class Connection:
    """Client for one account, optionally backed by a content-ID cache."""

    def __init__(
        self,
        account: Account,
        config: TransportConfig | None = None,
        cache: CacheStore | None = None,
        client: httpx.Client | None = None,
        on_state_change: Callable[[Transfer], None] | None = None,
    ) -> None:
        """Initialize the connection.

        Args:
            account: Account to act as.
            config: Transport configuration.
            cache: Optional content-ID cache.
            client: Optional pre-built httpx client (for tests).
            on_state_change: Optional transfer state callback.
        """
        self.account = account
        self.transport = Transport(account, config, client)
        self.session = Session(self.transport)
        self.resolver = Resolver(self.transport)
        self.engine = TransferEngine(self.transport, self.resolver, on_state_change)
        self._cache = cache

    def close(self) -> None:
        """Close the HTTP client and the cache."""
        self.transport.close()
        if self._cache:
            self._cache.close()

    def __enter__(self) -> Connection:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def login(self) -> str:
        """Log in (with one automatic retry) and return the token."""
        return self.session.login_with_retry()

    def _can_relogin(self, error: AuthFailure) -> bool:
        return error.status_code in TOKEN_REJECTED and bool(self.account.password)

    def _relogin(self, error: AuthFailure) -> None:
        logger.info(f"Token rejected ({error.status_code}), logging in again")
        self.session.login_with_retry()

    def _call(self, func: Callable[[], T]) -> T:
        """Run ``func``; if the token was rejected, log in again and rerun once."""
        try:
            return func()
        except AuthFailure as e:
            if not self._can_relogin(e):
                raise
            self._relogin(e)
            return func()

    # === Repositories ===

    def list_repos(self) -> list[Repo]:
        return self._call(self.resolver.list_repos)

    def set_password(self, repo_id: str, password: str) -> None:
        """Unlock an encrypted repository."""
        self._call(lambda: self.resolver.set_password(repo_id, password))

    # === Directories ===

    def fetch_dir(self, repo_id: str, path: str) -> DirectoryListing:
        """Return the current listing of a directory, from cache when valid.

        Raises:
            AuthFailure: ``needs_password`` for locked repositories,
                ``not_found`` if the directory was deleted (its cache entry
                is dropped).
            MalformedResponse: If no usable listing could be obtained. An
                unreadable cached listing is dropped and fetched again.
        """
        entry = self._cache.get(repo_id, path) if self._cache else None
        cached_body = entry.body if entry else None
        known_id = entry.content_id if entry and cached_body is not None else None

        current_id, listing = self._resolve_dir(repo_id, path, known_id)
        if listing is None and cached_body is not None:
            try:
                return DirectoryListing.from_json(current_id, cached_body)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Cached listing of {path} is unreadable ({e}), refetching")
                if self._cache:
                    self._cache.remove(repo_id, path)
            current_id, listing = self._resolve_dir(repo_id, path, None)

        if listing is None:
            raise MalformedResponse(f"no listing returned for dir {path}")

        if self._cache:
            self._cache.put(repo_id, path, current_id, body=listing.body)
        return listing

    def _resolve_dir(
        self, repo_id: str, path: str, known_id: str | None
    ) -> tuple[str, DirectoryListing | None]:
        try:
            return self._call(
                lambda: self.resolver.resolve_directory(repo_id, path, known_id)
            )
        except AuthFailure as e:
            if e.not_found and self._cache:
                self._cache.remove(repo_id, path)
            raise

    def create_dir(self, repo_id: str, parent_dir: str, name: str) -> DirectoryListing | None:
        """Create a directory; returns the parent's new listing if sent."""
        new_id, listing = self._call(
            lambda: self.resolver.create_dir(repo_id, parent_dir, name)
        )
        self._store_parent(repo_id, parent_dir, new_id, listing)
        return listing

    def create_file(self, repo_id: str, parent_dir: str, name: str) -> DirectoryListing | None:
        """Create an empty file; returns the parent's new listing if sent."""
        new_id, listing = self._call(
            lambda: self.resolver.create_file(repo_id, parent_dir, name)
        )
        self._store_parent(repo_id, parent_dir, new_id, listing)
        return listing

    def _store_parent(
        self,
        repo_id: str,
        parent_dir: str,
        new_id: str,
        listing: DirectoryListing | None,
    ) -> None:
        if not self._cache:
            return
        if listing is not None:
            self._cache.put(repo_id, parent_dir, new_id, body=listing.body)
        else:
            self._cache.remove(repo_id, parent_dir)

    # === Files ===

    def fetch_file(
        self,
        repo_id: str,
        path: str,
        destination: Path,
        monitor: ProgressMonitor | None = None,
    ) -> TransferResult:
        """Download a file unless the cached copy at ``destination`` is current."""
        known_id = None
        if self._cache:
            entry = self._cache.get(repo_id, path)
            # The cached ID only vouches for the file it was recorded with.
            if entry and entry.local_path == destination and destination.exists():
                known_id = entry.content_id

        result = self._call(
            lambda: self.engine.fetch_file(repo_id, path, destination, known_id, monitor)
        )
        if self._cache and not result.was_cached:
            self._cache.put(repo_id, path, result.content_id, local_path=destination)
        return result

    def upload_file(
        self,
        repo_id: str,
        parent_dir: str,
        local_path: Path,
        monitor: ProgressMonitor | None = None,
        update: bool = False,
    ) -> str:
        """Upload a file; returns the server's response body.

        The upload is attempted at most twice in total. A rejected token on
        the first attempt triggers a fresh login before the second one.
        """
        attempt = 0

        def upload() -> str:
            nonlocal attempt
            attempt += 1
            try:
                return self.engine.upload_once(
                    repo_id, parent_dir, local_path, monitor, update
                )
            except AuthFailure as e:
                if attempt < UPLOAD_ATTEMPTS and self._can_relogin(e):
                    self._relogin(e)
                raise

        result = retry(
            upload,
            attempts=UPLOAD_ATTEMPTS,
            retryable_exceptions=(SyncError,),
            fatal_exceptions=(UserCancelled,),
            description=f"upload of {local_path.name}",
        )
        if self._cache:
            # The parent listing changed; the uploaded file's own ID is only
            # recorded when the server answered with a bare ID.
            self._cache.remove(repo_id, parent_dir)
            new_id = result.strip().strip('"')
            remote_path = path_join(parent_dir, local_path.name)
            if new_id and all(c.isalnum() for c in new_id):
                self._cache.put(repo_id, remote_path, new_id, local_path=local_path)
            else:
                self._cache.remove(repo_id, remote_path)
        return result
