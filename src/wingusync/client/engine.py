"""Byte transfers between the server and the local cache.

This module provides:
- TransferEngine: downloads a file into the local cache, skipping the
  transfer when the content ID proves the cache is current, and uploads
  local files through a one-time upload link
- quote_last_segment: percent-encodes the file name of a download URL
"""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote

import httpx

from wingusync.client.errors import (
    MalformedResponse,
    SyncError,
    TransferFailure,
    UnknownFailure,
    UserCancelled,
)
from wingusync.client.monitor import (
    DOWNLOAD_BLOCK_SIZE,
    MonitoredWriter,
    ProgressMonitor,
    TransferCancelled,
)
from wingusync.client.multipart import MultipartUpload
from wingusync.client.resolver import Resolver, parse_quoted_url, path_join
from wingusync.client.retry import retry
from wingusync.client.transfers import Transfer, TransferType
from wingusync.client.transport import Transport, check_response
from wingusync.core.types import ContentID, TransferResult

logger = logging.getLogger(__name__)

UPLOAD_ATTEMPTS = 2
DOWNLOAD_CHUNK_SIZE = 16 * DOWNLOAD_BLOCK_SIZE


def quote_last_segment(url: str) -> str:
    """Percent-encode the final path segment of a URL, leaving the rest as-is."""
    head, sep, name = url.rpartition("/")
    if not sep:
        return url
    return f"{head}/{quote(name, safe='')}"


def temp_path_for(destination: Path, content_id: ContentID) -> Path:
    """Temporary download file colocated with ``destination``."""
    return destination.with_name(f".{destination.name}.{content_id[:12]}.part")


class TransferEngine:
    """Performs downloads and uploads for one account.

    The engine keeps no state between calls; every call tracks its own
    Transfer from IDLE to a terminal state.
    """

    def __init__(
        self,
        transport: Transport,
        resolver: Resolver | None = None,
        on_state_change: Callable[[Transfer], None] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            transport: HTTP transport.
            resolver: Resolver for download/upload links (built if omitted).
            on_state_change: Optional callback invoked on every transition.
        """
        self._transport = transport
        self._resolver = resolver or Resolver(transport)
        self._on_state_change = on_state_change

    def _new_transfer(self, repo_id: str, path: str, kind: TransferType) -> Transfer:
        return Transfer(
            repo_id=repo_id,
            path=path,
            transfer_type=kind,
            _on_change=self._on_state_change,
        )

    # === Download ===

    def fetch_file(
        self,
        repo_id: str,
        path: str,
        destination: Path,
        known_file_id: ContentID | None,
        monitor: ProgressMonitor | None = None,
    ) -> TransferResult:
        """Bring ``destination`` up to date with the remote file.

        Args:
            repo_id: Repository ID.
            path: Remote file path.
            destination: Local file to create or replace.
            known_file_id: Content ID of the cached copy, or None.
            monitor: Optional progress/cancellation monitor.

        Returns:
            TransferResult with the current content ID. ``was_cached`` is
            True when no bytes were transferred.

        Raises:
            UserCancelled: If the monitor cancelled the download.
            TransferFailure: If a local filesystem step failed.
            NetworkFailure, AuthFailure, MalformedResponse: Server errors.
        """
        transfer = self._new_transfer(repo_id, path, TransferType.DOWNLOAD)
        try:
            url, file_id = self._resolver.resolve_file_download(repo_id, path)
            transfer.link_resolved()

            if file_id == known_file_id:
                logger.debug(f"file {path} is cached")
                transfer.skip()
                transfer.complete()
                return TransferResult(
                    content_id=file_id, local_file=destination, was_cached=True
                )

            logger.debug(
                f"file {path} will be downloaded from server, "
                f"latest {file_id}, local cache {known_file_id}"
            )
            transfer.start_streaming()
            size = self._download(url, destination, file_id, monitor)
            transfer.complete()
        except TransferCancelled:
            logger.info(f"download of {path} is cancelled")
            transfer.cancel()
            raise UserCancelled(f"download of {path} cancelled") from None
        except SyncError as e:
            transfer.fail(e)
            raise

        logger.info(f"Downloaded {path} ({size} bytes, id {file_id})")
        return TransferResult(
            content_id=file_id, local_file=destination, was_cached=False, size=size
        )

    def _download(
        self,
        url: str,
        destination: Path,
        file_id: ContentID,
        monitor: ProgressMonitor | None,
    ) -> int:
        """Stream ``url`` into a temp file, then rename it over ``destination``."""
        tmp_path = temp_path_for(destination, file_id)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with self._transport.stream("GET", quote_last_segment(url)) as response:
                check_response(response)
                if monitor is not None:
                    length = response.headers.get("Content-Length")
                    if length is None or not length.isdigit():
                        raise MalformedResponse(f"no Content-Length for {url}")
                    monitor.on_transfer_size(int(length))

                with open(tmp_path, "wb") as f:
                    writer = MonitoredWriter(f, monitor) if monitor is not None else None
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        if writer is not None:
                            writer.write(chunk)
                        else:
                            f.write(chunk)
                    if writer is not None:
                        writer.finish()
                size = tmp_path.stat().st_size

            try:
                os.replace(tmp_path, destination)
            except OSError as e:
                logger.warning(f"Rename {tmp_path} -> {destination} failed: {e}")
                raise TransferFailure(f"cannot move download into {destination}: {e}") from e
            return size
        except OSError as e:
            raise TransferFailure(f"cannot write {tmp_path}: {e}") from e
        finally:
            if tmp_path.exists():
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    # === Upload ===

    def upload_file(
        self,
        repo_id: str,
        parent_dir: str,
        local_path: Path,
        monitor: ProgressMonitor | None = None,
        update: bool = False,
    ) -> str:
        """Upload a local file into ``parent_dir``.

        The whole flow (link, body, request) is repeated once if the first
        attempt fails for any reason other than cancellation.

        Args:
            repo_id: Repository ID.
            parent_dir: Remote directory receiving the file.
            local_path: File to upload; its name is kept.
            monitor: Optional progress/cancellation monitor.
            update: Replace the existing remote file instead of creating one.

        Returns:
            The server's response body, unparsed (the new content ID).

        Raises:
            UserCancelled: If the monitor cancelled the upload.
            UnknownFailure: If the upload link is not recognizable.
            TransferFailure: If the local file cannot be read.
            NetworkFailure, AuthFailure: Server errors.
        """
        return retry(
            lambda: self.upload_once(repo_id, parent_dir, local_path, monitor, update),
            attempts=UPLOAD_ATTEMPTS,
            retryable_exceptions=(SyncError,),
            fatal_exceptions=(UserCancelled,),
            description=f"upload of {local_path.name}",
        )

    def update_file(
        self,
        repo_id: str,
        parent_dir: str,
        local_path: Path,
        monitor: ProgressMonitor | None = None,
    ) -> str:
        """Upload a local file over the existing remote file of the same name."""
        return self.upload_file(repo_id, parent_dir, local_path, monitor, update=True)

    def get_upload_link(self, repo_id: str, update: bool) -> str:
        """Fetch a one-time upload URL.

        Raises:
            UnknownFailure: If the body is not a quoted http(s) URL.
        """
        endpoint = "update-link" if update else "upload-link"
        response = check_response(self._transport.get(f"api2/repos/{repo_id}/{endpoint}/"))
        try:
            body = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnknownFailure(f"cannot decode {endpoint}: {e}") from e
        url = parse_quoted_url(body)
        if url is None:
            raise UnknownFailure(f"unrecognized {endpoint} response")
        return url

    def upload_once(
        self,
        repo_id: str,
        parent_dir: str,
        local_path: Path,
        monitor: ProgressMonitor | None = None,
        update: bool = False,
    ) -> str:
        """Run one upload attempt (link, body, request) without retrying."""
        remote_path = path_join(parent_dir, local_path.name)
        transfer = self._new_transfer(repo_id, remote_path, TransferType.UPLOAD)
        try:
            if not local_path.is_file():
                raise TransferFailure(f"File not exists: {local_path}")

            link = self.get_upload_link(repo_id, update)
            transfer.link_resolved()

            if update:
                body = MultipartUpload(local_path, "target_file", remote_path)
            else:
                body = MultipartUpload(local_path, "parent_dir", parent_dir)
            if monitor is not None:
                monitor.on_transfer_size(body.file_size)

            transfer.start_streaming()
            response = check_response(
                self._transport.request(
                    "POST",
                    link,
                    authenticated=False,
                    headers=body.headers,
                    content=body.iter_body(monitor),
                )
            )
            result = response.content.decode("utf-8", errors="replace")
            transfer.complete()
        except TransferCancelled:
            logger.info(f"upload of {remote_path} is cancelled")
            transfer.cancel()
            raise UserCancelled(f"upload of {remote_path} cancelled") from None
        except OSError as e:
            transfer.fail(e)
            raise TransferFailure(f"cannot read {local_path}: {e}") from e
        except SyncError as e:
            transfer.fail(e)
            raise

        logger.info(f"Uploaded {local_path} to {remote_path} in repo {repo_id}")
        return result
