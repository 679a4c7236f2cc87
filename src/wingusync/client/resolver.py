"""Content-addressed metadata queries.

This module provides:
- Resolver: conditional directory fetches, download-link resolution and
  the repository-level operations (list, unlock, mkdir, create file)
- path_join: remote path joining
"""

from __future__ import annotations

import json
import logging

import httpx

from wingusync.client.errors import MalformedResponse, SyncError
from wingusync.client.transport import Transport, check_response
from wingusync.core.types import ContentID, DirectoryListing, Repo

logger = logging.getLogger(__name__)

# Response header carrying the current content ID.
OID_HEADER = "oid"


def path_join(parent: str, name: str) -> str:
    """Join a remote directory and an entry name with a single slash."""
    if not parent.endswith("/"):
        parent += "/"
    return parent + name.lstrip("/")


def parse_quoted_url(body: str) -> str | None:
    """Return the URL inside a quoted ``"http(s)://..."`` body, else None."""
    body = body.strip()
    if len(body) < 2 or not body.startswith('"http') or not body.endswith('"'):
        return None
    url = body[1:-1]
    if not url.startswith(("http://", "https://")):
        return None
    return url


def _decode(response: httpx.Response) -> str:
    try:
        return response.content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedResponse(f"response is not valid UTF-8: {e}") from e


def _parse_listing(content_id: ContentID, body: str) -> DirectoryListing:
    try:
        return DirectoryListing.from_json(content_id, body)
    except (ValueError, KeyError, TypeError) as e:
        raise MalformedResponse(f"invalid directory listing: {e}") from e


class Resolver:
    """Resolves current content IDs and fetches metadata when stale."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def list_repos(self) -> list[Repo]:
        """List the libraries visible to the account."""
        response = check_response(self._transport.get("api2/repos/"))
        body = _decode(response)
        try:
            data = json.loads(body)
            return [Repo.from_dict(r) for r in data]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(f"invalid repo list: {e}") from e

    def resolve_directory(
        self,
        repo_id: str,
        path: str,
        known_id: ContentID | None,
    ) -> tuple[ContentID, DirectoryListing | None]:
        """Fetch a directory listing unless the cached one is current.

        Args:
            repo_id: Repository ID.
            path: Directory path inside the repository.
            known_id: Content ID of the cached listing, or None.

        Returns:
            ``(known_id, None)`` if the cache is current, otherwise
            ``(current_id, listing)``.

        Raises:
            MalformedResponse: If the ``oid`` header is missing or the body
                is not a listing.
        """
        params = {"p": path}
        if known_id is not None:
            params["oid"] = known_id
        response = check_response(
            self._transport.get(f"api2/repos/{repo_id}/dir/", params=params)
        )

        current_id = response.headers.get(OID_HEADER)
        if current_id is None:
            raise MalformedResponse(f"no {OID_HEADER} header for dir {path}")

        if current_id == known_id:
            logger.debug(f"dir {path} is cached")
            return known_id, None

        logger.debug(
            f"dir {path} will be downloaded from server, "
            f"latest {current_id}, local cache {known_id}"
        )
        return current_id, _parse_listing(current_id, _decode(response))

    def resolve_file_download(self, repo_id: str, path: str) -> tuple[str, ContentID]:
        """Resolve a short-lived download URL and the file's current ID.

        Returns:
            ``(download_url, current_file_id)``.

        Raises:
            MalformedResponse: If the body is not a quoted http(s) URL or
                the ``oid`` header is missing.
        """
        response = check_response(
            self._transport.get(
                f"api2/repos/{repo_id}/file/", params={"p": path, "op": "download"}
            )
        )
        url = parse_quoted_url(_decode(response))
        file_id = response.headers.get(OID_HEADER)
        if url is None or file_id is None:
            raise MalformedResponse(f"invalid download link response for {path}")
        return url, file_id

    def set_password(self, repo_id: str, password: str) -> None:
        """Unlock an encrypted repository for this session.

        Raises:
            AuthFailure: On a wrong password, with the server's code.
        """
        try:
            check_response(
                self._transport.post(
                    f"api2/repos/{repo_id}/", data={"password": password}
                )
            )
        except SyncError as e:
            logger.debug(f"Set password for repo {repo_id} failed: {e.status_code}")
            raise

    def create_dir(
        self, repo_id: str, parent_dir: str, name: str
    ) -> tuple[ContentID, DirectoryListing | None]:
        """Create a directory and return the parent's new ID and listing."""
        return self._create(repo_id, "dir", "mkdir", path_join(parent_dir, name))

    def create_file(
        self, repo_id: str, parent_dir: str, name: str
    ) -> tuple[ContentID, DirectoryListing | None]:
        """Create an empty file and return the parent's new ID and listing."""
        return self._create(repo_id, "file", "create", path_join(parent_dir, name))

    def _create(
        self, repo_id: str, endpoint: str, operation: str, full_path: str
    ) -> tuple[ContentID, DirectoryListing | None]:
        response = check_response(
            self._transport.post(
                f"api2/repos/{repo_id}/{endpoint}/",
                params={"p": full_path, "reloaddir": "true"},
                data={"operation": operation},
            )
        )
        new_id = response.headers.get(OID_HEADER)
        if new_id is None:
            raise MalformedResponse(f"no {OID_HEADER} header after {operation} {full_path}")
        body = _decode(response)
        if not body:
            return new_id, None
        logger.info(f"{operation} {full_path} in repo {repo_id}")
        return new_id, _parse_listing(new_id, body)
