"""Core data types shared by the client components.

This module provides:
- ContentID: Opaque content hash of a directory or file
- Account: Server credentials and the current auth token
- DirentKind, Dirent: Entries of a directory listing
- DirectoryListing: Dirents tagged with the ID they were fetched at
- Repo: A top-level library on the server
- TransferResult: Outcome of a file fetch
"""

from __future__ import annotations

import json
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

# Equality of two content IDs is the only cache-validity test.
ContentID = str


@dataclass(eq=False)
class Account:
    """A server account.

    Identity is (server_url, email). The token is replaced wholesale on
    every successful login; readers capture it once per request.
    """

    server_url: str
    email: str
    password: str | None = None
    token: str | None = None

    def __post_init__(self) -> None:
        if not self.server_url.endswith("/"):
            self.server_url = self.server_url + "/"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.server_url == other.server_url and self.email == other.email

    def __hash__(self) -> int:
        return hash((self.server_url, self.email))

    def __repr__(self) -> str:
        return f"Account(server_url={self.server_url!r}, email={self.email!r})"

    @property
    def server_no_protocol(self) -> str:
        """Server URL without scheme and trailing slash."""
        result = self.server_url.split("://", 1)[-1]
        return result.rstrip("/")

    @property
    def server_host(self) -> str:
        """Host (and port) part of the server URL."""
        return self.server_no_protocol.split("/", 1)[0]

    @property
    def is_https(self) -> bool:
        return self.server_url.startswith("https")

    @property
    def signature(self) -> str:
        """Short label for display: email prefix plus a stable identity digest."""
        digest = zlib.crc32(f"{self.server_url}{self.email}".encode())
        return f"{self.email[:4]} {digest:08x}"


class DirentKind(Enum):
    """Kind of a directory entry."""

    FILE = "file"
    DIR = "dir"


@dataclass(frozen=True)
class Dirent:
    """One entry of a directory listing.

    Attributes:
        id: Content ID of the entry.
        kind: FILE or DIR.
        name: Entry name (no path separators).
        modified_at: Last modification as a Unix timestamp.
        size: Size in bytes for files, None for directories.
    """

    id: ContentID
    kind: DirentKind
    name: str
    modified_at: int
    size: int | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is DirentKind.DIR

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dirent:
        """Create from API response dictionary."""
        if data["type"] == "file":
            return cls(
                id=data["id"],
                kind=DirentKind.FILE,
                name=data["name"],
                modified_at=int(data["mtime"]),
                size=int(data["size"]),
            )
        return cls(
            id=data["id"],
            kind=DirentKind.DIR,
            name=data["name"],
            modified_at=int(data["mtime"]),
        )


@dataclass(frozen=True)
class DirectoryListing:
    """Directory content as of a given content ID.

    Attributes:
        content_id: Directory content ID the listing was fetched at.
        dirents: Entries in server order.
        body: Raw JSON body, kept so callers can persist it as-is.
    """

    content_id: ContentID
    dirents: tuple[Dirent, ...]
    body: str = ""

    def __len__(self) -> int:
        return len(self.dirents)

    def __iter__(self) -> Iterator[Dirent]:
        return iter(self.dirents)

    @classmethod
    def from_json(cls, content_id: ContentID, body: str) -> DirectoryListing:
        """Parse a JSON array of dirents.

        Raises:
            ValueError, KeyError, TypeError: If the body is not a valid listing.
        """
        data = json.loads(body)
        if not isinstance(data, list):
            raise ValueError("directory listing is not a JSON array")
        return cls(
            content_id=content_id,
            dirents=tuple(Dirent.from_dict(d) for d in data),
            body=body,
        )


@dataclass(frozen=True)
class Repo:
    """A library on the server."""

    id: str
    name: str
    description: str = ""
    owner: str = ""
    permission: str = "r"
    encrypted: bool = False
    size: int = 0
    modified_at: int = 0
    root: ContentID | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Repo:
        """Create from API response dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("desc", ""),
            owner=data.get("owner", ""),
            permission=data.get("permission", "r"),
            encrypted=bool(data.get("encrypted", False)),
            size=int(data.get("size", 0)),
            modified_at=int(data.get("mtime", 0)),
            root=data.get("root"),
        )


@dataclass
class TransferResult:
    """Result of a file fetch.

    Attributes:
        content_id: Current content ID of the remote file.
        local_file: Destination path holding that content.
        was_cached: True if no bytes were transferred.
        size: Bytes transferred (0 when cached).
    """

    content_id: ContentID
    local_file: Path
    was_cached: bool
    size: int = 0
