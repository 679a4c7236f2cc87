"""Core module - Shared configuration and data types."""

from wingusync.core.config import TransportConfig
from wingusync.core.types import (
    Account,
    ContentID,
    DirectoryListing,
    Dirent,
    DirentKind,
    Repo,
    TransferResult,
)

__all__ = [
    # Config
    "TransportConfig",
    # Types
    "Account",
    "ContentID",
    "DirectoryListing",
    "Dirent",
    "DirentKind",
    "Repo",
    "TransferResult",
]
