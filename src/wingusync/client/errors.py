"""Failure taxonomy for the sync client.

Every failure surfaced by the transport, session, resolver and transfer
engine is a SyncError subclass. Raw httpx, JSON and OS errors never leave
the client package.
"""

from __future__ import annotations

# Conventional server codes with a dedicated recovery path.
PASSWORD_REQUIRED = 440
NOT_FOUND = 404


class SyncError(Exception):
    """Base exception for sync client errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(SyncError):
    """Connectivity, timeout or transport-level failure."""

    def __init__(self, message: str = "network error") -> None:
        super().__init__(message)


class AuthFailure(SyncError):
    """Server answered with a non-200 status and a message."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, status_code)
        self.message = message

    @property
    def needs_password(self) -> bool:
        """The repository is encrypted and must be unlocked first."""
        return self.status_code == PASSWORD_REQUIRED

    @property
    def not_found(self) -> bool:
        """The path was deleted remotely."""
        return self.status_code == NOT_FOUND

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class MalformedResponse(SyncError):
    """Unparseable or protocol-violating response body or headers."""


class UserCancelled(SyncError):
    """The transfer was aborted through its monitor."""

    def __init__(self, message: str = "transfer cancelled by user") -> None:
        super().__init__(message)


class TransferFailure(SyncError):
    """A local filesystem step of a transfer failed."""


class UnknownFailure(SyncError):
    """Unexpected condition, e.g. an unrecognizable upload link."""
