"""Shared configuration classes for wingusync.

This module defines the transport configuration used by the HTTP layer.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TransportConfig:
    """Configuration for connecting to a file server.

    Attributes:
        server_url: Base URL of the server, optionally with a sub-path
            (e.g., "https://cloud.example.com/winguhub/").
        verify_ssl: Whether to verify TLS certificates and hostnames.
            Deployments with self-signed certificates must opt out
            explicitly.
    """

    server_url: str
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL to end with exactly one slash."""
        self.server_url = self.server_url.rstrip("/") + "/"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")
