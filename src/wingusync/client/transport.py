"""Authenticated HTTP transport.

This module provides:
- Transport: builds every outbound request with a uniform TLS policy and
  fixed timeouts, injects the auth token, and maps low-level failures
  onto the client error taxonomy
- check_response: shared non-200 handling
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from wingusync.client.errors import AuthFailure, MalformedResponse, NetworkFailure
from wingusync.core.config import TransportConfig
from wingusync.core.types import Account

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 15.0  # seconds
READ_TIMEOUT = 30.0  # seconds


def server_message(response: httpx.Response) -> str | None:
    """Extract the server's error message from a response.

    Prefers a JSON ``error_msg``/``detail`` field, then the raw body, then
    the HTTP reason phrase.
    """
    text = ""
    try:
        text = response.text.strip()
    except (httpx.HTTPError, UnicodeDecodeError):
        text = ""
    if text:
        try:
            data = json.loads(text)
        except ValueError:
            return text
        if isinstance(data, dict):
            for key in ("error_msg", "detail", "error"):
                if data.get(key):
                    return str(data[key])
        return text
    return response.reason_phrase or None


def check_response(response: httpx.Response) -> httpx.Response:
    """Raise the matching failure for any non-200 response.

    Raises:
        AuthFailure: Non-200 with a server message.
        NetworkFailure: Non-200 without any message.
    """
    if response.status_code == 200:
        return response
    if not response.is_stream_consumed:
        response.read()
    message = server_message(response)
    if message is None:
        raise NetworkFailure(f"HTTP {response.status_code} without message")
    raise AuthFailure(response.status_code, message)


class Transport:
    """HTTP transport bound to one account."""

    def __init__(
        self,
        account: Account,
        config: TransportConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            account: Account whose server and token are used.
            config: Transport configuration (defaults to verifying TLS).
            client: Optional pre-built httpx client (for tests).
        """
        self._account = account
        self._config = config or TransportConfig(server_url=account.server_url)
        if not self._config.verify_ssl:
            logger.warning(
                f"TLS verification disabled for {self._config.server_url}"
            )
        self._client = client or httpx.Client(
            base_url=self._config.server_url,
            timeout=httpx.Timeout(READ_TIMEOUT, connect=CONNECT_TIMEOUT),
            verify=self._config.verify_ssl,
        )

    @property
    def account(self) -> Account:
        return self._account

    @property
    def config(self) -> TransportConfig:
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Transport:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _headers(
        self, authenticated: bool, extra: dict[str, str] | None = None
    ) -> dict[str, str]:
        headers = dict(extra or {})
        if authenticated:
            # Captured once: a concurrent refresh never tears this value.
            token = self._account.token
            if token is None:
                raise AuthFailure(401, "not logged in")
            headers["Authorization"] = f"Token {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        authenticated: bool = True,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and return the (fully read) response.

        Args:
            method: HTTP method.
            path: API path relative to the server URL, or an absolute URL.
            params: Query parameters.
            data: Form fields (sent urlencoded).
            authenticated: Whether to inject the account token.
            headers: Extra request headers.

        Raises:
            NetworkFailure: On any connection, timeout or protocol error.
            MalformedResponse: If the URL cannot be parsed.
        """
        try:
            return self._client.request(
                method,
                path,
                params=params,
                data=data,
                headers=self._headers(authenticated, headers),
                **kwargs,
            )
        except httpx.InvalidURL as e:
            raise MalformedResponse(f"invalid URL {path!r}: {e}") from e
        except httpx.HTTPError as e:
            logger.debug(f"{method} {path} failed: {e!r}")
            raise NetworkFailure(str(e) or type(e).__name__) from e

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """GET an API path."""
        return self.request("GET", path, params=params, authenticated=authenticated)

    def post(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """POST form data to an API path."""
        return self.request(
            "POST", path, params=params, data=data, authenticated=authenticated
        )

    @contextmanager
    def stream(
        self,
        method: str,
        url: str,
        *,
        authenticated: bool = False,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Iterator[httpx.Response]:
        """Open a streaming request.

        Failures raised while the body is being consumed inside the
        ``with`` block are mapped the same way as connection failures.
        Any other exception passes through untouched.
        """
        try:
            with self._client.stream(
                method,
                url,
                headers=self._headers(authenticated, headers),
                **kwargs,
            ) as response:
                yield response
        except httpx.InvalidURL as e:
            raise MalformedResponse(f"invalid URL {url!r}: {e}") from e
        except httpx.HTTPError as e:
            logger.debug(f"{method} {url} failed: {e!r}")
            raise NetworkFailure(str(e) or type(e).__name__) from e
