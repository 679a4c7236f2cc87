"""Login and token refresh.

This module provides:
- Session: exchanges (email, password) for an auth token
"""

from __future__ import annotations

import json
import logging

from wingusync.client.errors import MalformedResponse, SyncError
from wingusync.client.retry import retry
from wingusync.client.transport import Transport, check_response
from wingusync.core.types import Account

logger = logging.getLogger(__name__)

AUTH_TOKEN_PATH = "api2/auth-token/"
LOGIN_ATTEMPTS = 2


class Session:
    """Holds an account's credentials and publishes its auth token."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def account(self) -> Account:
        return self._transport.account

    @property
    def token(self) -> str | None:
        return self.account.token

    def login(self) -> str:
        """Log in once and publish the new token on the account.

        Returns:
            The new token.

        Raises:
            AuthFailure: Non-200 with a server message (e.g. bad password).
            NetworkFailure: Connection failure or non-200 without message.
            MalformedResponse: Body is not JSON or has no ``token`` field.
        """
        account = self.account
        logger.debug(f"Login to {account.server_url}{AUTH_TOKEN_PATH}")
        response = check_response(
            self._transport.post(
                AUTH_TOKEN_PATH,
                authenticated=False,
                data={"username": account.email, "password": account.password or ""},
            )
        )
        try:
            data = json.loads(response.content.decode("utf-8"))
            token = data["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(f"invalid login response: {e}") from e
        if not isinstance(token, str) or not token:
            raise MalformedResponse("invalid login response: empty token")

        # Single assignment: readers see the old or the new token, never a mix.
        account.token = token
        logger.info(f"Logged in to {account.server_host} as {account.email}")
        return token

    def login_with_retry(self) -> str:
        """Log in, repeating exactly once on any failure.

        The first failure is masked; the second attempt's outcome is
        returned or raised.
        """
        return retry(
            self.login,
            attempts=LOGIN_ATTEMPTS,
            retryable_exceptions=(SyncError,),
            fatal_exceptions=(),
            description="login",
        )
