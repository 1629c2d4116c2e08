"""
Lifecycle of a vault session for the duration of one command.

A session created from a login URL logs in when the command starts and logs
out when it ends, even if the command failed. A session created from a
session URL is used as-is and left open.
"""

import logging
from enum import Enum
from typing import Optional

from pmv_cli.api.client import VaultAPIClient
from pmv_cli.exceptions import PmvCliError, SessionStateError
from pmv_cli.utils.vault_uri import SessionURI, VaultURI

log = logging.getLogger(__name__)


class SessionState(Enum):
    CREDENTIALS_PENDING = "credentials_pending"
    ACTIVE = "active"
    CLOSED = "closed"


class VaultSession:
    """
    Tracks one vault URI through login, use and logout.

    Transitions are ``CREDENTIALS_PENDING -> ACTIVE -> CLOSED``. A failed
    login closes the session for good, and logout is attempted at most once.
    """

    def __init__(
        self,
        api_client: VaultAPIClient,
        uri: VaultURI,
        username: Optional[str] = None,
        duration: Optional[str] = None,
        logout_after_operation: Optional[bool] = None,
    ):
        self.api_client = api_client
        self._uri = uri
        self._username = username
        self._duration = duration
        self._release_attempted = False

        if logout_after_operation is None:
            logout_after_operation = uri.is_login
        self.logout_after_operation = logout_after_operation

        if uri.is_session:
            self.state = SessionState.ACTIVE
        else:
            self.state = SessionState.CREDENTIALS_PENDING

    @property
    def uri(self) -> VaultURI:
        return self._uri

    @property
    def session_uri(self) -> SessionURI:
        """The active session URI. Only available once the session is active."""
        if self.state != SessionState.ACTIVE or not isinstance(self._uri, SessionURI):
            raise SessionStateError(f"No active session (state: {self.state.value}).")
        return self._uri

    async def resolve(self) -> SessionURI:
        """Logs in if needed and returns the session URI."""
        if self.state == SessionState.ACTIVE:
            return self.session_uri
        if self.state == SessionState.CLOSED:
            raise SessionStateError("The session is closed.")

        try:
            session_uri = await self.api_client.authenticator.resolve(
                self._uri, self._username, self._duration
            )
        except PmvCliError:
            self.state = SessionState.CLOSED
            raise

        self._uri = session_uri
        self.state = SessionState.ACTIVE
        log.debug(f"Session active for vault: {session_uri.base_url}")
        return session_uri

    async def release(self) -> None:
        """Logs out. The session is closed afterwards whether or not logout worked."""
        if self.state != SessionState.ACTIVE:
            raise SessionStateError(
                f"Cannot log out without an active session (state: {self.state.value})."
            )
        if self._release_attempted:
            raise SessionStateError("Logout has already been attempted.")

        self._release_attempted = True
        try:
            await self.api_client.authenticator.release(self._uri)
        finally:
            self.state = SessionState.CLOSED

    async def __aenter__(self) -> "VaultSession":
        await self.resolve()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if not self.logout_after_operation or self.state != SessionState.ACTIVE:
            return False

        try:
            await self.release()
        except PmvCliError:
            if exc_val is not None:
                # The logout error replaces the operation's error on the way out
                log.error(f"Operation failed before logging out: {exc_val}")
            raise
        return False
