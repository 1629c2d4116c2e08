"""
Handles authentication with the vault: turning a login URL into a session
URL, and invalidating sessions.
"""

import logging
from typing import TYPE_CHECKING, Optional

from pmv_cli.exceptions import SessionStateError
from pmv_cli.models.vault import Credentials
from pmv_cli.utils.user_input import ask_user, ask_user_password
from pmv_cli.utils.vault_uri import LoginURI, SessionURI, VaultURI

if TYPE_CHECKING:
    from .client import VaultAPIClient

log = logging.getLogger(__name__)


class VaultAuthenticator:
    """
    Manages the authentication flow for the vault API client.
    """

    def __init__(self, api_client: "VaultAPIClient"):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main VaultAPIClient instance.
        """
        self._api_client = api_client

    async def resolve(
        self,
        uri: VaultURI,
        username: Optional[str] = None,
        duration: Optional[str] = None,
    ) -> SessionURI:
        """
        Returns a session URI for the given vault URI.

        A session URI is returned unchanged without contacting the vault. A
        login URI is exchanged for a new session, prompting for whatever part
        of the credentials is missing.

        Args:
            uri: The parsed vault URL.
            username: Overrides the username embedded in the URL.
            duration: Requested session duration (day, week, month or year).

        Returns:
            A SessionURI carrying the new session token.
        """
        if isinstance(uri, SessionURI):
            log.debug(f"Provided session URL for vault: {uri.base_url}")
            return uri

        credentials = await self._collect_credentials(uri, username, duration)
        log.debug(f"Logging into {uri.base_url} as {credentials.username!r}")

        result = await self._api_client.login(uri, credentials)
        return SessionURI(base_url=uri.base_url, session=result.session_id)

    async def release(self, uri: VaultURI) -> None:
        """Closes the session carried by the given URI."""
        if not isinstance(uri, SessionURI):
            raise SessionStateError(
                "You must provide a session URL in order to log out."
            )
        log.debug(f"Closing session for vault: {uri.base_url}")
        await self._api_client.logout(uri)

    async def _collect_credentials(
        self, uri: LoginURI, username: Optional[str], duration: Optional[str]
    ) -> Credentials:
        if username is None:
            username = uri.username
            if not username:
                log.info(f"Input username for vault: {uri.base_url}")
                username = await ask_user("Username")

        password = uri.password
        if not password:
            log.info(f"Input password for vault: {uri.base_url}")
            password = await ask_user_password("Password")

        return Credentials(username=username, password=password, duration=duration)
