"""
Parsing and resolution of vault URLs.

A vault URL has the form ``scheme://[username[:password]@]host[:port]/path``.
A URL with a password but no username carries an active session token in
the password slot; any other URL has to log in before it can be used.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from yarl import URL

from pmv_cli.exceptions import VaultURIParseError

DEFAULT_VAULT_URL = "http://localhost"


@dataclass(frozen=True)
class LoginURI:
    """A vault URL that needs to log in with a username and password."""

    base_url: URL
    username: str = ""
    password: str = field(default="", repr=False)

    @property
    def is_login(self) -> bool:
        return True

    @property
    def is_session(self) -> bool:
        return False

    @property
    def session(self) -> Optional[str]:
        return None

    def to_url_string(self) -> str:
        url = self.base_url
        if self.username or self.password:
            url = url.with_user(self.username).with_password(self.password)
        return str(url)

    def resolve_api_url(self, path: str) -> str:
        return str(self.base_url.join(URL(path)))

    def resolve_asset(self, path: str) -> str:
        # Without a session the asset cannot be fetched by a third party
        return path


@dataclass(frozen=True)
class SessionURI:
    """A vault URL carrying an active session token."""

    base_url: URL
    session: str = field(repr=False)

    @property
    def is_login(self) -> bool:
        return False

    @property
    def is_session(self) -> bool:
        return True

    def to_url_string(self) -> str:
        return str(self.base_url.with_password(self.session))

    def resolve_api_url(self, path: str) -> str:
        return str(self.base_url.join(URL(path)))

    def resolve_asset(self, path: str) -> str:
        """Builds a self-contained link to an asset, authenticated by query string."""
        try:
            resolved = self.base_url.join(URL(path))
        except ValueError:
            return path
        return str(resolved.update_query({"session_token": self.session}))


VaultURI = Union[LoginURI, SessionURI]


def parse_vault_uri(uri: str) -> VaultURI:
    """
    Parses a vault URL into a login or a session URI.

    Args:
        uri: The vault URL, as given on the command line or in the environment.

    Returns:
        A SessionURI if the URL has a password but no username, a LoginURI otherwise.

    Raises:
        VaultURIParseError: If the URL cannot be parsed or is not HTTP(S).
    """
    try:
        url = URL(uri.strip())
        scheme = url.scheme
        host = url.host
        port = url.port
    except (ValueError, TypeError) as e:
        raise VaultURIParseError(f"Invalid vault URL provided: {e}") from e

    if scheme not in ("http", "https") or not host or port is None:
        raise VaultURIParseError(
            "Invalid vault URL provided. Must be an HTTP or HTTPS URL."
        )

    username = url.user or ""
    password = url.password or ""
    base_url = url.with_user(None)

    if not username and password:
        return SessionURI(base_url=base_url, session=password)

    return LoginURI(base_url=base_url, username=username, password=password)
