"""
Async client for the vault JSON API, with a shared connection session and a
uniform error taxonomy.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Type, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from pmv_cli.exceptions import (
    ApiError,
    AuthenticationError,
    DecodeError,
    StatusError,
    TransportError,
)
from pmv_cli.models.config import ClientSettings
from pmv_cli.models.vault import (
    Album,
    APIErrorResponse,
    Credentials,
    LoginResult,
    MediaMetadata,
    Task,
)
from pmv_cli.utils.user_input import ask_user, ask_user_password
from pmv_cli.utils.vault_uri import VaultURI

from .auth import VaultAuthenticator

log = logging.getLogger(__name__)

SESSION_HEADER_NAME = "x-session-token"
AUTH_CONFIRMATION_PASSWORD_HEADER_NAME = "x-auth-confirmation-pw"
AUTH_CONFIRMATION_TFA_HEADER_NAME = "x-auth-confirmation-tfa"

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_from_response(status: int, body: str) -> ApiError | StatusError:
    """Builds the richest error available for a non-200 response."""
    if body:
        try:
            parsed = APIErrorResponse.model_validate_json(body)
        except ValidationError:
            return StatusError(status)
        return ApiError(status, parsed.code, parsed.message)
    return StatusError(status)


def decode_body(model: Type[ModelT], body: str) -> ModelT:
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(str(e), body) from e


class VaultAPIClient:
    """
    Async client for the vault API.

    Every call takes the VaultURI to address; the client itself only owns the
    connection session, so one client serves both the login call and the
    authenticated calls that follow it.
    """

    def __init__(self, settings: Optional[ClientSettings] = None):
        self.settings = settings or ClientSettings()
        self._session: Optional[aiohttp.ClientSession] = None
        self._authenticator = VaultAuthenticator(self)

    @property
    def authenticator(self) -> VaultAuthenticator:
        """Provides access to the authentication helper."""
        return self._authenticator

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.settings.request_timeout,
                    sock_connect=self.settings.connect_timeout,
                ),
            )
        return self._session

    async def get_session(self) -> aiohttp.ClientSession:
        return await self._initialize_session()

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "VaultAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @staticmethod
    def auth_headers(uri: VaultURI) -> Dict[str, str]:
        """Session header for authenticated requests; login URIs send none."""
        if uri.is_session:
            return {SESSION_HEADER_NAME: uri.session}
        return {}

    async def request(
        self,
        method: str,
        uri: VaultURI,
        path: str,
        json_body: Any = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Sends a single request and returns the raw body of a 200 response.

        Raises:
            ApiError: Non-200 status with a structured error body.
            StatusError: Non-200 status without one.
            TransportError: The request could not be completed.
        """
        url = uri.resolve_api_url(path)
        log.debug(f"{method} {url}")

        headers = self.auth_headers(uri)
        if extra_headers:
            headers.update(extra_headers)

        session = await self._initialize_session()
        try:
            async with session.request(
                method, url, json=json_body, headers=headers
            ) as response:
                body = await response.text(errors="replace")
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        if status != 200:
            raise error_from_response(status, body)
        return body

    async def get(self, uri: VaultURI, path: str) -> str:
        return await self.request("GET", uri, path)

    async def post(self, uri: VaultURI, path: str, json_body: Any = None) -> str:
        """
        Sends a POST request. If the vault asks for an authentication
        confirmation, the user is prompted and the request is sent once more.
        """
        try:
            return await self.request("POST", uri, path, json_body)
        except ApiError as e:
            if e.status != 403:
                raise
            if e.code == "AUTH_CONFIRMATION_REQUIRED_TFA":
                code = await ask_user(
                    "Input your one-time two factor authentication code to confirm"
                    " the operation"
                )
                headers = {AUTH_CONFIRMATION_TFA_HEADER_NAME: code}
            elif e.code == "AUTH_CONFIRMATION_REQUIRED_PW":
                password = await ask_user_password(
                    "Input your account password to confirm the operation"
                )
                headers = {AUTH_CONFIRMATION_PASSWORD_HEADER_NAME: password}
            else:
                raise
            return await self.request("POST", uri, path, json_body, headers)

    # Public API Methods
    async def login(self, uri: VaultURI, credentials: Credentials) -> LoginResult:
        try:
            body = await self.request(
                "POST", uri, "/api/auth/login", credentials.model_dump()
            )
        except ApiError as e:
            raise AuthenticationError(e.status, e.code, e.message) from e
        return decode_body(LoginResult, body)

    async def logout(self, uri: VaultURI) -> None:
        await self.post(uri, "/api/auth/logout")

    async def get_media(self, uri: VaultURI, media_id: int) -> MediaMetadata:
        return decode_body(MediaMetadata, await self.get(uri, f"/api/media/{media_id}"))

    async def get_album(self, uri: VaultURI, album_id: int) -> Album:
        return decode_body(Album, await self.get(uri, f"/api/albums/{album_id}"))

    async def get_task(self, uri: VaultURI, task_id: int) -> Task:
        return decode_body(Task, await self.get(uri, f"/api/tasks/{task_id}"))
