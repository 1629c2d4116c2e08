"""
Handles the streaming download of vault assets to a local file or into
memory, reporting progress as chunks arrive.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

from pmv_cli.api.client import VaultAPIClient
from pmv_cli.exceptions import (
    FilesystemError,
    RequestError,
    StatusError,
    TransportError,
)
from pmv_cli.utils.vault_uri import VaultURI

from .progress import NullProgress, ProgressObserver, ProgressSampler

log = logging.getLogger(__name__)


def _content_length(response: aiohttp.ClientResponse) -> int:
    """Total size announced by the server, or 0 when it is unknown."""
    try:
        return max(int(response.headers.get("Content-Length", "0")), 0)
    except ValueError:
        return 0


async def _write_all(file, chunk: bytes, destination: Path) -> None:
    """Writes a whole chunk to an unbuffered file, which may accept it in parts."""
    view = memoryview(chunk)
    while view:
        try:
            written = await file.write(view)
        except OSError as e:
            raise FilesystemError(
                f"Could not write {destination}: {e.strerror or e}"
            ) from e
        view = view[written:]


class Downloader:
    """A streaming downloader for vault assets."""

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self, api_client: VaultAPIClient, progress_interval: Optional[float] = None
    ):
        self.api_client = api_client
        if progress_interval is None:
            progress_interval = api_client.settings.progress_interval
        self.progress_interval = progress_interval

    async def download(
        self,
        uri: VaultURI,
        path: str,
        destination: Path,
        observer: Optional[ProgressObserver] = None,
    ) -> int:
        """
        Downloads an asset into a local file.

        The destination is only created once the server has answered with
        200. If the transfer fails midway the partial file is left in place.

        Args:
            uri: The vault to download from.
            path: Asset path, relative to the vault base URL.
            destination: Local file to create or truncate.
            observer: Receives the transfer progress.

        Returns:
            The number of bytes written.
        """
        observer = observer or NullProgress()
        url = uri.resolve_api_url(path)
        log.debug(f"DOWNLOAD {url} -> {destination}")

        session = await self.api_client.get_session()
        try:
            async with session.get(
                url, headers=self.api_client.auth_headers(uri)
            ) as response:
                if response.status != 200:
                    raise StatusError(response.status)

                # Unbuffered, so a full disk fails the write that hit it
                opener = aiofiles.open(destination, "wb", buffering=0)
                try:
                    await opener
                except OSError as e:
                    raise FilesystemError(
                        f"Could not create {destination}: {e.strerror or e}"
                    ) from e

                total = _content_length(response)
                observer.progress_start()
                try:
                    async with opener as file:
                        downloaded = await self._write_chunks(
                            response, file, destination, total, observer
                        )
                except OSError as e:
                    observer.progress_finish()
                    raise FilesystemError(
                        f"Could not close {destination}: {e.strerror or e}"
                    ) from e
                except RequestError:
                    observer.progress_finish()
                    raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        observer.progress_update(downloaded, total)
        observer.progress_finish()
        return downloaded

    async def _write_chunks(
        self,
        response: aiohttp.ClientResponse,
        file,
        destination: Path,
        total: int,
        observer: ProgressObserver,
    ) -> int:
        sampler = ProgressSampler(self.progress_interval)
        downloaded = 0
        try:
            async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                await _write_all(file, chunk, destination)
                downloaded += len(chunk)
                if sampler.should_emit():
                    observer.progress_update(downloaded, total)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e
        return downloaded

    async def download_bytes(
        self,
        uri: VaultURI,
        path: str,
        observer: Optional[ProgressObserver] = None,
    ) -> bytes:
        """Downloads an asset into memory, with the same progress events."""
        observer = observer or NullProgress()
        url = uri.resolve_api_url(path)
        log.debug(f"DOWNLOAD {url} -> [memory]")

        session = await self.api_client.get_session()
        buffer = bytearray()
        try:
            async with session.get(
                url, headers=self.api_client.auth_headers(uri)
            ) as response:
                if response.status != 200:
                    raise StatusError(response.status)

                total = _content_length(response)
                observer.progress_start()
                sampler = ProgressSampler(self.progress_interval)
                try:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        buffer.extend(chunk)
                        if sampler.should_emit():
                            observer.progress_update(len(buffer), total)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    observer.progress_finish()
                    raise TransportError(str(e) or type(e).__name__) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        observer.progress_update(len(buffer), total)
        observer.progress_finish()
        return bytes(buffer)
