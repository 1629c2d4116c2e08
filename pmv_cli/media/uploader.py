"""
Streams files to the vault as multipart/form-data uploads, reporting progress
while the request body is being produced.
"""

import asyncio
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Tuple, Union

import aiohttp

from pmv_cli.api.client import VaultAPIClient, decode_body, error_from_response
from pmv_cli.exceptions import FilesystemError, TransportError
from pmv_cli.models.vault import MediaUploadResponse, ThumbnailUpdateResponse
from pmv_cli.utils.vault_uri import VaultURI

from .progress import NullProgress, ProgressObserver, ProgressReader

log = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class FileSource:
    """Upload body read from a local file."""

    path: Path

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class BytesSource:
    """Upload body already held in memory, e.g. a freshly downloaded thumbnail."""

    data: bytes = field(repr=False)
    filename: str = "upload"


UploadSource = Union[FileSource, BytesSource]


def _open_source_file(path: Path) -> Tuple[BinaryIO, int]:
    """Opens a regular file for reading and returns it with its size."""
    try:
        file = open(path, "rb")  # noqa: SIM115
    except OSError as e:
        raise FilesystemError(f"Could not open {path}: {e.strerror or e}") from e
    try:
        file_stat = os.fstat(file.fileno())
    except OSError as e:
        file.close()
        raise FilesystemError(f"Could not stat {path}: {e.strerror or e}") from e
    if not stat.S_ISREG(file_stat.st_mode):
        file.close()
        raise FilesystemError(f"File not found: {path}")
    return file, file_stat.st_size


class Uploader:
    """Uploads files and in-memory buffers to the vault."""

    def __init__(
        self, api_client: VaultAPIClient, progress_interval: Optional[float] = None
    ):
        self.api_client = api_client
        if progress_interval is None:
            progress_interval = api_client.settings.progress_interval
        self.progress_interval = progress_interval

    async def upload(
        self,
        uri: VaultURI,
        path: str,
        source: UploadSource,
        observer: Optional[ProgressObserver] = None,
        field_name: str = "file",
        params: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Uploads a file or buffer as a single multipart field.

        Args:
            uri: The vault to upload to.
            path: API path of the upload endpoint.
            source: A FileSource or a BytesSource.
            observer: Receives the transfer progress.
            field_name: Name of the multipart form field.
            params: Extra query string parameters.

        Returns:
            The raw body of the successful response.

        Raises:
            FilesystemError: The file cannot be opened or read. Nothing is sent
                if it cannot be opened.
            ApiError, StatusError: The vault rejected the upload.
            TransportError: The request could not be completed.
        """
        observer = observer or NullProgress()
        url = uri.resolve_api_url(path)

        if isinstance(source, FileSource):
            return await self._upload_file(uri, url, source, observer, field_name, params)
        return await self._upload_bytes(uri, url, source, observer, field_name, params)

    async def _upload_file(
        self,
        uri: VaultURI,
        url: str,
        source: FileSource,
        observer: ProgressObserver,
        field_name: str,
        params: Optional[Dict[str, str]],
    ) -> str:
        file, file_size = await asyncio.to_thread(_open_source_file, source.path)
        log.debug(f"UPLOAD {source.path} -> {url}")

        with ProgressReader(file, file_size, observer, self.progress_interval) as reader:
            reader.start()
            try:
                with aiohttp.MultipartWriter("form-data") as writer:
                    part = writer.append(
                        reader.iter_chunks(), {"Content-Type": UPLOAD_CONTENT_TYPE}
                    )
                    part.set_content_disposition(
                        "form-data",
                        quote_fields=False,
                        name=field_name,
                        filename=source.filename,
                    )
                status, body = await self._send(uri, url, writer, params)
            except TransportError as e:
                if reader.read_error is not None:
                    raise FilesystemError(
                        f"Could not read {source.path}: {reader.read_error}"
                    ) from e
                raise
            finally:
                reader.finish()

        if status != 200:
            raise error_from_response(status, body)
        return body

    async def _upload_bytes(
        self,
        uri: VaultURI,
        url: str,
        source: BytesSource,
        observer: ProgressObserver,
        field_name: str,
        params: Optional[Dict[str, str]],
    ) -> str:
        size = len(source.data)
        log.debug(f"UPLOAD [{size} bytes in memory] -> {url}")

        # The whole buffer is handed to the transport at once
        observer.progress_start()
        try:
            with aiohttp.MultipartWriter("form-data") as writer:
                part = writer.append(
                    source.data, {"Content-Type": UPLOAD_CONTENT_TYPE}
                )
                part.set_content_disposition(
                    "form-data",
                    quote_fields=False,
                    name=field_name,
                    filename=source.filename,
                )
            status, body = await self._send(uri, url, writer, params)
        finally:
            observer.progress_update(size, size)
            observer.progress_finish()

        if status != 200:
            raise error_from_response(status, body)
        return body

    async def _send(
        self,
        uri: VaultURI,
        url: str,
        writer: aiohttp.MultipartWriter,
        params: Optional[Dict[str, str]],
    ) -> Tuple[int, str]:
        session = await self.api_client.get_session()
        try:
            async with session.post(
                url,
                data=writer,
                params=params,
                headers=self.api_client.auth_headers(uri),
            ) as response:
                return response.status, await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def upload_media(
        self,
        uri: VaultURI,
        file_path: Path,
        observer: Optional[ProgressObserver] = None,
        title: Optional[str] = None,
        album: Optional[int] = None,
        skip_encryption: bool = False,
    ) -> MediaUploadResponse:
        """Uploads a new media asset. The title defaults to the file name."""
        params = {"title": title or file_path.stem}
        if album is not None:
            params["album"] = str(album)
        if skip_encryption:
            params["skip_encryption"] = "true"

        body = await self.upload(
            uri, "/api/upload", FileSource(file_path), observer, params=params
        )
        return decode_body(MediaUploadResponse, body)

    async def change_media_thumbnail(
        self,
        uri: VaultURI,
        media_id: int,
        source: UploadSource,
        observer: Optional[ProgressObserver] = None,
    ) -> ThumbnailUpdateResponse:
        body = await self.upload(
            uri, f"/api/media/{media_id}/edit/thumbnail", source, observer
        )
        return decode_body(ThumbnailUpdateResponse, body)

    async def change_album_thumbnail(
        self,
        uri: VaultURI,
        album_id: int,
        source: UploadSource,
        observer: Optional[ProgressObserver] = None,
    ) -> ThumbnailUpdateResponse:
        body = await self.upload(uri, f"/api/albums/{album_id}/thumbnail", source, observer)
        return decode_body(ThumbnailUpdateResponse, body)
