"""
Waits for the vault to finish encrypting a freshly uploaded media asset.
"""

import asyncio
import logging
from typing import Optional

from pmv_cli.api.client import VaultAPIClient
from pmv_cli.exceptions import PollLimitError
from pmv_cli.models.vault import MediaMetadata
from pmv_cli.utils.vault_uri import VaultURI

from .progress import NullProgress, ProgressObserver

log = logging.getLogger(__name__)


class EncryptionWaiter:
    """
    Polls a media asset until the vault reports it as ready.

    The server-reported completion percentage is forwarded as progress
    against a total of 100. Polling never gives up on its own unless
    ``max_polls`` is set.
    """

    def __init__(
        self,
        api_client: VaultAPIClient,
        poll_interval: Optional[float] = None,
        max_polls: Optional[int] = None,
    ):
        self.api_client = api_client
        settings = api_client.settings
        self.poll_interval = (
            settings.poll_interval if poll_interval is None else poll_interval
        )
        self.max_polls = settings.max_polls if max_polls is None else max_polls

    async def wait_until_ready(
        self,
        uri: VaultURI,
        media_id: int,
        observer: Optional[ProgressObserver] = None,
    ) -> MediaMetadata:
        """
        Blocks until the media is ready and returns its final metadata.

        Any request failure ends the wait immediately and is propagated.
        """
        observer = observer or NullProgress()
        observer.progress_start()

        polls = 0
        try:
            while True:
                metadata = await self.api_client.get_media(uri, media_id)
                polls += 1

                if metadata.ready:
                    observer.progress_update(100, 100)
                    return metadata

                percent = min(max(int(metadata.ready_p or 0), 0), 100)
                log.debug(f"Media #{media_id} encryption at {percent}%")
                observer.progress_update(percent, 100)

                if self.max_polls is not None and polls >= self.max_polls:
                    raise PollLimitError(self.max_polls)
                await asyncio.sleep(self.poll_interval)
        finally:
            observer.progress_finish()
