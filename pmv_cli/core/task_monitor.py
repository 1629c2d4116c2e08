"""
Monitors a server-side task until it disappears from the task list.
"""

import asyncio
import logging
import sys
import threading
from typing import Callable, Optional

from pmv_cli.api.client import VaultAPIClient
from pmv_cli.exceptions import ApiError, PollLimitError
from pmv_cli.models.vault import Task
from pmv_cli.utils.vault_uri import VaultURI

log = logging.getLogger(__name__)


class TaskMonitor:
    """Polls a task and reports each status until the task is gone."""

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

    async def wait_for_task(
        self,
        uri: VaultURI,
        task_id: int,
        on_update: Optional[Callable[[Task], None]] = None,
    ) -> bool:
        """
        Polls the task until the vault no longer knows about it.

        Finished tasks are removed by the server, so a 404 ends the wait.

        Args:
            uri: The vault to query.
            task_id: The task to follow.
            on_update: Called with every task status received.

        Returns:
            True if the task was seen at least once (it completed while being
            watched), False if it was never found.
        """
        found = False
        polls = 0
        while True:
            try:
                task = await self.api_client.get_task(uri, task_id)
            except ApiError as e:
                if e.status == 404:
                    log.debug(f"Task #{task_id} is gone (found before: {found})")
                    return found
                raise

            found = True
            polls += 1
            if on_update is not None:
                on_update(task)

            if self.max_polls is not None and polls >= self.max_polls:
                raise PollLimitError(self.max_polls)
            await asyncio.sleep(self.poll_interval)


def watch_for_keypress(callback: Callable[[], None]) -> threading.Thread:
    """
    Calls ``callback`` from a daemon thread once a byte arrives on stdin.

    Nothing happens on end of input. The thread dies with the process, so it
    never has to be joined.
    """

    def _wait() -> None:
        try:
            data = sys.stdin.read(1)
        except (OSError, ValueError) as e:
            log.debug(f"Stopped watching stdin: {e}")
            return
        if data:
            callback()

    thread = threading.Thread(target=_wait, name="keypress-watcher", daemon=True)
    thread.start()
    return thread
