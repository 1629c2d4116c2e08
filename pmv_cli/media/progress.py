"""
Progress reporting contract shared by the transfer engines, and the reader
adapter that reports upload progress while the HTTP client consumes a file.
"""

import asyncio
import threading
import time
from typing import AsyncIterator, BinaryIO, Callable, Optional, Protocol

from pmv_cli.models.config import DEFAULT_PROGRESS_INTERVAL

UPLOAD_CHUNK_SIZE = 65536  # 64 KB


class ProgressObserver(Protocol):
    """
    Receives transfer progress events.

    Every transfer emits ``progress_start`` once, any number of
    ``progress_update`` calls with non-decreasing ``loaded`` values and then
    ``progress_finish`` once. A ``total`` of 0 means the size is unknown.
    """

    def progress_start(self) -> None: ...

    def progress_update(self, loaded: int, total: int) -> None: ...

    def progress_finish(self) -> None: ...


class NullProgress:
    """Observer that ignores every event."""

    def progress_start(self) -> None:
        pass

    def progress_update(self, loaded: int, total: int) -> None:
        pass

    def progress_finish(self) -> None:
        pass


class ProgressSampler:
    """Coalesces progress events so that at most one passes per interval."""

    def __init__(
        self,
        interval: float = DEFAULT_PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self._clock = clock
        self._last_emit = clock()

    def should_emit(self) -> bool:
        now = self._clock()
        if now - self._last_emit >= self.interval:
            self._last_emit = now
            return True
        return False


class ProgressReader:
    """
    Wraps a binary file and reports how much of it has been consumed.

    Reads happen on worker threads while the final report comes from the
    event loop, so the counter and the observer calls are serialized by a
    lock. The lock is never held during the file read itself.
    """

    def __init__(
        self,
        file: BinaryIO,
        total: int,
        observer: ProgressObserver,
        interval: float = DEFAULT_PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._file = file
        self.total = total
        self._observer = observer
        self._sampler = ProgressSampler(interval, clock)
        self._lock = threading.Lock()
        self._loaded = 0
        self.read_error: Optional[OSError] = None

    @property
    def loaded(self) -> int:
        with self._lock:
            return self._loaded

    def read(self, size: int = -1) -> bytes:
        """Reads from the file, never past the size it had when it was opened."""
        with self._lock:
            remaining = self.total - self._loaded
        if remaining <= 0:
            return b""
        if size < 0 or size > remaining:
            size = remaining

        chunk = self._file.read(size)

        with self._lock:
            self._loaded += len(chunk)
            if chunk and self._sampler.should_emit():
                self._observer.progress_update(self._loaded, self.total)
        return chunk

    async def iter_chunks(
        self, chunk_size: int = UPLOAD_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yields the file contents, reading each chunk on a worker thread."""
        while True:
            try:
                chunk = await asyncio.to_thread(self.read, chunk_size)
            except OSError as e:
                # The HTTP client reports this as a connection failure
                self.read_error = e
                raise
            if not chunk:
                return
            yield chunk

    def start(self) -> None:
        with self._lock:
            self._observer.progress_start()

    def finish(self) -> None:
        """Reports the whole file as transferred and closes the progress display."""
        with self._lock:
            self._observer.progress_update(self.total, self.total)
            self._observer.progress_finish()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "ProgressReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
