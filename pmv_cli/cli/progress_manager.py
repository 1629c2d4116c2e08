"""
Rich progress bars that receive transfer and encryption progress events.
"""

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


class ProgressBar:
    """
    A single Rich progress bar driven by progress events.

    Byte transfers show size, speed and remaining time; percentage bars
    (encryption) only show the percentage. A total of 0 renders a pulsing
    bar with no total. Upload events arrive from worker threads; Rich
    serializes updates internally.
    """

    def __init__(self, console: Console, description: str, in_bytes: bool = True):
        self.console = console
        self.description = description
        self.in_bytes = in_bytes
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None

    def _create_progress(self) -> Progress:
        if self.in_bytes:
            columns = (
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}", justify="left"),
                BarColumn(bar_width=30),
                "[progress.percentage]{task.percentage:>3.0f}%",
                "•",
                DownloadColumn(),
                "•",
                TransferSpeedColumn(),
                "•",
                TimeRemainingColumn(),
            )
        else:
            columns = (
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}", justify="left"),
                BarColumn(bar_width=30),
                "[progress.percentage]{task.percentage:>3.0f}%",
            )
        return Progress(*columns, console=self.console, transient=False)

    def progress_start(self) -> None:
        self._progress = self._create_progress()
        self._progress.start()
        self._task_id = self._progress.add_task(self.description, total=None)

    def progress_update(self, loaded: int, total: int) -> None:
        if self._progress is None or self._task_id is None:
            return
        self._progress.update(self._task_id, completed=loaded, total=total or None)

    def progress_finish(self) -> None:
        if self._progress is None:
            return
        self._progress.stop()
        self._progress = None
        self._task_id = None


def upload_progress(console: Console, name: str) -> ProgressBar:
    return ProgressBar(console, f"Uploading [cyan]{name}[/cyan]")


def download_progress(console: Console, name: str) -> ProgressBar:
    return ProgressBar(console, f"Downloading [cyan]{name}[/cyan]")


def encryption_progress(console: Console) -> ProgressBar:
    return ProgressBar(console, "Encrypting", in_bytes=False)
