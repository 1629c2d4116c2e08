"""
Media Transfer Layer.

This package is responsible for moving media between the local machine and
the vault: streaming uploads, streaming downloads, and waiting for the vault
to finish encrypting new uploads.
"""

from .downloader import Downloader
from .encryption import EncryptionWaiter
from .progress import NullProgress, ProgressObserver
from .uploader import BytesSource, FileSource, Uploader

__all__ = [
    "BytesSource",
    "Downloader",
    "EncryptionWaiter",
    "FileSource",
    "NullProgress",
    "ProgressObserver",
    "Uploader",
]
