"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as configuration and the vault API
payloads.
"""

from .config import ClientSettings
from .vault import MediaMetadata, Task

__all__ = ["ClientSettings", "MediaMetadata", "Task"]
