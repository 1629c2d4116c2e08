"""
Storage Layer.

This package handles local persistence, which is limited to reading the
optional configuration file. Sessions are never written to disk.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
