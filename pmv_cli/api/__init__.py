"""
Vault API Layer.

This package handles all JSON communication with the vault API and the
authentication flow on top of it.
"""

from .auth import VaultAuthenticator
from .client import VaultAPIClient

__all__ = ["VaultAPIClient", "VaultAuthenticator"]
