"""
Command line client for PersonalMediaVault servers.
"""

__version__ = "1.0.0"
