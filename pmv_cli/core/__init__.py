"""
Core application engine for running commands against a vault.

This package contains the session lifecycle. The `VaultSession` logs in
before a command and logs out after it, and the `TaskMonitor` follows
server-side tasks until they finish.
"""
