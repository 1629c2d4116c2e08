"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PmvCliError(Exception):
    """Base exception for all application-specific errors."""


class VaultURIParseError(PmvCliError):
    """Raised when the vault URL is malformed or does not use HTTP(S)."""


class InvalidIdentifierError(PmvCliError):
    """Raised when a media, album or task identifier cannot be parsed."""


class ConfigurationError(PmvCliError):
    """Raised for issues related to configuration loading or validation."""


class SessionStateError(PmvCliError):
    """Raised when a session transition is requested from the wrong state."""


class RequestError(PmvCliError):
    """Base class for every failure produced while talking to the vault."""


class TransportError(RequestError):
    """
    Raised for network-level failures: DNS, connect, TLS, connection reset or timeout.
    """


class StatusError(RequestError):
    """Raised for a non-200 response without a decodable error body."""

    def __init__(self, status: int):
        self.status = status
        if status == 401:
            message = "The session URL you provided was invalid or expired."
        else:
            message = f"API ended with unexpected status code: {status}"
        super().__init__(message)


class ApiError(RequestError):
    """Raised for a non-200 response carrying a structured error body."""

    def __init__(self, status: int, code: str, message: str):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"Status: {status} | Code: {code} | Message: {message}")


class AuthenticationError(ApiError):
    """Raised when the vault rejects a login attempt."""


class FilesystemError(RequestError):
    """Raised when a local file cannot be opened, created, read or written."""


class DecodeError(RequestError):
    """Raised when a successful response body does not match the expected shape."""

    def __init__(self, message: str, raw_body: str):
        self.message = message
        self.raw_body = raw_body
        super().__init__(f"Error parsing the body: {message}")


class PollLimitError(RequestError):
    """Raised when a configured polling bound is reached before completion."""

    def __init__(self, max_polls: int):
        self.max_polls = max_polls
        super().__init__(f"Gave up waiting after {max_polls} polls.")


class AssetError(PmvCliError):
    """Raised when a requested media asset is malformed, missing or not ready."""
