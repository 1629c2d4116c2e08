"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from pmv_cli.exceptions import VaultURIParseError
from pmv_cli.utils.vault_uri import DEFAULT_VAULT_URL, parse_vault_uri

# Transfer progress is reported at most this often (seconds)
DEFAULT_PROGRESS_INTERVAL = 0.1

# Encryption and task monitors wait this long between polls (seconds)
DEFAULT_POLL_INTERVAL = 0.5


class ClientSettings(BaseModel):
    """A validated configuration model for the application."""

    # Connection
    vault_url: str = DEFAULT_VAULT_URL
    request_timeout: float | None = None
    connect_timeout: float = 30.0

    # Behaviour
    debug: bool = False
    auto_confirm: bool = False

    # Monitoring
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_polls: int | None = None

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("vault_url")
    @classmethod
    def validate_vault_url(cls, v: str) -> str:
        """Ensures the vault URL parses as a login or session URL."""
        try:
            parse_vault_uri(v)
        except VaultURIParseError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("progress_interval", "poll_interval")
    @classmethod
    def validate_intervals(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Intervals cannot be negative.")
        return v

    @field_validator("request_timeout", "connect_timeout")
    @classmethod
    def validate_timeouts(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Timeouts must be greater than zero.")
        return v

    @field_validator("max_polls")
    @classmethod
    def validate_max_polls(cls, v: int | None) -> int | None:
        """A bound on polling loops is opt-in; when set it must allow one poll."""
        if v is not None and v < 1:
            raise ValueError("max_polls must be at least 1.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
