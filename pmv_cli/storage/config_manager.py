"""
Manages loading and validation of the optional INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pmv_cli.exceptions import ConfigurationError
from pmv_cli.models.config import ClientSettings

log = logging.getLogger(__name__)

APP_DIR_NAME = "pmv-cli"
CONFIG_FILE_NAME = "config.ini"


def default_config_path() -> Path:
    """Location of the config file, following the XDG base directory convention."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / APP_DIR_NAME / CONFIG_FILE_NAME


class ConfigManager:
    """Handles reading the application's INI config file."""

    _FLOAT_KEYS = ("request_timeout", "connect_timeout", "progress_interval", "poll_interval")
    _BOOL_KEYS = ("debug", "auto_confirm")
    _INT_KEYS = ("max_polls",)

    def __init__(self, config_file_path: Path | None = None):
        self.config_file_path = config_file_path or default_config_path()
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientSettings:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: every setting has a default.

        Args:
            cli_options: Options provided via the command line or environment.
                ``None`` values are ignored so they do not hide file values.

        Returns:
            A validated ClientSettings object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except (configparser.Error, UnicodeDecodeError) as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
            config_from_file = self._get_config_as_dict()
            log.debug(f"Loaded configuration from {self.config_file_path}")
        else:
            log.debug(f"No configuration file at {self.config_file_path}, using defaults")

        # Override with CLI options
        if cli_options:
            config_from_file.update(
                {key: value for key, value in cli_options.items() if value is not None}
            )

        try:
            return ClientSettings(
                **config_from_file, config_path=str(self.config_file_path)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        known_keys = ClientSettings.get_ini_keys()

        for key in section:
            if key not in known_keys:
                log.warning(f"Ignoring unknown configuration key '{key}'.")

        values: dict[str, Any] = {}
        try:
            if section.get("vault_url"):
                values["vault_url"] = section.get("vault_url")
            for key in self._FLOAT_KEYS:
                if section.get(key):
                    values[key] = section.getfloat(key)
            for key in self._BOOL_KEYS:
                if section.get(key):
                    values[key] = section.getboolean(key)
            for key in self._INT_KEYS:
                if section.get(key):
                    values[key] = section.getint(key)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return values
