"""
Loads the INI configuration file, overlays environment variables and CLI
options, and validates the result.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from bluesky_client.exceptions import ConfigurationError
from bluesky_client.models.config import ClientConfig, Credentials

log = logging.getLogger(__name__)

ENV_PREFIX = "BLUESKY_"
CREDENTIAL_KEYS = ("identifier", "password")


class ConfigManager:
    """
    Handles all operations related to the client's INI config file.

    Precedence, lowest first: model defaults, the ``[DEFAULT]`` section of the
    file, ``BLUESKY_*`` environment variables, explicit CLI options. The file
    is optional.
    """

    def __init__(
        self, config_file_path: Path, environ: Optional[Mapping[str, str]] = None
    ):
        self.config_file_path = config_file_path
        self._environ = os.environ if environ is None else environ
        self._parser = configparser.ConfigParser()

    @staticmethod
    def get_ini_keys() -> Tuple[str, ...]:
        return CREDENTIAL_KEYS + tuple(ClientConfig.model_fields)

    def load(
        self, cli_options: Optional[Dict[str, Any]] = None
    ) -> Tuple[ClientConfig, Credentials]:
        """
        Builds the client configuration and login credentials.

        Raises:
            ConfigurationError: If the file cannot be parsed or a value fails
                validation.
        """
        values = self.read_file()
        values.update(self._read_environ())
        if cli_options:
            values.update({k: v for k, v in cli_options.items() if v is not None})

        credentials = {k: values.pop(k) for k in CREDENTIAL_KEYS if k in values}
        unknown = set(values) - set(ClientConfig.model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            )

        try:
            return ClientConfig(**values), Credentials(**credentials)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def read_file(self) -> Dict[str, Any]:
        """Reads the ``[DEFAULT]`` section, or nothing if the file is absent."""
        if not self.config_file_path.is_file():
            log.debug(f"No configuration file at '{self.config_file_path}'")
            return {}
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
            # values are interpolated lazily, on access
            return dict(self._parser["DEFAULT"])
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

    def _read_environ(self) -> Dict[str, str]:
        values = {}
        for key in self.get_ini_keys():
            env_value = self._environ.get(ENV_PREFIX + key.upper())
            if env_value is not None:
                values[key] = env_value
        return values

    def save_new_config(self, settings: Dict[str, Any]) -> None:
        """
        Creates or overwrites the configuration file.

        Keys not present in ``settings`` are written with their defaults so
        the file documents every option.
        """
        unknown = set(settings) - set(self.get_ini_keys())
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            )

        defaults = ClientConfig().model_dump()
        config = configparser.ConfigParser()
        config["DEFAULT"] = {}
        for key in self.get_ini_keys():
            value = settings.get(key, defaults.get(key, ""))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            else:
                # configparser uses % for interpolation, so it must be escaped
                config["DEFAULT"][key] = str(value).replace("%", "%%")

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            # the file holds the app password: owner-only from creation on
            fd = os.open(
                self.config_file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            with os.fdopen(fd, "w", encoding="utf-8") as configfile:
                config.write(configfile)
            if os.name != "nt":
                self.config_file_path.chmod(0o600)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e
