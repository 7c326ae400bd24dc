"""Configuration manager for pyloc.

This module provides functionality for loading and validating the optional
YAML configuration file and merging command-line overrides into it.
"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .schema import PylocConfig


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("pyloc.yml")


class ConfigManager:
    """Configuration manager for handling YAML config files with Pydantic validation."""

    @staticmethod
    def load_config(config_path: Path) -> PylocConfig:
        """
        Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            PylocConfig: Validated configuration object

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ConfigurationError: If the YAML is invalid or fails validation
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as f:
                raw_config_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}", context=config_path) from e

        if raw_config_data is None:
            config_data: dict[str, object] = {}
        elif isinstance(raw_config_data, dict):
            config_data = raw_config_data  # pyright: ignore[reportUnknownVariableType]
        else:
            raise ConfigurationError(
                f"Configuration file must contain a YAML dictionary, got {type(raw_config_data).__name__}",
                context=config_path,
            )

        try:
            config = PylocConfig(**ConfigManager._parse_config_data(config_data))  # pyright: ignore[reportArgumentType]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}", context=config_path) from e

        logger.debug(f"Loaded configuration from {config_path}")
        return config

    @staticmethod
    def _parse_config_data(config_data: dict[str, object]) -> dict[str, object]:
        """
        Normalize raw configuration values.

        Function name lists may be written as comma-separated strings.

        Args:
            config_data: Raw configuration data from YAML

        Returns:
            dict[str, object]: Parsed configuration data
        """
        parsed_data = config_data.copy()

        for key, value in config_data.items():
            match key:
                case "funcs" | "fmt_funcs" | "exclude_dirs":
                    match value:
                        case str():
                            parsed_data[key] = [part.strip() for part in value.split(",")]
                        case None:
                            parsed_data[key] = []
                        case _:
                            parsed_data[key] = value

                case "translations_dir":
                    match value:
                        case str():
                            parsed_data[key] = Path(value).expanduser()
                        case _:
                            parsed_data[key] = value

                case _:
                    parsed_data[key] = value

        return parsed_data

    @staticmethod
    def resolve_config(config_path: Path | None, overrides: dict[str, object]) -> PylocConfig:
        """
        Build the effective configuration of a run.

        The configuration file is optional when no path is given explicitly;
        ``overrides`` (usually command-line flags) win over file values. Keys
        whose override is None are ignored.

        Args:
            config_path: Explicit configuration file, or None to use pyloc.yml if present
            overrides: Values taking precedence over the file

        Returns:
            PylocConfig: Validated configuration

        Raises:
            FileNotFoundError: If an explicit configuration file doesn't exist
            ConfigurationError: If the merged configuration is invalid
        """
        if config_path is not None:
            base = ConfigManager.load_config(config_path)
        elif DEFAULT_CONFIG_FILE.exists():
            base = ConfigManager.load_config(DEFAULT_CONFIG_FILE)
        else:
            base = PylocConfig()

        data = base.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})

        try:
            return PylocConfig(**ConfigManager._parse_config_data(data))  # pyright: ignore[reportArgumentType]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
