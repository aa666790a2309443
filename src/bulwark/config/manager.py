"""
Configuration manager for Bulwark.

Loads a TOML file, layers ``BULWARK_*`` environment overrides on top and
validates the result into a ``BulwarkConfig``.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w
from pydantic import ValidationError

from bulwark.exceptions.config import (
    ConfigurationError,
    ConfigurationValidationError,
    InvalidConfigurationError,
)
from bulwark.logging import get_logger

from .models import BulwarkConfig, BulwarkSettings

logger = get_logger(__name__)

SECTIONS = ("retry", "circuit_breaker", "processor", "logging", "metrics")


@dataclass
class EnvironmentOverride:
    """Helper for applying environment variable overrides."""
    config_section: Dict[str, Any]
    settings: BulwarkSettings

    def apply_if_set(self, setting_name: str, config_key: str) -> None:
        """Apply setting if it's set in environment."""
        value = getattr(self.settings, setting_name, None)
        if value is not None:
            self.config_section[config_key] = value

    def apply_string_if_set(self, setting_name: str, config_key: str) -> None:
        """Apply string setting if it's set and non-empty."""
        value = getattr(self.settings, setting_name, None)
        if value:
            self.config_section[config_key] = value


def _format_validation_error(error: ValidationError) -> list:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


class ConfigManager:
    """
    Configuration manager with validation.

    Without a config file only defaults and environment overrides apply.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else None
        self._config: Optional[BulwarkConfig] = None

    def load_config(self, reload: bool = False) -> BulwarkConfig:
        """Load and validate configuration from file and environment."""
        if self._config is not None and not reload:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_file and self.config_file.exists():
            config_data = self._load_toml_file()

        config_data = self._apply_env_overrides(config_data)

        try:
            self._config = BulwarkConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationValidationError(_format_validation_error(e)) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationValidationError([f"Configuration validation failed: {e}"]) from e

        logger.debug("Configuration loaded",
                     config_file=str(self.config_file) if self.config_file else None)
        return self._config

    def _load_toml_file(self) -> Dict[str, Any]:
        """Load configuration from TOML file."""
        try:
            with open(self.config_file, "rb") as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise InvalidConfigurationError(
                str(self.config_file), f"Invalid TOML syntax: {e}", "valid TOML format"
            ) from e
        except PermissionError as e:
            raise ConfigurationError(
                f"Cannot read configuration file: {self.config_file}",
                help_text="Check file permissions",
            ) from e

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        settings = BulwarkSettings()

        for section in SECTIONS:
            config_data.setdefault(section, {})

        retry = EnvironmentOverride(config_data["retry"], settings)
        retry.apply_if_set("bulwark_retry_max_attempts", "max_attempts")
        retry.apply_if_set("bulwark_retry_base_delay", "base_delay")
        retry.apply_if_set("bulwark_retry_max_delay", "max_delay")
        retry.apply_if_set("bulwark_retry_backoff_factor", "backoff_factor")

        circuit = EnvironmentOverride(config_data["circuit_breaker"], settings)
        circuit.apply_if_set("bulwark_circuit_failure_threshold", "failure_threshold")
        circuit.apply_if_set("bulwark_circuit_recovery_timeout", "recovery_timeout")

        processor = EnvironmentOverride(config_data["processor"], settings)
        processor.apply_if_set("bulwark_redirect_delay", "redirect_delay")
        processor.apply_string_if_set("bulwark_login_path", "login_path")

        self._apply_logging_env_overrides(config_data["logging"], settings)

        metrics = EnvironmentOverride(config_data["metrics"], settings)
        metrics.apply_if_set("bulwark_metrics_enabled", "enabled")
        metrics.apply_if_set("bulwark_metrics_port", "port")

        return config_data

    def _apply_logging_env_overrides(self, logging_config: Dict[str, Any], settings: BulwarkSettings) -> None:
        if settings.bulwark_logging_level:
            logging_config["level"] = settings.bulwark_logging_level.upper()
        if settings.bulwark_logging_format:
            logging_config["format"] = settings.bulwark_logging_format
        if settings.bulwark_logging_output:
            # Comma-separated outputs
            logging_config["output"] = [o.strip() for o in settings.bulwark_logging_output.split(",")]
        if settings.bulwark_logging_file_path:
            logging_config["file_path"] = settings.bulwark_logging_file_path

    def _remove_none_values(self, data):
        """Recursively remove None values; TOML has no null."""
        if isinstance(data, dict):
            return {k: self._remove_none_values(v) for k, v in data.items() if v is not None}
        elif isinstance(data, list):
            return [self._remove_none_values(item) for item in data if item is not None]
        else:
            return data

    def save_config(self, config: Optional[BulwarkConfig] = None) -> None:
        """Save configuration to the TOML file."""
        if config is None:
            config = self.load_config()
        if self.config_file is None:
            raise ConfigurationError(
                "No configuration file to save to",
                help_text="Create the ConfigManager with a config_file path",
            )

        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        config_dict = self._remove_none_values(config.model_dump(mode="json"))

        with open(self.config_file, "wb") as f:
            tomli_w.dump(config_dict, f)
        self._config = config
        logger.info("Configuration saved", config_file=str(self.config_file))

    def reset_config(self) -> None:
        """Reset configuration to defaults."""
        self._config = BulwarkConfig()
        if self.config_file is not None:
            self.save_config()
