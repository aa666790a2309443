"""
Configuration-specific exceptions.
"""

from typing import Any, List, Optional


class ConfigurationError(Exception):
    """Base exception for configuration-related errors."""

    def __init__(self, message: str, help_text: Optional[str] = None):
        self.message = message
        self.help_text = help_text
        super().__init__(message)

    def __str__(self) -> str:
        if self.help_text:
            return f"{self.message}\n\nHelp: {self.help_text}"
        return self.message


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration contains invalid values."""

    def __init__(self, field: str, value: Any, expected: str):
        message = f"Invalid configuration for '{field}': got {repr(value)}, expected {expected}"
        help_text = f"Check the '{field}' setting; expected format: {expected}"
        super().__init__(message, help_text)
        self.field = field
        self.value = value
        self.expected = expected


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration is missing."""

    def __init__(self, field: str, help_text: Optional[str] = None):
        message = f"Missing required configuration: '{field}'"
        if not help_text:
            help_text = f"Provide a value for '{field}' in the configuration file or a BULWARK_* environment variable"
        super().__init__(message, help_text)
        self.field = field


class ConfigurationValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        message = "Configuration validation failed:"
        for error in errors:
            message += f"\n  - {error}"

        help_text = "Fix the validation errors listed above in your configuration file"
        super().__init__(message, help_text)
