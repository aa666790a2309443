"""
Bulwark Exception Hierarchy

Exception Hierarchy:
    NormalizedError (classified fault, one ErrorKind)
    BackendFault (namespace-coded fault raised by the document store client)
    ConfigurationError
    ├── InvalidConfigurationError
    ├── MissingConfigurationError
    └── ConfigurationValidationError
"""

from .base import BackendFault, ErrorKind, NormalizedError
from .config import (
    ConfigurationError,
    ConfigurationValidationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .factory import ErrorFactory
from .templates import ErrorCodes, ErrorMessageTemplates

__all__ = [
    # Taxonomy
    "ErrorKind",
    "NormalizedError",
    "BackendFault",
    "ErrorFactory",
    "ErrorCodes",
    "ErrorMessageTemplates",
    # Configuration
    "ConfigurationError",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "ConfigurationValidationError",
]
