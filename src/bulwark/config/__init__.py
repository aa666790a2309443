"""
Configuration management for Bulwark.
"""

from .manager import ConfigManager
from .models import (
    BulwarkConfig,
    BulwarkSettings,
    CircuitBreakerSettings,
    LoggingSettings,
    LogLevel,
    MetricsSettings,
    ProcessorSettings,
    RetrySettings,
)

__all__ = [
    'BulwarkConfig',
    'BulwarkSettings',
    'CircuitBreakerSettings',
    'ConfigManager',
    'LoggingSettings',
    'LogLevel',
    'MetricsSettings',
    'ProcessorSettings',
    'RetrySettings',
]
