"""
Configuration models for Bulwark.

Pydantic models providing validation and defaults for every tunable of the
error handling and resilience layer, plus the environment-variable overrides.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bulwark.constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BASE_DELAY,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_FILE_SIZE_BYTES,
    DEFAULT_LOGIN_PATH,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_METRICS_PORT,
    DEFAULT_RECOVERY_TIMEOUT,
    DEFAULT_REDIRECT_DELAY,
    MIN_LOG_FILE_SIZE_BYTES,
)


class LogLevel(str, Enum):
    """Valid logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RetrySettings(BaseModel):
    """Default retry policy (delays in seconds)."""

    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, description="Total attempts per call")
    base_delay: float = Field(DEFAULT_BASE_DELAY, ge=0, description="Delay after the first failure")
    max_delay: float = Field(DEFAULT_MAX_DELAY, ge=0, description="Upper bound on any delay")
    backoff_factor: float = Field(DEFAULT_BACKOFF_FACTOR, ge=1, description="Delay multiplier")


class CircuitBreakerSettings(BaseModel):
    """Default circuit breaker thresholds."""

    failure_threshold: int = Field(
        DEFAULT_FAILURE_THRESHOLD, ge=1, description="Consecutive failures before opening"
    )
    recovery_timeout: float = Field(
        DEFAULT_RECOVERY_TIMEOUT, ge=0, description="Seconds before a half-open probe"
    )


class ProcessorSettings(BaseModel):
    """Error event processor recovery settings."""

    redirect_delay: float = Field(
        DEFAULT_REDIRECT_DELAY, ge=0, description="Seconds before the session-expired signal"
    )
    login_path: str = Field(DEFAULT_LOGIN_PATH, description="Redirect target on expired sessions")

    @field_validator("login_path")
    @classmethod
    def validate_login_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("login_path must be an absolute path starting with '/'")
        return v


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Logging level")
    format: str = Field("console", description="Log format: console, json, rich")
    output: List[str] = Field(["console"], description="Log outputs: console, file")
    file_path: Optional[Path] = Field(None, description="Log file path")
    max_file_size: int = Field(
        DEFAULT_LOG_FILE_SIZE_BYTES,
        ge=MIN_LOG_FILE_SIZE_BYTES,
        description="Max log file size in bytes",
    )
    backup_count: int = Field(
        DEFAULT_LOG_BACKUP_COUNT, ge=1, le=100, description="Number of backup files"
    )

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ["console", "json", "rich"]:
            raise ValueError("Format must be one of: console, json, rich")
        return v

    @field_validator("output")
    @classmethod
    def validate_output(cls, v: List[str]) -> List[str]:
        valid_outputs = ["console", "file"]
        for output in v:
            if output not in valid_outputs:
                raise ValueError(
                    f"Invalid output '{output}'. Must be one of: {valid_outputs}"
                )
        return v


class MetricsSettings(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = Field(False, description="Enable Prometheus metrics collection")
    port: int = Field(DEFAULT_METRICS_PORT, ge=1024, le=65535, description="Metrics server port")
    start_server: bool = Field(False, description="Expose metrics over HTTP on startup")


class BulwarkConfig(BaseModel):
    """Main Bulwark configuration model."""

    retry: RetrySettings = Field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    model_config = {
        "extra": "forbid",  # Don't allow extra fields
        "validate_assignment": True,  # Validate on assignment
        "str_strip_whitespace": True,  # Strip whitespace from strings
    }


class BulwarkSettings(BaseSettings):
    """Settings that can be overridden by environment variables."""

    # Retry settings
    bulwark_retry_max_attempts: Optional[int] = Field(None, alias="BULWARK_RETRY_MAX_ATTEMPTS")
    bulwark_retry_base_delay: Optional[float] = Field(None, alias="BULWARK_RETRY_BASE_DELAY")
    bulwark_retry_max_delay: Optional[float] = Field(None, alias="BULWARK_RETRY_MAX_DELAY")
    bulwark_retry_backoff_factor: Optional[float] = Field(
        None, alias="BULWARK_RETRY_BACKOFF_FACTOR"
    )

    # Circuit breaker settings
    bulwark_circuit_failure_threshold: Optional[int] = Field(
        None, alias="BULWARK_CIRCUIT_FAILURE_THRESHOLD"
    )
    bulwark_circuit_recovery_timeout: Optional[float] = Field(
        None, alias="BULWARK_CIRCUIT_RECOVERY_TIMEOUT"
    )

    # Processor settings
    bulwark_redirect_delay: Optional[float] = Field(None, alias="BULWARK_REDIRECT_DELAY")
    bulwark_login_path: Optional[str] = Field(None, alias="BULWARK_LOGIN_PATH")

    # Logging settings
    bulwark_logging_level: Optional[str] = Field(None, alias="BULWARK_LOGGING_LEVEL")
    bulwark_logging_format: Optional[str] = Field(None, alias="BULWARK_LOGGING_FORMAT")
    bulwark_logging_output: Optional[str] = Field(None, alias="BULWARK_LOGGING_OUTPUT")
    bulwark_logging_file_path: Optional[str] = Field(
        None, alias="BULWARK_LOGGING_FILE_PATH"
    )

    # Metrics settings
    bulwark_metrics_enabled: Optional[bool] = Field(None, alias="BULWARK_METRICS_ENABLED")
    bulwark_metrics_port: Optional[int] = Field(None, alias="BULWARK_METRICS_PORT")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )
