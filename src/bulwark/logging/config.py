"""
Logging configuration.

``LoggingConfig`` is the plain object the ``LoggingManager`` consumes. It can
be built by hand or from the pydantic ``LoggingSettings`` section of a
``BulwarkConfig``.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from bulwark.constants import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_FILE_SIZE_BYTES

FORMAT_TYPES = ("console", "json", "rich")
OUTPUTS = ("console", "file")
DEFAULT_LOG_FILE = Path("logs/bulwark.log")


class LoggingConfig:
    """Where bulwark log records go and how they are rendered."""

    def __init__(
        self,
        level: Union[str, int] = logging.INFO,
        format_type: str = "console",
        output: Union[str, List[str]] = "console",
        file_path: Optional[Path] = None,
        max_file_size: int = DEFAULT_LOG_FILE_SIZE_BYTES,
        backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
        service_name: str = "bulwark",
        version: str = "unknown",
        logger_name: str = "bulwark",
    ):
        if format_type not in FORMAT_TYPES:
            raise ValueError(f"Unknown log format '{format_type}', expected one of {FORMAT_TYPES}")
        outputs = [output] if isinstance(output, str) else list(output)
        unknown = [o for o in outputs if o not in OUTPUTS]
        if unknown:
            raise ValueError(f"Unknown log outputs {unknown}, expected any of {OUTPUTS}")

        self.level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
        if not isinstance(self.level, int):
            raise ValueError(f"Unknown log level '{level}'")
        self.format_type = format_type
        self.output = outputs
        self.file_path = Path(file_path) if file_path else DEFAULT_LOG_FILE
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.service_name = service_name
        self.version = version
        # Handlers attach here; the host application's root logger is left alone
        self.logger_name = logger_name

    @classmethod
    def from_settings(cls, settings, version: str = "unknown") -> "LoggingConfig":
        """Build from a ``bulwark.config.LoggingSettings`` section."""
        return cls(
            level=getattr(settings.level, "value", settings.level),
            format_type=settings.format,
            output=settings.output,
            file_path=settings.file_path,
            max_file_size=settings.max_file_size,
            backup_count=settings.backup_count,
            version=version,
        )

    def wants(self, output: str) -> bool:
        return output in self.output
