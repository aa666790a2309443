"""
Process-wide logging setup.

``LoggingManager`` installs handlers on the ``bulwark`` logger (or whichever
namespace the config names) and remembers them, so reconfiguring replaces
exactly what it installed earlier and nothing the host application added.
"""

import logging
import logging.handlers
import sys
from typing import List, Optional

from .config import LoggingConfig
from .formatters import ContextConsoleFormatter, StructuredFormatter, create_rich_handler
from .loggers import BulwarkLogger


class LoggingManager:
    """Singleton owner of the handlers bulwark installs."""

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.config: Optional[LoggingConfig] = None
        self.handlers: List[logging.Handler] = []
        self._target: Optional[logging.Logger] = None
        self._initialized = True

    def configure(self, config: LoggingConfig) -> None:
        self.reset()
        self.config = config
        self._target = logging.getLogger(config.logger_name)
        self._target.setLevel(config.level)

        for output in config.output:
            handler = self._build_handler(output, config)
            handler.setLevel(config.level)
            self._target.addHandler(handler)
            self.handlers.append(handler)

    def reset(self) -> None:
        """Detach and close every handler installed by ``configure``."""
        if self._target is not None:
            for handler in self.handlers:
                self._target.removeHandler(handler)
                handler.close()
            self._target.setLevel(logging.NOTSET)
        self.handlers.clear()
        self._target = None
        self.config = None

    def _build_handler(self, output: str, config: LoggingConfig) -> logging.Handler:
        if output == "file":
            config.file_path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = logging.handlers.RotatingFileHandler(
                config.file_path,
                maxBytes=config.max_file_size,
                backupCount=config.backup_count,
            )
        elif config.format_type == "rich":
            return create_rich_handler()
        else:
            handler = logging.StreamHandler(sys.stderr)

        if config.format_type == "json":
            handler.setFormatter(StructuredFormatter(config.service_name, config.version))
        else:
            # Rich markup makes no sense in a file
            handler.setFormatter(ContextConsoleFormatter())
        return handler

    def get_logger(self, name: str, correlation_id: Optional[str] = None) -> BulwarkLogger:
        return BulwarkLogger(name, correlation_id)


logging_manager = LoggingManager()


def configure_logging(config: LoggingConfig) -> None:
    """Configure the global logging manager."""
    logging_manager.configure(config)
