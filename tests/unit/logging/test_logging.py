"""
Tests for BulwarkLogger, formatters and the logging manager.
"""

import json
import logging

import pytest

from bulwark.config import LoggingSettings
from bulwark.core.correlation import CorrelationIdManager
from bulwark.logging import (
    BulwarkLogger,
    ContextConsoleFormatter,
    LoggingConfig,
    LoggingManager,
    StructuredFormatter,
    get_logger,
)


@pytest.mark.unit
class TestBulwarkLogger:
    def test_keyword_context_goes_to_extra(self, caplog):
        logger = get_logger("bulwark.test")

        with caplog.at_level(logging.INFO, logger="bulwark.test"):
            logger.info("retrying", attempt=2)

        record = caplog.records[-1]
        assert record.getMessage() == "retrying"
        assert record.extra_context == {"attempt": 2}

    def test_correlation_id_from_context(self, caplog):
        logger = BulwarkLogger("bulwark.test")

        with caplog.at_level(logging.INFO, logger="bulwark.test"):
            with CorrelationIdManager.correlation_context("req-1"):
                logger.info("inside")

        assert caplog.records[-1].correlation_id == "req-1"

    def test_with_context_does_not_mutate_original(self, caplog):
        base = BulwarkLogger("bulwark.test")
        scoped = base.with_context(resource="orders")

        with caplog.at_level(logging.INFO, logger="bulwark.test"):
            scoped.info("scoped", step=1)
            base.info("plain")

        assert caplog.records[-2].extra_context == {"resource": "orders", "step": 1}
        assert not hasattr(caplog.records[-1], "extra_context")


def _record(message="hello", level=logging.WARNING, **attrs):
    record = logging.LogRecord("bulwark.x", level, __file__, 10, message, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestStructuredFormatter:
    def test_json_output(self):
        formatter = StructuredFormatter(service_name="svc", version="1.0")
        record = _record(correlation_id="abc", extra_context={"attempt": 3})

        data = json.loads(formatter.format(record))

        assert data["message"] == "hello"
        assert data["level"] == "WARNING"
        assert data["service"] == "svc"
        assert data["correlation_id"] == "abc"
        assert data["attempt"] == 3

    def test_context_cannot_overwrite_record_fields(self):
        formatter = StructuredFormatter()
        record = _record(extra_context={"timestamp": 1.5, "message": "other", "code": "E1"})

        data = json.loads(formatter.format(record))

        assert data["message"] == "hello"
        assert data["context_message"] == "other"
        assert data["context_timestamp"] == 1.5
        assert data["code"] == "E1"


@pytest.mark.unit
class TestContextConsoleFormatter:
    def test_appends_keyword_context(self):
        line = ContextConsoleFormatter().format(
            _record(correlation_id="req-1", extra_context={"attempt": 2})
        )

        assert line.endswith("bulwark.x: hello [correlation_id=req-1 attempt=2]")

    def test_plain_record_unchanged(self):
        line = ContextConsoleFormatter().format(_record())

        assert line.endswith("bulwark.x: hello")


@pytest.mark.unit
class TestLoggingConfig:
    def test_rejects_unknown_format(self):
        with pytest.raises(ValueError):
            LoggingConfig(format_type="xml")

    def test_from_settings(self, tmp_path):
        settings = LoggingSettings(level="DEBUG", format="json", output=["file"],
                                   file_path=tmp_path / "out.log")

        config = LoggingConfig.from_settings(settings)

        assert config.level == logging.DEBUG
        assert config.format_type == "json"
        assert config.output == ["file"]
        assert config.file_path == tmp_path / "out.log"


@pytest.mark.unit
class TestLoggingManager:
    def test_singleton(self):
        assert LoggingManager() is LoggingManager()

    def test_configure_replaces_only_own_handlers(self, tmp_path):
        bulwark_logger = logging.getLogger("bulwark")
        foreign = logging.NullHandler()
        bulwark_logger.addHandler(foreign)
        root_handlers = list(logging.getLogger().handlers)
        manager = LoggingManager()

        try:
            manager.configure(LoggingConfig(level="DEBUG", format_type="json", output=["console"]))
            first = list(manager.handlers)
            manager.configure(LoggingConfig(
                level="INFO", output=["console", "file"], file_path=tmp_path / "logs" / "bulwark.log"
            ))

            assert foreign in bulwark_logger.handlers
            assert not any(handler in bulwark_logger.handlers for handler in first)
            assert len(manager.handlers) == 2
            assert bulwark_logger.level == logging.INFO
            assert (tmp_path / "logs").is_dir()
            assert logging.getLogger().handlers == root_handlers
        finally:
            manager.reset()
            bulwark_logger.removeHandler(foreign)

    def test_reset_detaches_handlers(self):
        manager = LoggingManager()
        manager.configure(LoggingConfig(format_type="rich"))
        installed = list(manager.handlers)

        manager.reset()

        assert manager.handlers == []
        assert not any(h in logging.getLogger("bulwark").handlers for h in installed)
        assert logging.getLogger("bulwark").level == logging.NOTSET
