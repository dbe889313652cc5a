"""Tests for log correlation, JSON log output and signal-driven shutdown."""

import io
import json
import logging
import signal

import pytest

from tradealarm.exceptions import InvalidConfigValueError
from tradealarm.logging.log_context import CorrelationFilter, LogContext, correlation_scope
from tradealarm.logging_config import setup_logging
from tradealarm.utils.shutdown import GracefulShutdownHandler


class TestCorrelation:

    def make_record(self):
        return logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)

    def test_scope_sets_and_restores(self):
        with correlation_scope("update-42") as correlation_id:
            assert correlation_id == "update-42"
            record = self.make_record()
            assert CorrelationFilter().filter(record)
            assert record.correlation_id == "update-42"

            with correlation_scope("update-43"):
                assert LogContext.get_correlation_id() == "update-43"

            assert LogContext.get_correlation_id() == "update-42"

        assert LogContext.get_correlation_id() is None

    def test_scope_generates_id(self):
        with correlation_scope() as correlation_id:
            assert correlation_id
            assert LogContext.get_correlation_id() == correlation_id

    def test_filter_without_correlation_id(self):
        record = self.make_record()
        assert CorrelationFilter().filter(record)
        assert not hasattr(record, "correlation_id")


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_lines_carry_context(self):
        stream = io.StringIO()
        setup_logging(level="INFO", use_json=True, stream=stream)

        with correlation_scope("update-7"):
            logging.getLogger("tradealarm.engine").info(
                "ledger_entry_recorded", extra={"identifier": "12345", "net": 30000}
            )

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "ledger_entry_recorded"
        assert line["level"] == "INFO"
        assert line["logger"] == "tradealarm.engine"
        assert line["identifier"] == "12345"
        assert line["correlation_id"] == "update-7"
        assert line["net"] == 30000
        assert "timestamp" in line

    def test_text_mode(self):
        stream = io.StringIO()
        setup_logging(level="DEBUG", use_json=False, stream=stream)

        logging.getLogger("tradealarm.poller").debug("poll_failed")

        assert "[DEBUG] tradealarm.poller: poll_failed" in stream.getvalue()

    def test_repeated_setup_keeps_one_handler(self):
        root = setup_logging(level="WARNING")
        setup_logging(level="WARNING")

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_unknown_level(self):
        with pytest.raises(InvalidConfigValueError):
            setup_logging(level="LOUD")


class TestGracefulShutdownHandler:

    def test_first_signal_requests_stop(self):
        calls = []
        handler = GracefulShutdownHandler(on_shutdown=lambda: calls.append(True))

        handler._signal_handler(signal.SIGTERM)

        assert calls == [True]
        assert handler.shutdown_initiated

    def test_second_signal_forces_exit(self):
        handler = GracefulShutdownHandler(on_shutdown=lambda: None)
        handler._signal_handler(signal.SIGINT)

        with pytest.raises(SystemExit):
            handler._signal_handler(signal.SIGINT)

    def test_unregister_without_register(self):
        GracefulShutdownHandler(on_shutdown=lambda: None).unregister()
