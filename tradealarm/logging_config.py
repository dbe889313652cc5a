"""
Structured logging configuration for tradealarm.

Every module logs snake_case event names with context in `extra`
(`ledger_entry_recorded`, `poll_failed`, ...). In JSON mode each record
becomes one line on stdout with the session identifier and correlation id
promoted to top-level fields.
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from .exceptions import InvalidConfigValueError
from .logging.log_context import CorrelationFilter

_NOISY_LOGGERS = ("aiohttp.access", "sqlalchemy.engine", "uvicorn.access")

# Record attributes copied to the top level of every JSON line when present
_CONTEXT_FIELDS = ("correlation_id", "identifier")


class AlarmJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with fixed timestamp/level/logger keys."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


def _parse_level(level: str) -> int:
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise InvalidConfigValueError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: str = "INFO",
    use_json: bool = True,
    stream: Optional[object] = None,
) -> logging.Logger:
    """
    Configure the root logger for the alarm service.

    Replaces any existing root handlers, so calling it twice is safe.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: JSON lines if True, plain text otherwise
        stream: Output stream (stdout when omitted)

    Returns:
        Configured root logger

    Raises:
        InvalidConfigValueError: Unknown level name

    Example:
        >>> setup_logging(level="INFO", use_json=True)
        >>> logging.getLogger("tradealarm.engine").info(
        ...     "session_started", extra={"identifier": "12345"})
    """
    numeric_level = _parse_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(CorrelationFilter())

    if use_json:
        handler.setFormatter(AlarmJsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ))
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
