"""Correlation ids for log lines.

The poller opens a scope per inbound update (`update-<id>`) and the HTTP
middleware one per request, so every log line emitted while handling it,
including from the engine and the repository, carries the same id.

Usage:
    from tradealarm.logging.log_context import correlation_scope

    with correlation_scope(f"update-{message.id}"):
        logger.info("inbound_message_received")  # carries correlation_id
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional


correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


class LogContext:
    """Read and write the current correlation id."""

    @staticmethod
    def set_correlation_id(correlation_id: Optional[str]):
        correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return correlation_id_var.get()

    @staticmethod
    def generate_correlation_id() -> str:
        """New request id (UUID4 string)."""
        return str(uuid.uuid4())


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Set a correlation id for the block and restore the previous one after.

    Args:
        correlation_id: Id to use; a fresh UUID4 if omitted

    Yields:
        The id in effect inside the block
    """
    correlation_id = correlation_id or LogContext.generate_correlation_id()
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


class CorrelationFilter(logging.Filter):
    """Copy the current correlation id onto each record as `correlation_id`."""

    def filter(self, record):
        correlation_id = correlation_id_var.get()
        if correlation_id:
            record.correlation_id = correlation_id
        return True
