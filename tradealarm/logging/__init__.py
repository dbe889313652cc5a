"""Log context propagation (correlation ids per inbound update or request)."""

from .log_context import LogContext, CorrelationFilter, correlation_id_var, correlation_scope

__all__ = [
    "LogContext",
    "CorrelationFilter",
    "correlation_id_var",
    "correlation_scope",
]
