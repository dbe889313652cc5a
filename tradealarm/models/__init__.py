"""Data models for sessions, ledger entries and classified chat events."""

from .session import (
    EntryKind,
    UserSession,
    LedgerEntry,
    SessionSummary,
    OutcomeStatus,
    LedgerOutcome,
    evaluate_thresholds,
)
from .events import (
    InboundMessage,
    StartCommand,
    StopCommand,
    SummaryQuery,
    LedgerEvent,
    Ignored,
    ClassifiedEvent,
)

__all__ = [
    "EntryKind",
    "UserSession",
    "LedgerEntry",
    "SessionSummary",
    "OutcomeStatus",
    "LedgerOutcome",
    "evaluate_thresholds",
    "InboundMessage",
    "StartCommand",
    "StopCommand",
    "SummaryQuery",
    "LedgerEvent",
    "Ignored",
    "ClassifiedEvent",
]
