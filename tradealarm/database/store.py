"""Ledger Store interface.

Abstract contract the session engine depends on. The engine serializes
calls per user identifier. Implementations must make append_entry and
record_event atomic (the running balance is computed and the row written
in one unit, or nothing is written) and raise StorageError on failure.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.session import (
    EntryKind,
    LedgerEntry,
    LedgerOutcome,
    SessionSummary,
    UserSession,
)


class LedgerStore(ABC):
    """Durable storage for session configuration and the entry log."""

    @abstractmethod
    def get_session(self, identifier: str) -> Optional[UserSession]:
        """Return the stored session, or None if the user has none."""
        pass

    @abstractmethod
    def put_session(self, session: UserSession) -> UserSession:
        """Create or fully overwrite the session row (last write wins)."""
        pass

    @abstractmethod
    def append_entry(self, identifier: str, kind: EntryKind, amount: int) -> LedgerEntry:
        """Append one entry and return it with its computed running balance.

        Args:
            identifier: Owning user
            kind: WIN or LOSS
            amount: Positive amount; sign comes from kind

        Raises:
            StorageError: Session missing or write failed (nothing written)
        """
        pass

    @abstractmethod
    def record_event(self, identifier: str, kind: EntryKind, amount: int) -> Optional[LedgerOutcome]:
        """Append an entry to an active session and apply its auto-stop.

        The append, the threshold check and, on a crossing, the switch to
        inactive happen in one transaction: either all of it is stored or
        none of it is.

        Returns:
            LedgerOutcome (text unset), or None if the session is missing
            or inactive (nothing written)

        Raises:
            StorageError: Write failed (nothing written)
        """
        pass

    @abstractmethod
    def sum_deltas(self, identifier: str) -> int:
        """Net P/L: sum of every delta for the user (0 when none)."""
        pass

    @abstractmethod
    def list_entries(self, identifier: str, limit: Optional[int] = None) -> list[LedgerEntry]:
        """Entries for the user, most recent first."""
        pass

    @abstractmethod
    def count_entries(self, identifier: str) -> int:
        """Number of entries for the user."""
        pass

    @abstractmethod
    def delete_entries(self, identifier: str) -> int:
        """Delete every entry for the user; return how many were removed."""
        pass

    @abstractmethod
    def list_active_sessions(self) -> list[UserSession]:
        """All sessions currently flagged active."""
        pass

    def summarize(self, identifier: str) -> Optional[SessionSummary]:
        """Summary computed from the stored session and ledger, or None."""
        session = self.get_session(identifier)
        if session is None:
            return None

        return SessionSummary(
            identifier=identifier,
            start_balance=session.start_balance,
            net=self.sum_deltas(identifier),
            active=session.active,
            target_win=session.target_win,
            stop_loss=session.stop_loss,
            interval_minutes=session.interval_minutes,
            entry_count=self.count_entries(identifier),
        )
