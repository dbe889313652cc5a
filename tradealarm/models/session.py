"""Session and ledger models.

All amounts are integers in minor currency units.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class EntryKind(str, Enum):
    """Ledger entry kind."""
    WIN = "WIN"
    LOSS = "LOSS"

    def signed(self, amount: int) -> int:
        """Delta for a positive amount of this kind."""
        return amount if self is EntryKind.WIN else -amount


@dataclass
class UserSession:
    """Per-user tracking configuration.

    target_win and stop_loss of 0 disable the corresponding auto-stop.
    """

    identifier: str
    start_balance: int = 0
    target_win: int = 0
    stop_loss: int = 0
    interval_minutes: int = 5
    active: bool = False

    @property
    def target_enabled(self) -> bool:
        return self.target_win > 0

    @property
    def stop_loss_enabled(self) -> bool:
        return self.stop_loss > 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "identifier": self.identifier,
            "start_balance": self.start_balance,
            "target_win": self.target_win,
            "stop_loss": self.stop_loss,
            "interval_minutes": self.interval_minutes,
            "active": self.active,
        }


@dataclass
class LedgerEntry:
    """One recorded win or loss.

    running_balance is start_balance plus every delta up to and including
    this entry, fixed at write time.
    """

    sequence: int
    user_identifier: str
    delta: int
    running_balance: int
    kind: EntryKind
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def amount(self) -> int:
        """Unsigned amount reported by the user."""
        return abs(self.delta)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "sequence": self.sequence,
            "user_identifier": self.user_identifier,
            "delta": self.delta,
            "running_balance": self.running_balance,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SessionSummary:
    """On-demand account summary, never cached."""

    identifier: str
    start_balance: int
    net: int
    active: bool
    target_win: int
    stop_loss: int
    interval_minutes: int
    entry_count: int = 0

    @property
    def current_balance(self) -> int:
        return self.start_balance + self.net

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "identifier": self.identifier,
            "start_balance": self.start_balance,
            "net": self.net,
            "current_balance": self.current_balance,
            "active": self.active,
            "target_win": self.target_win,
            "stop_loss": self.stop_loss,
            "interval_minutes": self.interval_minutes,
            "entry_count": self.entry_count,
        }


class OutcomeStatus(str, Enum):
    """Result of applying a ledger event."""
    RECORDED = "recorded"  # Below both thresholds, session stays active
    TARGET_REACHED = "target_reached"  # Auto-stopped on target win
    STOP_LOSS_REACHED = "stop_loss_reached"  # Auto-stopped on stop loss


@dataclass
class LedgerOutcome:
    """Accepted ledger event together with the text to send back."""

    entry: LedgerEntry
    net: int
    status: OutcomeStatus
    text: Optional[str] = None

    @property
    def auto_stopped(self) -> bool:
        return self.status is not OutcomeStatus.RECORDED


def evaluate_thresholds(session: UserSession, net: int) -> OutcomeStatus:
    """Decide the outcome for a session at the given net.

    Target win is checked before stop loss. A threshold of 0 is disabled.
    """
    if session.target_enabled and net >= session.target_win:
        return OutcomeStatus.TARGET_REACHED
    if session.stop_loss_enabled and net <= -session.stop_loss:
        return OutcomeStatus.STOP_LOSS_REACHED
    return OutcomeStatus.RECORDED
