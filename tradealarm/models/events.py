"""Inbound chat messages and the events the classifier turns them into."""

from dataclasses import dataclass
from typing import Optional, Union

from .session import EntryKind


@dataclass(frozen=True)
class InboundMessage:
    """One message read from the inbound transport.

    text is None for updates that carry no text (stickers, edits, joins);
    they still advance the poller cursor.
    """

    id: int
    user_identifier: Optional[str]
    text: Optional[str]


@dataclass(frozen=True)
class StartCommand:
    """`/start` - activate (or create) the session."""


@dataclass(frozen=True)
class StopCommand:
    """`/stop` - deactivate the session."""


@dataclass(frozen=True)
class SummaryQuery:
    """`total` - report start balance, net and current balance."""


@dataclass(frozen=True)
class LedgerEvent:
    """A reported win or loss with a positive amount."""

    kind: EntryKind
    amount: int

    @property
    def delta(self) -> int:
        return self.kind.signed(self.amount)


@dataclass(frozen=True)
class Ignored:
    """Anything else, including win/loss text without a usable amount."""


ClassifiedEvent = Union[StartCommand, StopCommand, SummaryQuery, LedgerEvent, Ignored]
