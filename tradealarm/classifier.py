"""Event Classifier - turns raw chat text into a typed command or ledger event.

Pure function of the message text: no store access, no logging, no
notifications. Win/loss text without a usable amount comes back as
Ignored so the caller does nothing at all.
"""

from typing import Optional

from .models.events import (
    ClassifiedEvent,
    Ignored,
    LedgerEvent,
    StartCommand,
    StopCommand,
    SummaryQuery,
)
from .models.session import EntryKind

START_COMMAND = "/start"
STOP_COMMAND = "/stop"
SUMMARY_KEYWORDS = frozenset({"total", "/total"})

WIN_MARKERS = ("win",)
LOSS_MARKERS = ("loss", "lose")


def extract_amount(text: str) -> int:
    """Concatenate every digit in text, in order, into one integer.

    Separators are dropped along with everything else, so "win 30.000" and
    "win 30,000" both give 30000. No digits gives 0.

    Examples:
        >>> extract_amount("Win 25000")
        25000
        >>> extract_amount("loss 1.500 (2nd trade)")
        15002
        >>> extract_amount("win big")
        0
    """
    digits = "".join(ch for ch in text if "0" <= ch <= "9")
    return int(digits) if digits else 0


def detect_kind(text: str) -> Optional[EntryKind]:
    """Return WIN if text mentions a win, else LOSS for loss/lose, else None.

    Win is checked first, so text containing both is a WIN.
    """
    if any(marker in text for marker in WIN_MARKERS):
        return EntryKind.WIN
    if any(marker in text for marker in LOSS_MARKERS):
        return EntryKind.LOSS
    return None


def classify(text: Optional[str]) -> ClassifiedEvent:
    """Classify one inbound message.

    Args:
        text: Raw message text (None for non-text updates)

    Returns:
        StartCommand, StopCommand, SummaryQuery, LedgerEvent or Ignored

    Examples:
        >>> classify("  /START ")
        StartCommand()
        >>> classify("Win 30000")
        LedgerEvent(kind=<EntryKind.WIN: 'WIN'>, amount=30000)
        >>> classify("lose")
        Ignored()
    """
    if not text:
        return Ignored()

    normalized = text.strip().lower()

    if normalized == START_COMMAND:
        return StartCommand()
    if normalized == STOP_COMMAND:
        return StopCommand()
    if normalized in SUMMARY_KEYWORDS:
        return SummaryQuery()

    kind = detect_kind(normalized)
    if kind is None:
        return Ignored()

    amount = extract_amount(normalized)
    if amount <= 0:
        return Ignored()

    return LedgerEvent(kind=kind, amount=amount)
