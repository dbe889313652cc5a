"""Trading session tracker.

Records win/loss results reported over Telegram, keeps a running net P/L
against a starting balance, reminds the user to report on a fixed cadence
and stops the session automatically at a target win or stop loss.

Main components:
    - classify: chat text -> command or ledger event
    - SessionEngine: per-user session state, ledger updates, auto-stop
    - ReminderScheduler: one recurring reminder per active session
    - InboundPoller: ordered inbound message loop
    - AlarmService: wires everything together

Example usage:
    >>> from tradealarm import AlarmConfig, AlarmService
    >>> service = AlarmService(AlarmConfig.from_env())
    >>> await service.run()
"""

from .classifier import classify
from .config import AlarmConfig
from .engine import SessionEngine
from .poller import InboundPoller
from .scheduler import ReminderScheduler
from .service import AlarmService

__all__ = [
    "classify",
    "AlarmConfig",
    "SessionEngine",
    "InboundPoller",
    "ReminderScheduler",
    "AlarmService",
]

__version__ = "1.0.0"
