"""Session Engine - per-user session state machine and ledger updates.

States per user: no session, inactive, active. The engine is the only
writer of the active flag and the only producer of ledger entries. Every
operation that touches one user's session runs under that user's lock:
append entry, evaluate thresholds and possibly deactivate (one store
transaction), then drop the reminder timer once that commit succeeded.
Different users never wait on each other, and a user's lock is discarded
as soon as no task holds or awaits it.

Notifications are sent after the lock is released; a failed send is logged
and never undoes the state change.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from . import messages
from .config import AlarmConfig
from .database.store import LedgerStore
from .models.events import (
    ClassifiedEvent,
    LedgerEvent,
    StartCommand,
    StopCommand,
    SummaryQuery,
)
from .models.session import (
    EntryKind,
    LedgerEntry,
    LedgerOutcome,
    OutcomeStatus,
    SessionSummary,
    UserSession,
)
from .notifications.base import Notifier
from .scheduler import ReminderScheduler
from .validation import (
    validate_amount,
    validate_interval_minutes,
    validate_limit,
    validate_threshold,
    validate_user_identifier,
)


@dataclass
class _UserLock:
    """Lock for one identifier plus the number of tasks holding or awaiting it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionEngine:
    """Applies commands and ledger events to user sessions.

    Example:
        >>> engine = SessionEngine(store, scheduler, notifier, config)
        >>> await engine.start_session("12345", 100000, 50000, 20000, 5)
        >>> outcome = await engine.apply_ledger_event("12345", EntryKind.WIN, 30000)
        >>> outcome.net, outcome.status
        (30000, <OutcomeStatus.RECORDED: 'recorded'>)
    """

    def __init__(
        self,
        store: LedgerStore,
        scheduler: ReminderScheduler,
        notifier: Notifier,
        config: Optional[AlarmConfig] = None,
    ):
        """Initialize engine.

        Args:
            store: Ledger store holding sessions and entries
            scheduler: Reminder scheduler (timers follow the active flag)
            notifier: Used for activation / stop notices
            config: Defaults for chat-created sessions, currency, timeouts
        """
        self.store = store
        self.scheduler = scheduler
        self.notifier = notifier
        self.config = config or AlarmConfig()
        self.logger = logging.getLogger(__name__)

        # Entries exist only while some task holds or waits on the lock
        self._locks: dict[str, _UserLock] = {}

    @property
    def currency(self) -> str:
        return self.config.currency_label

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    async def start_session(
        self,
        identifier,
        start_balance,
        target_win,
        stop_loss,
        interval_minutes,
    ) -> UserSession:
        """Create or overwrite the session and activate it.

        Repeated calls fully replace the previous configuration and timer.

        Args:
            identifier: User (Telegram chat id)
            start_balance: Balance at session start, minor units (may be negative)
            target_win: Net profit that auto-stops the session (0 = disabled)
            stop_loss: Net loss magnitude that auto-stops the session (0 = disabled)
            interval_minutes: Reminder cadence

        Returns:
            The stored, active session

        Raises:
            ValidationError: Invalid input
            StorageError: Session could not be written
        """
        session = UserSession(
            identifier=validate_user_identifier(identifier),
            start_balance=validate_amount(start_balance, "start_balance"),
            target_win=validate_threshold(target_win, "target_win"),
            stop_loss=validate_threshold(stop_loss, "stop_loss"),
            interval_minutes=validate_interval_minutes(interval_minutes),
            active=True,
        )

        async with self._user_lock(session.identifier):
            self.store.put_session(session)
            self.scheduler.register(session.identifier, session.interval_minutes)

        self.logger.info("session_started", extra=session.to_dict())

        await self._notify(session.identifier, messages.session_started(session, self.currency))
        return session

    async def stop_session(
        self,
        identifier: str,
        notify: bool = True,
        text: str = messages.STOPPED_VIA_WEB_TEXT,
    ) -> bool:
        """Deactivate the session and cancel its reminder.

        Args:
            identifier: User
            notify: Send text to the user when a session was stopped
            text: Stop notice

        Returns:
            True if an active session was stopped, False for a no-op
        """
        async with self._user_lock(identifier):
            session = self.store.get_session(identifier)

            if session is None or not session.active:
                # Inactive sessions never keep a timer
                self.scheduler.deregister(identifier)
                return False

            self._deactivate(session)

        self.logger.info("session_stopped", extra={"identifier": identifier})

        if notify:
            await self._notify(identifier, text)
        return True

    async def summarize(self, identifier: str) -> Optional[SessionSummary]:
        """Start balance, net, current balance and configuration, computed now.

        Returns:
            SessionSummary, or None if the user has no session
        """
        async with self._user_lock(identifier):
            return self.store.summarize(identifier)

    async def clear_history(self, identifier: str) -> int:
        """Delete every ledger entry; session row and active flag untouched.

        Returns:
            Number of entries removed
        """
        async with self._user_lock(identifier):
            deleted = self.store.delete_entries(identifier)

        self.logger.info("history_cleared", extra={"identifier": identifier, "deleted": deleted})
        return deleted

    async def list_history(self, identifier: str, limit: Optional[int] = None) -> list[LedgerEntry]:
        """Ledger entries, most recent first."""
        limit = validate_limit(limit)
        async with self._user_lock(identifier):
            return self.store.list_entries(identifier, limit=limit)

    async def restore_timers(self) -> int:
        """Register a reminder for every session stored as active.

        Called once at service start so active sessions from a previous run
        get their timer back.

        Returns:
            Number of timers registered
        """
        restored = 0
        for session in self.store.list_active_sessions():
            async with self._user_lock(session.identifier):
                self.scheduler.register(session.identifier, session.interval_minutes)
            restored += 1

        self.logger.info("reminder_timers_restored", extra={"count": restored})
        return restored

    # ------------------------------------------------------------------
    # Chat commands
    # ------------------------------------------------------------------

    async def handle_command(self, identifier: str, event: ClassifiedEvent) -> Optional[str]:
        """Route a classified chat event.

        /start and /stop are accepted in any state; everything else needs an
        active session.

        Returns:
            Text to send back to the user, or None for nothing
        """
        if isinstance(event, StartCommand):
            return await self._activate_from_chat(identifier)

        if isinstance(event, StopCommand):
            stopped = await self.stop_session(identifier, notify=False)
            return messages.STOPPED_MANUALLY_TEXT if stopped else None

        if isinstance(event, SummaryQuery):
            result = await self.summarize(identifier)
            if result is None or not result.active:
                return None
            return messages.summary(result, self.currency)

        if isinstance(event, LedgerEvent):
            outcome = await self.apply_ledger_event(identifier, event.kind, event.amount)
            return outcome.text if outcome else None

        return None

    async def apply_ledger_event(
        self,
        identifier: str,
        kind: EntryKind,
        amount: int,
    ) -> Optional[LedgerOutcome]:
        """Record a win or loss and auto-stop on a threshold crossing.

        Ignored without any write when the session is missing or inactive,
        or amount is not positive.

        Returns:
            LedgerOutcome, or None if the event was ignored

        Raises:
            StorageError: Entry or auto-stop could not be written (nothing
                recorded, session and timer unchanged)
        """
        if amount <= 0:
            return None

        async with self._user_lock(identifier):
            session = self.store.get_session(identifier)
            if session is None or not session.active:
                return None

            outcome = self.store.record_event(identifier, kind, amount)
            if outcome is None:
                return None

            if outcome.auto_stopped:
                self.scheduler.deregister(identifier)

        entry, net, status = outcome.entry, outcome.net, outcome.status

        self.logger.info(
            "ledger_entry_recorded",
            extra={
                "identifier": identifier,
                "sequence": entry.sequence,
                "kind": kind.value,
                "delta": entry.delta,
                "net": net,
                "running_balance": entry.running_balance,
            },
        )

        if status is not OutcomeStatus.RECORDED:
            self.logger.warning(
                "session_auto_stopped",
                extra={"identifier": identifier, "reason": status.value, "net": net},
            )

        outcome.text = messages.entry_recorded(
            entry, net, status, session.interval_minutes, self.currency
        )
        return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _activate_from_chat(self, identifier: str) -> str:
        async with self._user_lock(identifier):
            session = self.store.get_session(identifier)
            if session is None:
                session = UserSession(
                    identifier=identifier,
                    interval_minutes=self.config.default_interval_minutes,
                )

            session.active = True
            self.store.put_session(session)
            self.scheduler.register(identifier, session.interval_minutes)

        self.logger.info("session_activated_from_chat", extra={"identifier": identifier})
        return messages.BOT_ACTIVE_TEXT

    @asynccontextmanager
    async def _user_lock(self, identifier: str) -> AsyncIterator[None]:
        entry = self._locks.get(identifier)
        if entry is None:
            entry = self._locks[identifier] = _UserLock()
        entry.users += 1

        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[identifier]

    def _deactivate(self, session: UserSession):
        """Flip to inactive and drop the timer. Caller holds the user's lock."""
        session.active = False
        self.store.put_session(session)
        self.scheduler.deregister(session.identifier)

    async def _notify(self, identifier: str, text: str) -> bool:
        try:
            return await asyncio.wait_for(
                self.notifier.send(identifier, text),
                timeout=self.config.send_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.logger.warning("notification_timeout", extra={"identifier": identifier})
        except Exception as e:
            self.logger.error(
                "notification_failed",
                extra={"identifier": identifier, "error": str(e)},
            )
        return False
