"""Reminder Scheduler - one recurring reminder per active session.

Owns the mapping from user identifier to its reminder task. register and
deregister are the only mutators. A fire only sends the reminder text: it
never reads or writes the ledger store, and a failed or stalled send never
ends the task.
"""

import asyncio
import logging
from typing import Optional

from .messages import REMINDER_TEXT
from .notifications.base import Notifier


class ReminderScheduler:
    """Recurring reminder timers keyed by user identifier.

    Registering an identifier that already has a timer cancels the old one
    first, so each identifier has at most one live timer and a new interval
    fully replaces the old cadence.

    Example:
        >>> scheduler = ReminderScheduler(notifier)
        >>> scheduler.register("12345", interval_minutes=5)
        >>> scheduler.is_registered("12345")
        True
        >>> scheduler.deregister("12345")
        True
    """

    def __init__(
        self,
        notifier: Notifier,
        reminder_text: str = REMINDER_TEXT,
        seconds_per_minute: float = 60.0,
        send_timeout: float = 15.0,
    ):
        """Initialize scheduler.

        Args:
            notifier: Where reminders are sent
            reminder_text: Fixed reminder message
            seconds_per_minute: Length of one interval minute (tests shrink it)
            send_timeout: Upper bound on one reminder send
        """
        self.notifier = notifier
        self.reminder_text = reminder_text
        self.seconds_per_minute = seconds_per_minute
        self.send_timeout = send_timeout
        self.logger = logging.getLogger(__name__)

        self._timers: dict[str, asyncio.Task] = {}
        self._intervals: dict[str, int] = {}

    def register(self, identifier: str, interval_minutes: int):
        """Start (or restart) the recurring reminder for identifier.

        Must be called from a running event loop.

        Args:
            identifier: User to remind
            interval_minutes: Minutes between reminders (> 0)
        """
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got: {interval_minutes}")

        replaced = self._cancel(identifier)

        task = asyncio.get_running_loop().create_task(
            self._run(identifier, interval_minutes),
            name=f"reminder-{identifier}",
        )
        self._timers[identifier] = task
        self._intervals[identifier] = interval_minutes

        self.logger.info(
            "reminder_registered",
            extra={
                "identifier": identifier,
                "interval_minutes": interval_minutes,
                "replaced": replaced,
            },
        )

    def deregister(self, identifier: str) -> bool:
        """Cancel the reminder for identifier.

        Returns:
            True if a timer was cancelled, False if none was registered
        """
        cancelled = self._cancel(identifier)
        if cancelled:
            self.logger.info("reminder_deregistered", extra={"identifier": identifier})
        return cancelled

    def is_registered(self, identifier: str) -> bool:
        task = self._timers.get(identifier)
        return task is not None and not task.done()

    def interval_for(self, identifier: str) -> Optional[int]:
        """Interval of the live timer, or None."""
        return self._intervals.get(identifier) if self.is_registered(identifier) else None

    @property
    def registered_identifiers(self) -> list[str]:
        return [identifier for identifier in self._timers if self.is_registered(identifier)]

    async def shutdown(self):
        """Cancel every timer and wait for the tasks to finish."""
        tasks = list(self._timers.values())
        self._timers.clear()
        self._intervals.clear()

        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self.logger.info("reminder_scheduler_stopped", extra={"cancelled": len(tasks)})

    def _cancel(self, identifier: str) -> bool:
        task = self._timers.pop(identifier, None)
        self._intervals.pop(identifier, None)

        if task is None:
            return False

        task.cancel()
        return True

    async def _run(self, identifier: str, interval_minutes: int):
        delay = interval_minutes * self.seconds_per_minute

        while True:
            await asyncio.sleep(delay)
            await self._fire(identifier)

    async def _fire(self, identifier: str):
        try:
            delivered = await asyncio.wait_for(
                self.notifier.send(identifier, self.reminder_text),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "reminder_send_timeout",
                extra={"identifier": identifier, "timeout_seconds": self.send_timeout},
            )
            return
        except Exception as e:
            # Notifier contract says no raise; a broken one must not kill the timer
            self.logger.error(
                "reminder_send_failed",
                extra={"identifier": identifier, "error": str(e)},
                exc_info=True,
            )
            return

        if delivered:
            self.logger.debug("reminder_sent", extra={"identifier": identifier})
        else:
            self.logger.warning("reminder_not_delivered", extra={"identifier": identifier})
