"""Inbound Poller - feeds chat messages through classifier and engine.

A single cooperative loop: fetch everything after the cursor, process the
batch in order, sleep, repeat. Only one fetch is ever in flight.

The cursor moves to a message's id as soon as the message is read from the
transport response, before it is processed. A message whose processing fails
is not retried. A transport error, or any other failure of a poll cycle,
leaves the cursor at the last message read and the loop retries after a
backoff; nothing but stop() ends it. Messages are not deduplicated by id.
"""

import asyncio
import logging
from typing import Optional

from .classifier import classify
from .engine import SessionEngine
from .exceptions import StorageError, TransportError
from .logging.log_context import correlation_scope
from .models.events import InboundMessage
from .notifications.base import Notifier
from .transport.base import InboundTransport


class InboundPoller:
    """Polls the inbound transport and dispatches replies.

    Replies are sent as background tasks so a slow notification never
    holds up the next message or the next poll.

    Example:
        >>> poller = InboundPoller(transport, engine, notifier)
        >>> task = asyncio.create_task(poller.run())
        >>> ...
        >>> poller.stop()
        >>> await task
    """

    def __init__(
        self,
        transport: InboundTransport,
        engine: SessionEngine,
        notifier: Notifier,
        poll_interval: float = 1.5,
        retry_backoff: float = 5.0,
        send_timeout: float = 15.0,
        cursor: int = 0,
    ):
        """Initialize poller.

        Args:
            transport: Source of inbound messages
            engine: Session engine that applies classified events
            notifier: Sends replies to users
            poll_interval: Seconds to sleep between poll cycles
            retry_backoff: Seconds to sleep after a transport error
            send_timeout: Upper bound on one reply send
            cursor: Id of the last message already processed
        """
        self.transport = transport
        self.engine = engine
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.retry_backoff = retry_backoff
        self.send_timeout = send_timeout
        self.logger = logging.getLogger(__name__)

        self._cursor = cursor
        self._stop_event = asyncio.Event()
        self._pending_sends: set[asyncio.Task] = set()

    @property
    def cursor(self) -> int:
        """Id of the last message read from the transport."""
        return self._cursor

    @property
    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self):
        """Ask run() to exit at its next check (interrupts its sleep)."""
        self._stop_event.set()

    async def run(self):
        """Poll until stop() is called."""
        self.logger.info("inbound_poller_started", extra={"cursor": self._cursor})

        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except TransportError as e:
                self.logger.warning(
                    "poll_failed",
                    extra={
                        "cursor": self._cursor,
                        "error": str(e),
                        "retry_in_seconds": self.retry_backoff,
                    },
                )
                await self._sleep(self.retry_backoff)
                continue
            except Exception as e:
                self.logger.error(
                    "poll_cycle_error",
                    extra={
                        "cursor": self._cursor,
                        "error": str(e),
                        "retry_in_seconds": self.retry_backoff,
                    },
                    exc_info=True,
                )
                await self._sleep(self.retry_backoff)
                continue

            await self._sleep(self.poll_interval)

        await self.drain()
        self.logger.info("inbound_poller_stopped", extra={"cursor": self._cursor})

    async def poll_once(self) -> int:
        """Fetch and process one batch.

        Returns:
            Number of messages read from the transport

        Raises:
            TransportError: Fetch failed; the cursor is unchanged
        """
        batch = await self.transport.fetch_since(self._cursor)

        for message in batch:
            if message.id <= self._cursor:
                self.logger.warning(
                    "stale_message_skipped",
                    extra={"message_id": message.id, "cursor": self._cursor},
                )
                continue

            self._cursor = message.id
            await self.process_message(message)

        return len(batch)

    async def process_message(self, message: InboundMessage) -> Optional[str]:
        """Classify one message, apply it and dispatch the reply.

        Storage and unexpected errors are logged with the message id and
        swallowed so the loop keeps going.

        Returns:
            The reply text, if any
        """
        if not message.text or not message.user_identifier:
            return None

        with correlation_scope(f"update-{message.id}"):
            event = classify(message.text)
            try:
                reply = await self.engine.handle_command(message.user_identifier, event)
            except StorageError as e:
                self.logger.error(
                    "message_processing_failed",
                    extra={
                        "message_id": message.id,
                        "identifier": message.user_identifier,
                        "error": str(e),
                    },
                )
                return None
            except Exception as e:
                self.logger.error(
                    "message_processing_error",
                    extra={
                        "message_id": message.id,
                        "identifier": message.user_identifier,
                        "error": str(e),
                    },
                    exc_info=True,
                )
                return None

            if reply:
                self._dispatch(message.user_identifier, reply)
            return reply

    async def drain(self):
        """Wait for every reply that is still being sent."""
        if self._pending_sends:
            await asyncio.gather(*list(self._pending_sends), return_exceptions=True)

    def _dispatch(self, identifier: str, text: str):
        task = asyncio.get_running_loop().create_task(self._send(identifier, text))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    async def _send(self, identifier: str, text: str):
        try:
            delivered = await asyncio.wait_for(
                self.notifier.send(identifier, text),
                timeout=self.send_timeout,
            )
            if not delivered:
                self.logger.warning("reply_not_delivered", extra={"identifier": identifier})
        except asyncio.TimeoutError:
            self.logger.warning("reply_send_timeout", extra={"identifier": identifier})
        except Exception as e:
            self.logger.error("reply_send_failed", extra={"identifier": identifier, "error": str(e)})

    async def _sleep(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
