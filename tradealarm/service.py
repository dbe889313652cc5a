"""Alarm service - wires store, notifier, transport, engine, scheduler,
poller and HTTP control server into one running process.
"""

import asyncio
import logging
from typing import Optional

from .config import AlarmConfig
from .database.connection import create_db_engine, create_session_factory, init_db
from .database.repositories import SessionRepository
from .database.store import LedgerStore
from .engine import SessionEngine
from .notifications.base import Notifier
from .notifications.telegram import TelegramNotifier
from .poller import InboundPoller
from .scheduler import ReminderScheduler
from .transport.base import InboundTransport
from .transport.telegram import TelegramTransport
from .web.server import ControlServer


class AlarmService:
    """The running tracker.

    Collaborators default to the production implementations built from
    config; tests pass their own.

    Example:
        >>> service = AlarmService(AlarmConfig.from_env())
        >>> await service.run()  # until request_stop()
    """

    def __init__(
        self,
        config: AlarmConfig,
        store: Optional[LedgerStore] = None,
        notifier: Optional[Notifier] = None,
        transport: Optional[InboundTransport] = None,
    ):
        self.config = config
        self.logger = logging.getLogger(__name__)

        if store is None:
            db_engine = create_db_engine(
                config.database_url,
                connect_timeout=config.db_connect_timeout_seconds,
                statement_timeout_ms=config.db_statement_timeout_ms,
            )
            init_db(db_engine)
            store = SessionRepository(create_session_factory(db_engine))

        self.store = store
        self.notifier = notifier or TelegramNotifier(config)
        self.transport = transport or TelegramTransport(config)

        self.scheduler = ReminderScheduler(
            self.notifier,
            send_timeout=config.send_timeout_seconds,
        )
        self.engine = SessionEngine(self.store, self.scheduler, self.notifier, config)
        self.poller = InboundPoller(
            self.transport,
            self.engine,
            self.notifier,
            poll_interval=config.poll_interval_seconds,
            retry_backoff=config.retry_backoff_seconds,
            send_timeout=config.send_timeout_seconds,
        )
        self.server = ControlServer(self.engine, self.scheduler, host=config.host, port=config.port)

        self._stop_event = asyncio.Event()
        self._poller_task: Optional[asyncio.Task] = None

    def request_stop(self):
        """Ask run() to shut everything down."""
        self._stop_event.set()

    async def run(self, serve_http: bool = True):
        """Run until request_stop() or until the poller/server exits.

        Args:
            serve_http: Start the HTTP control server
        """
        restored = await self.engine.restore_timers()
        self.logger.info(
            "alarm_service_started",
            extra={"restored_timers": restored, "serve_http": serve_http},
        )

        self._poller_task = asyncio.create_task(self.poller.run(), name="inbound-poller")
        waiters = {self._poller_task, asyncio.create_task(self._stop_event.wait(), name="stop-wait")}

        if serve_http:
            await self.server.start()
            waiters.add(self.server.server_task)

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if waiter is not self._poller_task and waiter is not self.server.server_task:
                    waiter.cancel()
            await self.shutdown()

    async def shutdown(self):
        """Stop the poller, the HTTP server and every reminder timer."""
        self.poller.stop()
        if self._poller_task is not None:
            try:
                await self._poller_task
            except Exception as e:
                self.logger.error("poller_exit_error", extra={"error": str(e)}, exc_info=True)
            self._poller_task = None

        await self.server.stop()
        await self.scheduler.shutdown()

        self.logger.info("alarm_service_stopped", extra={"cursor": self.poller.cursor})
