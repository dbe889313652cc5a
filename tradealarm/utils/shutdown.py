"""Graceful Shutdown Handler - clean stop on SIGTERM/SIGINT.

Docker stop sends SIGTERM followed by SIGKILL after a grace period. The
handler turns the first signal into a stop request for the service (poller
loop exits, reminder timers are cancelled, HTTP server stops). A second
signal while shutdown is in progress exits immediately.
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Callable, Optional


class GracefulShutdownHandler:
    """Routes SIGTERM/SIGINT to a stop callback.

    Example:
        >>> handler = GracefulShutdownHandler(on_shutdown=service.request_stop)
        >>> handler.register(asyncio.get_running_loop())
    """

    SIGNALS = (signal.SIGTERM, signal.SIGINT)

    def __init__(self, on_shutdown: Callable[[], None]):
        """Initialize graceful shutdown handler.

        Args:
            on_shutdown: Called once, from the event loop, on the first signal
        """
        self.on_shutdown = on_shutdown
        self.logger = logging.getLogger(__name__)

        self._shutdown_initiated = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def shutdown_initiated(self) -> bool:
        return self._shutdown_initiated

    def register(self, loop: asyncio.AbstractEventLoop):
        """Register signal handlers on the running loop."""
        self._loop = loop

        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(self._signal_handler, signum))

        self.logger.info(
            "graceful_shutdown_handler_registered",
            extra={"signals": [sig.name for sig in self.SIGNALS]},
        )

    def unregister(self):
        """Remove the handlers registered on the loop."""
        if self._loop is None:
            return

        for sig in self.SIGNALS:
            try:
                self._loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL)

        self._loop = None

    def _signal_handler(self, signum):
        signal_name = signal.Signals(signum).name
        self.logger.warning(
            "shutdown_signal_received",
            extra={
                "signal": signal_name,
                "signal_number": int(signum),
                "timestamp": datetime.now().isoformat(),
            },
        )

        if self._shutdown_initiated:
            self.logger.warning("Shutdown already in progress, forcing exit...")
            sys.exit(1)

        self._shutdown_initiated = True
        self.on_shutdown()
