"""
Shared pytest fixtures for tradealarm testing.
Provides an in-memory ledger store, recording notifier, scripted transport
and a fully wired session engine on a compressed reminder clock.
"""
import asyncio

import pytest
import pytest_asyncio

from tradealarm.config import AlarmConfig
from tradealarm.database.connection import create_db_engine, create_session_factory, init_db
from tradealarm.database.repositories import SessionRepository
from tradealarm.engine import SessionEngine
from tradealarm.exceptions import TransportError
from tradealarm.notifications.base import Notifier
from tradealarm.scheduler import ReminderScheduler
from tradealarm.transport.base import InboundTransport

# One reminder "minute" lasts this many real seconds in tests
TEST_MINUTE = 0.02


class RecordingNotifier(Notifier):
    """Notifier that keeps every message instead of sending it."""

    def __init__(self, fail: bool = False, raise_error: bool = False, delay: float = 0.0):
        self.sent = []
        self.fail = fail
        self.raise_error = raise_error
        self.delay = delay

    async def send(self, user_identifier: str, text: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_error:
            raise RuntimeError("notifier exploded")
        self.sent.append((user_identifier, text))
        return not self.fail

    def texts_for(self, user_identifier: str):
        return [text for identifier, text in self.sent if identifier == user_identifier]


class ScriptedTransport(InboundTransport):
    """Transport that replays scripted batches (or raises scripted errors).

    Once the script is exhausted every fetch returns an empty batch.
    """

    def __init__(self, steps=None):
        self.steps = list(steps or [])
        self.cursors = []

    async def fetch_since(self, cursor: int):
        self.cursors.append(cursor)
        if not self.steps:
            return []
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return [message for message in step if message.id > cursor]


@pytest.fixture
def config():
    """Config with test-friendly timings and no Telegram token."""
    return AlarmConfig(
        telegram_bot_token="",
        database_url="sqlite://",
        poll_interval_seconds=0.0,
        retry_backoff_seconds=0.01,
        send_timeout_seconds=1.0,
    )


@pytest.fixture
def store():
    """Fresh in-memory SQLite ledger store."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield SessionRepository(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def scheduler(notifier):
    """Reminder scheduler on the compressed clock; all timers cancelled after the test."""
    scheduler = ReminderScheduler(notifier, seconds_per_minute=TEST_MINUTE, send_timeout=1.0)
    yield scheduler
    await scheduler.shutdown()


@pytest_asyncio.fixture
async def engine(store, scheduler, notifier, config):
    return SessionEngine(store, scheduler, notifier, config)


@pytest.fixture
def transport_factory():
    """
    Factory fixture for scripted transports.

    Usage:
        def test_example(transport_factory):
            transport = transport_factory([[msg1, msg2], TransportError("down"), [msg3]])
    """
    def _create(steps=None):
        return ScriptedTransport(steps)

    return _create


@pytest.fixture
def transport_error():
    return TransportError("connection reset")


@pytest.fixture
def notifier_factory():
    """
    Factory fixture for notifiers with failure modes.

    Usage:
        def test_example(notifier_factory):
            failing = notifier_factory(fail=True)
            exploding = notifier_factory(raise_error=True)
            slow = notifier_factory(delay=5.0)
    """
    def _create(**kwargs):
        return RecordingNotifier(**kwargs)

    return _create


@pytest.fixture
def reminder_minute():
    """Real seconds per reminder minute used by the scheduler fixture."""
    return TEST_MINUTE
