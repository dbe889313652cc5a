"""Tests for the inbound poller."""

import asyncio
from unittest.mock import patch

import pytest

from tradealarm import messages
from tradealarm.exceptions import StorageError, TransportError
from tradealarm.models.events import InboundMessage
from tradealarm.poller import InboundPoller

USER = "12345"


def message(update_id, text, user=USER):
    return InboundMessage(id=update_id, user_identifier=user, text=text)


@pytest.fixture
def poller_factory(engine, notifier, config):
    """
    Factory fixture for pollers over a scripted transport.

    Usage:
        def test_example(poller_factory, transport_factory):
            poller = poller_factory(transport_factory([[msg1]]))
    """
    def _create(transport, **kwargs):
        kwargs.setdefault("poll_interval", config.poll_interval_seconds)
        kwargs.setdefault("retry_backoff", config.retry_backoff_seconds)
        kwargs.setdefault("send_timeout", config.send_timeout_seconds)
        return InboundPoller(transport, engine, notifier, **kwargs)

    return _create


class TestPollOnce:

    @pytest.mark.asyncio
    async def test_processes_batch_in_order(self, poller_factory, transport_factory, store, notifier):
        transport = transport_factory([[
            message(1, "/start"),
            message(2, "win 30000"),
            message(3, "loss 10000"),
            message(4, "total"),
        ]])
        poller = poller_factory(transport)

        count = await poller.poll_once()
        await poller.drain()

        assert count == 4
        assert poller.cursor == 4
        assert store.sum_deltas(USER) == 20000
        replies = notifier.texts_for(USER)
        assert replies[0] == messages.BOT_ACTIVE_TEXT
        assert "ACCOUNT SUMMARY" in replies[-1]
        assert len(replies) == 4

    @pytest.mark.asyncio
    async def test_fetches_after_cursor(self, poller_factory, transport_factory):
        transport = transport_factory([[message(7, "hello")], []])
        poller = poller_factory(transport, cursor=6)

        await poller.poll_once()
        await poller.poll_once()

        assert transport.cursors == [6, 7]

    @pytest.mark.asyncio
    async def test_transport_error_leaves_cursor(self, poller_factory, transport_factory, transport_error):
        transport = transport_factory([[message(1, "hello")], transport_error])
        poller = poller_factory(transport)

        await poller.poll_once()
        with pytest.raises(TransportError):
            await poller.poll_once()

        assert poller.cursor == 1

    @pytest.mark.asyncio
    async def test_non_text_updates_advance_cursor(self, poller_factory, transport_factory, store):
        transport = transport_factory([[
            message(1, None),
            message(2, "win 5", user=None),
            message(3, ""),
        ]])
        poller = poller_factory(transport)

        await poller.poll_once()

        assert poller.cursor == 3
        assert store.get_session(USER) is None

    @pytest.mark.asyncio
    async def test_stale_messages_skipped(self, poller_factory, store):
        class ReplayingTransport:
            async def fetch_since(self, cursor):
                return [message(3, "/start"), message(2, "/start"), message(5, "hello")]

        poller = poller_factory(ReplayingTransport())

        await poller.poll_once()

        assert poller.cursor == 5

    @pytest.mark.asyncio
    async def test_storage_error_does_not_stop_batch(self, poller_factory, transport_factory, engine, store):
        await engine.start_session(USER, 0, 0, 0, 5)
        transport = transport_factory([[message(1, "win 100"), message(2, "win 200")]])
        poller = poller_factory(transport)

        original = store.record_event
        calls = []

        def flaky_record(identifier, kind, amount):
            calls.append(amount)
            if len(calls) == 1:
                raise StorageError("database locked", operation="record_event")
            return original(identifier, kind, amount)

        with patch.object(store, "record_event", side_effect=flaky_record):
            await poller.poll_once()

        assert poller.cursor == 2
        assert calls == [100, 200]
        assert store.sum_deltas(USER) == 200

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, poller_factory, transport_factory, engine):
        transport = transport_factory([[message(1, "/start"), message(2, "/stop")]])
        poller = poller_factory(transport)

        with patch.object(engine, "_activate_from_chat", side_effect=RuntimeError("boom")):
            await poller.poll_once()

        assert poller.cursor == 2


class TestProcessMessage:

    @pytest.mark.asyncio
    async def test_ignored_text_has_no_reply(self, poller_factory, transport_factory, notifier):
        poller = poller_factory(transport_factory())

        reply = await poller.process_message(message(1, "good morning"))
        await poller.drain()

        assert reply is None
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_reply_goes_to_sender(self, poller_factory, transport_factory, notifier):
        poller = poller_factory(transport_factory())

        reply = await poller.process_message(message(1, "/start", user="-100200"))
        await poller.drain()

        assert reply == messages.BOT_ACTIVE_TEXT
        assert notifier.sent == [("-100200", messages.BOT_ACTIVE_TEXT)]

    @pytest.mark.asyncio
    async def test_slow_reply_does_not_block(self, engine, transport_factory, notifier_factory):
        slow = notifier_factory(delay=10.0)
        poller = InboundPoller(transport_factory(), engine, slow, send_timeout=0.05)

        await asyncio.wait_for(poller.process_message(message(1, "/start")), timeout=1.0)
        await asyncio.wait_for(poller.drain(), timeout=1.0)

        assert slow.sent == []


class TestRun:

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, poller_factory, transport_factory, store, notifier):
        transport = transport_factory([
            [message(1, "/start")],
            [message(2, "win 100")],
        ])
        poller = poller_factory(transport, poll_interval=0.005)

        task = asyncio.create_task(poller.run())
        for _ in range(100):
            if poller.cursor == 2 and store.count_entries(USER) == 1:
                break
            await asyncio.sleep(0.01)
        poller.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert poller.is_stopping
        assert poller.cursor == 2
        assert store.sum_deltas(USER) == 100
        replies = [text for text in notifier.texts_for(USER) if text != messages.REMINDER_TEXT]
        assert len(replies) == 2

    @pytest.mark.asyncio
    async def test_run_retries_after_transport_error(self, poller_factory, transport_factory, transport_error):
        transport = transport_factory([
            transport_error,
            transport_error,
            [message(1, "hello")],
        ])
        poller = poller_factory(transport, poll_interval=0.005)

        task = asyncio.create_task(poller.run())
        for _ in range(100):
            if poller.cursor == 1:
                break
            await asyncio.sleep(0.01)
        poller.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert transport.cursors[:3] == [0, 0, 0]
        assert poller.cursor == 1

    @pytest.mark.asyncio
    async def test_stop_interrupts_backoff(self, poller_factory, transport_factory, transport_error):
        transport = transport_factory([transport_error])
        poller = poller_factory(transport, retry_backoff=60.0)

        task = asyncio.create_task(poller.run())
        await asyncio.sleep(0.05)
        poller.stop()

        await asyncio.wait_for(task, timeout=1.0)
        assert transport.cursors == [0]

    @pytest.mark.asyncio
    async def test_run_survives_unexpected_fetch_error(self, poller_factory, transport_factory, store):
        """Test a decode error that escapes the transport does not end the loop."""
        transport = transport_factory([
            ValueError("Expecting value: line 1 column 1 (char 0)"),
            [message(1, "/start")],
            [message(2, "loss 50")],
        ])
        poller = poller_factory(transport, poll_interval=0.005, retry_backoff=0.005)

        task = asyncio.create_task(poller.run())
        for _ in range(100):
            if poller.cursor == 2 and store.count_entries(USER) == 1:
                break
            await asyncio.sleep(0.01)
        poller.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert not task.cancelled()
        assert transport.cursors[:2] == [0, 0]
        assert poller.cursor == 2
        assert store.sum_deltas(USER) == -50

    @pytest.mark.asyncio
    async def test_run_survives_bad_message_shape(self, poller_factory, transport_factory):
        transport = transport_factory([
            AttributeError("'str' object has no attribute 'get'"),
            [message(1, "hello")],
        ])
        poller = poller_factory(transport, poll_interval=0.005, retry_backoff=0.005)

        task = asyncio.create_task(poller.run())
        for _ in range(100):
            if poller.cursor == 1:
                break
            await asyncio.sleep(0.01)
        poller.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert len(transport.cursors) > 1
        assert poller.cursor == 1
