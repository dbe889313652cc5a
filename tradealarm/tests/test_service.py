"""End-to-end tests for the wired service (no HTTP, scripted transport)."""

import asyncio

import pytest

from tradealarm.messages import BOT_ACTIVE_TEXT, STOPPED_MANUALLY_TEXT
from tradealarm.models.events import InboundMessage
from tradealarm.models.session import UserSession
from tradealarm.service import AlarmService

USER = "12345"


async def wait_for_cursor(service, cursor, attempts=200):
    for _ in range(attempts):
        if service.poller.cursor >= cursor:
            return
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_chat_session_end_to_end(config, store, notifier, transport_factory):
    transport = transport_factory([[
        InboundMessage(1, USER, "/start"),
        InboundMessage(2, USER, "win 30.000"),
        InboundMessage(3, USER, "loss 5000"),
        InboundMessage(4, USER, "total"),
        InboundMessage(5, USER, "/stop"),
    ]])
    service = AlarmService(config, store=store, notifier=notifier, transport=transport)

    task = asyncio.create_task(service.run(serve_http=False))
    await wait_for_cursor(service, 5)
    service.request_stop()
    await asyncio.wait_for(task, timeout=2.0)

    replies = notifier.texts_for(USER)
    assert replies[0] == BOT_ACTIVE_TEXT
    assert "Rp 30.000" in replies[1]
    assert "Rp 25.000" in replies[2]
    assert "ACCOUNT SUMMARY" in replies[3]
    assert replies[4] == STOPPED_MANUALLY_TEXT

    assert store.sum_deltas(USER) == 25000
    assert not store.get_session(USER).active
    assert service.scheduler.registered_identifiers == []


@pytest.mark.asyncio
async def test_restores_timers_for_active_sessions(config, store, notifier, transport_factory):
    store.put_session(UserSession(USER, interval_minutes=5, active=True))
    service = AlarmService(config, store=store, notifier=notifier, transport=transport_factory())

    task = asyncio.create_task(service.run(serve_http=False))
    for _ in range(100):
        if service.scheduler.is_registered(USER):
            break
        await asyncio.sleep(0.01)

    assert service.scheduler.interval_for(USER) == 5

    service.request_stop()
    await asyncio.wait_for(task, timeout=2.0)

    assert not service.scheduler.is_registered(USER)
