"""Daemon wiring: source -> scheduler -> coordinator -> store."""

from __future__ import annotations

import asyncio

import pytest

from bt_intercomm.daemon import IntercommDaemon
from bt_intercomm.errors import ConfigError, SubscriptionError
from bt_intercomm.models.tasks import TaskState
from bt_intercomm.registration.coordinator import (
    REGISTERED_BRANDED_TOKEN,
    UTILITY_TOKEN_REGISTERED,
    RegistrationCoordinator,
)
from bt_intercomm.scheduler.queue import ConfirmationDelayScheduler
from bt_intercomm.storage.sqlite import SQLiteStateStore

from tests.conftest import (
    VALUE_REGISTRAR_KEY,
    make_settings,
    make_test_config,
)
from tests.factories import make_event, make_success, make_success_without_event, make_uuid
from tests.mocks import MockEventSource, MockStepExecutor


async def test_event_registered_after_confirmations(daemon, mock_source, store,
                                                    utility_executor, value_executor):
    mock_source.enqueue(make_event(block_number=100, uuid=make_uuid(1)))
    assert await daemon.poll_events_once() == 1
    assert await store.get_cursor() == 100

    mock_source.head = 105
    assert await daemon.advance_block_once() == 0
    assert utility_executor.calls == []

    mock_source.head = 106
    assert await daemon.advance_block_once() == 1
    await daemon.scheduler.drain()

    assert len(utility_executor.calls) == 1
    assert len(value_executor.calls) == 1
    [attempt] = await store.get_attempts()
    assert attempt.state == "done"
    assert attempt.uuid == make_uuid(1)


async def test_redelivered_event_registers_once(daemon, mock_source, utility_executor):
    event = make_event(block_number=100, uuid=make_uuid(2))
    mock_source.enqueue(event)
    await daemon.poll_events_once()
    mock_source.enqueue(event)
    assert await daemon.poll_events_once() == 0

    mock_source.head = 110
    await daemon.advance_block_once()
    await daemon.scheduler.drain()
    assert len(utility_executor.calls) == 1


async def test_step1_failure_discards_task(daemon, mock_source, store, value_executor, settings):
    daemon.coordinator = RegistrationCoordinator(
        MockStepExecutor(make_success_without_event()), value_executor, settings, store=store,
    )
    daemon.scheduler.set_processor(daemon.coordinator.process)

    mock_source.enqueue(make_event(block_number=100, uuid=make_uuid(3)))
    await daemon.poll_events_once()
    mock_source.head = 106
    await daemon.advance_block_once()
    await daemon.scheduler.drain()

    assert value_executor.calls == []
    [task] = daemon.scheduler.get_tasks()
    assert task.state == TaskState.DISCARDED
    assert REGISTERED_BRANDED_TOKEN in task.error

    [stored] = await store.get_tasks(["discarded"])
    assert stored.event.uuid == make_uuid(3)
    [attempt] = await store.get_attempts()
    assert attempt.state == "failed_at_step1"


async def test_subscription_error_does_not_stop_loop(daemon, store):
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise SubscriptionError("connection dropped")
        await daemon.stop()

    daemon._running = True
    await daemon._run_loop("event", flaky)

    assert calls == 2
    activity = await store.get_recent_activity(10)
    assert any(a.event_type == "subscription_error" for a in activity)


async def test_unexpected_error_does_not_stop_loop(daemon):
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise RuntimeError("bad state")
        await daemon.stop()

    daemon._running = True
    await daemon._run_loop("block", broken)
    assert calls == 3


def test_mismatched_signer_key_rejected():
    cfg = make_test_config()
    cfg.utility.registrar_key = VALUE_REGISTRAR_KEY
    with pytest.raises(ConfigError, match="utility registrar key"):
        IntercommDaemon(cfg)


async def test_start_runs_until_stopped_and_persists(tmp_path):
    db_path = str(tmp_path / "state.db")
    cfg = make_test_config(db_path=db_path)
    d = IntercommDaemon(cfg)

    source = MockEventSource(head=106)
    source.enqueue(make_event(block_number=100, uuid=make_uuid(4)))
    utility = MockStepExecutor(make_success(REGISTERED_BRANDED_TOKEN))
    value = MockStepExecutor(make_success(UTILITY_TOKEN_REGISTERED))
    d.source = source
    d.coordinator = RegistrationCoordinator(utility, value, make_settings(), store=d.store)
    d.scheduler = ConfirmationDelayScheduler(confirmation_depth=6, store=d.store)
    d.scheduler.set_processor(d.coordinator.process)

    runner = asyncio.create_task(d.start())
    for _ in range(500):
        if value.calls:
            break
        await asyncio.sleep(0.01)
    await d.stop()
    await asyncio.wait_for(runner, timeout=5)

    assert len(value.calls) == 1

    reopened = SQLiteStateStore(db_path)
    await reopened.initialize()
    try:
        [attempt] = await reopened.get_attempts()
        assert attempt.state == "done"
        assert await reopened.get_cursor() == 106
        events = [a.event_type for a in await reopened.get_recent_activity(20)]
        assert events[0] == "daemon_stopped"
        assert "daemon_started" in events
    finally:
        await reopened.close()
