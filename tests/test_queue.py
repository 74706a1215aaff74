# tests/test_queue.py

import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from taskmanagement.reminders import queue as queue_module
from taskmanagement.reminders.dispatcher import DispatchOutcome, NotificationDispatcher
from taskmanagement.reminders.queue import QueueUnavailableError, ReminderQueue
from taskmanagement.reminders.schemas import ReminderMessage


def _memory_queue(name: str, queue_name: str) -> ReminderQueue:
    return ReminderQueue(
        url="memory://",
        queue_name=queue_name,
        prefetch_count=1,
        reconnect_initial_delay=0.01,
        reconnect_max_delay=0.05,
        name=name,
    )


@pytest.fixture()
def queue_name() -> str:
    # kombu's memory transport shares queues process-wide
    return f"TaskReminders-{uuid.uuid4().hex}"


class RefusingConnection:
    attempts = 0

    def __init__(self, *args, **kwargs):
        pass

    def connect(self):
        RefusingConnection.attempts += 1
        raise ConnectionRefusedError("connection refused")

    def release(self):
        pass

    def as_uri(self):
        return "amqp://guest:**@localhost:5672//"


@pytest.fixture()
def refusing_broker(monkeypatch):
    RefusingConnection.attempts = 0
    monkeypatch.setattr(queue_module, "Connection", RefusingConnection)
    return RefusingConnection


@pytest.mark.asyncio
async def test_publish_then_consume_and_ack(queue_name) -> None:
    publisher = _memory_queue("publisher", queue_name)
    consumer = _memory_queue("consumer", queue_name)
    try:
        assert await publisher.connect()
        assert await consumer.connect()

        assert await publisher.publish('{"taskId": 1}')
        assert await publisher.publish('{"taskId": 2}')

        first = await consumer.get(timeout=1.0)
        assert first is not None
        assert first.body == b'{"taskId": 1}'
        await first.ack()

        second = await consumer.get(timeout=1.0)
        assert second is not None
        assert second.body == b'{"taskId": 2}'
        await second.ack()

        assert await consumer.get(timeout=0.1) is None
    finally:
        await publisher.close()
        await consumer.close()


@pytest.mark.asyncio
async def test_disabled_client_is_inert(queue_name) -> None:
    client = _memory_queue("idle", queue_name)
    try:
        assert not client.enabled
        assert await client.publish("{}") is False
        assert await client.get(timeout=0.01) is None
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_unreachable_broker_leaves_client_disabled(refusing_broker, queue_name) -> None:
    client = _memory_queue("publisher", queue_name)
    try:
        assert await client.connect() is False
        assert not client.enabled
        assert await client.publish("{}") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_reconnect_backoff_stops_on_shutdown(refusing_broker, queue_name) -> None:
    client = _memory_queue("consumer", queue_name)
    stop_event = asyncio.Event()
    try:
        task = asyncio.create_task(client.connect_with_backoff(stop_event))
        await asyncio.sleep(0.2)
        stop_event.set()

        assert await asyncio.wait_for(task, timeout=5) is False
        assert refusing_broker.attempts >= 2
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_broker_loss_during_publish(queue_name) -> None:
    client = _memory_queue("publisher", queue_name)
    try:
        assert await client.connect()

        def broken_publish(*args, **kwargs):
            raise ConnectionResetError("connection reset by peer")

        client._producer.publish = broken_publish

        with pytest.raises(QueueUnavailableError):
            await client.publish("{}")
        assert not client.enabled
        assert await client.publish("{}") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(queue_name) -> None:
    client = _memory_queue("publisher", queue_name)
    assert await client.connect()

    await client.close()
    await client.close()

    assert not client.enabled


@pytest.mark.asyncio
async def test_poison_is_dropped_and_failed_reminder_comes_back(queue_name, registry, transport) -> None:
    def broken_session():
        raise RuntimeError("database is down")

    publisher = _memory_queue("publisher", queue_name)
    consumer = _memory_queue("consumer", queue_name)
    dispatcher = NotificationDispatcher(consumer, registry, transport, session_factory=broken_session)
    reminder = ReminderMessage(
        task_id=1,
        user_id=1,
        task_title="Pay rent",
        due_date=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
        timestamp=datetime(2026, 3, 2, 9, 0, 1, tzinfo=timezone.utc),
    ).to_json()
    try:
        assert await publisher.connect()
        assert await consumer.connect()
        assert await publisher.publish("garbage")
        assert await publisher.publish(reminder)

        assert await dispatcher.handle(await consumer.get(timeout=1.0)) == DispatchOutcome.POISON
        assert await dispatcher.handle(await consumer.get(timeout=1.0)) == DispatchOutcome.REQUEUED

        again = await consumer.get(timeout=1.0)
        assert again is not None
        assert again.body == reminder.encode("utf-8")
        await again.ack()

        assert await consumer.get(timeout=0.1) is None
    finally:
        await publisher.close()
        await consumer.close()
