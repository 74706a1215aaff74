# tests/test_pipeline.py

import asyncio
import uuid

import pytest

from taskmanagement.reminders.config import ReminderSettings
from taskmanagement.reminders.pipeline import ReminderPipeline
from taskmanagement.reminders.schemas import NOTIFICATION_EVENT


def _settings(**overrides) -> ReminderSettings:
    fields = dict(
        RABBITMQ_URL="memory://",
        QUEUE_NAME=f"TaskReminders-{uuid.uuid4().hex}",
        SCAN_INTERVAL_SECONDS=60,
        CONSUMER_POLL_SECONDS=0.05,
        RECONNECT_INITIAL_DELAY_SECONDS=0.01,
        RECONNECT_MAX_DELAY_SECONDS=0.05,
        RUN_SCANNER=True,
        RUN_DISPATCHER=True,
    )
    fields.update(overrides)
    return ReminderSettings(**fields)


def test_dispatcher_requires_registry_and_transport() -> None:
    with pytest.raises(ValueError):
        ReminderPipeline(settings=_settings(), run_scanner=True, run_dispatcher=True)


def test_scanner_only_pipeline_has_no_consumer() -> None:
    pipeline = ReminderPipeline(settings=_settings(), run_scanner=True, run_dispatcher=False)

    assert pipeline.dispatcher is None
    assert pipeline.consumer_queue is None
    status = pipeline.status()
    assert status["scanner_running"] is False
    assert status["queue_name"] == pipeline.settings.QUEUE_NAME
    assert status["eligibility_policy"] == "due_date"


@pytest.mark.asyncio
async def test_overdue_task_reaches_owner_end_to_end(session_factory, make_task, task_updated_at, registry, transport) -> None:
    task_id = make_task(owner_id=4, title="File taxes")
    registry.on_connect(4, "conn-4")
    pipeline = ReminderPipeline(
        registry=registry,
        transport=transport,
        settings=_settings(),
        session_factory=session_factory,
    )

    await pipeline.start()
    try:
        for _ in range(300):
            if transport.sent and task_updated_at(task_id) is not None:
                break
            await asyncio.sleep(0.02)
        status = pipeline.status()
    finally:
        await pipeline.stop(timeout=5)

    assert status["publisher_connected"] and status["consumer_connected"]
    assert len(transport.sent) == 1
    connection_id, event, payload = transport.sent[0]
    assert connection_id == "conn-4"
    assert event == NOTIFICATION_EVENT
    assert payload["taskId"] == task_id
    assert payload["message"] == "Task 'File taxes' is overdue!"
    assert task_updated_at(task_id) is not None
