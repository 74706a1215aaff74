# tests/test_hub.py

import asyncio

import pytest

from taskmanagement.websocket import NotificationHub

from .fakes import FakeWebSocket


@pytest.fixture()
def hub(registry) -> NotificationHub:
    return NotificationHub(registry)


@pytest.mark.asyncio
async def test_connect_registers_connection(hub, registry) -> None:
    ws = FakeWebSocket()

    connection_id = await hub.connect(ws, 5)

    assert ws.accepted
    assert registry.lookup(5) == {connection_id}


@pytest.mark.asyncio
async def test_send_frames_event_and_payload(hub) -> None:
    ws = FakeWebSocket()
    connection_id = await hub.connect(ws, 5)

    sent = await hub.send_to_connections([connection_id], "ReceiveTaskNotification", {"taskId": 1})

    assert sent == 1
    assert ws.frames == [{"event": "ReceiveTaskNotification", "data": {"taskId": 1}}]


@pytest.mark.asyncio
async def test_send_reaches_only_the_given_connections(hub) -> None:
    mine, other = FakeWebSocket(), FakeWebSocket()
    mine_id = await hub.connect(mine, 1)
    await hub.connect(other, 2)

    await hub.send_to_connections([mine_id], "ReceiveTaskNotification", {})

    assert len(mine.frames) == 1
    assert other.frames == []


@pytest.mark.asyncio
async def test_failed_socket_is_dropped(hub, registry) -> None:
    healthy, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    healthy_id = await hub.connect(healthy, 1)
    broken_id = await hub.connect(broken, 1)

    sent = await hub.send_to_connections([healthy_id, broken_id], "ReceiveTaskNotification", {})

    assert sent == 1
    assert registry.lookup(1) == {healthy_id}
    assert broken_id not in hub.active_connections


@pytest.mark.asyncio
async def test_unknown_connection_is_skipped(hub) -> None:
    assert await hub.send_to_connections(["gone"], "ReceiveTaskNotification", {}) == 0


@pytest.mark.asyncio
async def test_disconnect_clears_registry(hub, registry) -> None:
    connection_id = await hub.connect(FakeWebSocket(), 5)

    hub.disconnect(connection_id, 5)
    hub.disconnect(connection_id, 5)

    assert registry.lookup(5) == frozenset()
    assert hub.active_connections == {}


@pytest.mark.asyncio
async def test_stalled_socket_times_out_and_is_dropped(registry) -> None:
    hub = NotificationHub(registry, send_timeout=0.05)
    healthy, stalled = FakeWebSocket(), FakeWebSocket(hang=True)
    healthy_id = await hub.connect(healthy, 1)
    stalled_id = await hub.connect(stalled, 1)

    sent = await asyncio.wait_for(
        hub.send_to_connections([stalled_id, healthy_id], "ReceiveTaskNotification", {}),
        timeout=5,
    )

    assert sent == 1
    assert len(healthy.frames) == 1
    assert registry.lookup(1) == {healthy_id}
