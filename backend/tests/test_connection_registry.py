from __future__ import annotations

import asyncio
import logging

import pytest
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.monitoring import realtime_connections, realtime_events_total, realtime_send_failures_total
from helpers import DummyWebSocket
from huddle.realtime import ConnectionRegistry, ConnectionState, Event


@pytest.mark.anyio("asyncio")
async def test_broadcast_delivers_one_identical_frame_to_every_open_connection() -> None:
    registry = ConnectionRegistry()
    sockets = [DummyWebSocket() for _ in range(3)]
    for socket in sockets:
        await registry.register_connection(socket)

    delivered = await registry.broadcast(Event.new_message("chan", {"id": "m1"}))

    assert delivered == 3
    frames = [socket.sent for socket in sockets]
    assert all(len(sent) == 1 for sent in frames)
    assert len({sent[0] for sent in frames}) == 1
    assert realtime_events_total.value("events", "out", "new-message") == 1


@pytest.mark.anyio("asyncio")
async def test_failing_peer_is_skipped_logged_and_deregistered(realtime_caplog) -> None:
    registry = ConnectionRegistry()
    healthy_before = DummyWebSocket()
    broken = DummyWebSocket(fail_with=RuntimeError("socket went away"))
    healthy_after = DummyWebSocket()
    await registry.register_connection(healthy_before)
    broken_id = await registry.register_connection(broken)
    await registry.register_connection(healthy_after)

    with realtime_caplog.at_level(logging.WARNING):
        delivered = await registry.broadcast(Event.user_updated())

    assert delivered == 2
    assert healthy_before.sent and healthy_after.sent
    assert broken_id not in registry
    assert len(registry) == 2
    assert realtime_send_failures_total.value("error") == 1
    assert "failed send" in realtime_caplog.text


@pytest.mark.anyio("asyncio")
async def test_disconnect_during_send_is_isolated() -> None:
    registry = ConnectionRegistry()
    gone = DummyWebSocket(fail_with=WebSocketDisconnect(code=1006))
    alive = DummyWebSocket()
    await registry.register_connection(gone)
    await registry.register_connection(alive)

    delivered = await registry.broadcast(Event.message_deleted("chan", "m1"))

    assert delivered == 1
    assert len(alive.sent) == 1


@pytest.mark.anyio("asyncio")
async def test_closed_transport_is_not_written_and_gets_dropped() -> None:
    registry = ConnectionRegistry()
    closing = DummyWebSocket()
    closing.application_state = WebSocketState.DISCONNECTED
    closing_id = await registry.register_connection(closing)

    delivered = await registry.broadcast(Event.user_updated())

    assert delivered == 0
    assert closing.sent == []
    assert closing_id not in registry
    assert realtime_send_failures_total.value("closed") == 1


@pytest.mark.anyio("asyncio")
async def test_deregister_is_idempotent_and_decrements_gauge_once() -> None:
    registry = ConnectionRegistry()
    socket = DummyWebSocket()
    connection_id = await registry.register_connection(socket, user_id="u1")
    connection = registry.get(connection_id)
    assert connection is not None and connection.user_id == "u1"
    assert realtime_connections.value("events") == 1

    assert await registry.deregister_connection(connection_id) is True
    assert await registry.deregister_connection(connection_id) is False

    assert realtime_connections.value("events") == 0
    assert connection.state is ConnectionState.CLOSED
    assert not connection.is_open


@pytest.mark.anyio("asyncio")
async def test_broadcast_iterates_a_snapshot_of_the_live_set() -> None:
    registry = ConnectionRegistry()
    late = DummyWebSocket()

    class RegisteringSocket(DummyWebSocket):
        async def send_text(self, data: str) -> None:
            await super().send_text(data)
            await registry.register_connection(late)
            await registry.deregister_connection(victim_id)

    first = RegisteringSocket()
    victim = DummyWebSocket()
    await registry.register_connection(first)
    victim_id = await registry.register_connection(victim)

    delivered = await registry.broadcast(Event.user_updated())

    # The victim was in the snapshot but left mid-broadcast; the late joiner was not.
    assert late.sent == []
    assert len(first.sent) == 1
    assert delivered == 1
    assert len(registry) == 2


@pytest.mark.anyio("asyncio")
async def test_each_connection_sees_events_in_broadcast_order() -> None:
    registry = ConnectionRegistry()
    socket = DummyWebSocket()
    await registry.register_connection(socket)

    await registry.broadcast(Event.new_message("c", {"id": "1"}))
    await registry.broadcast(Event.message_updated("c", {"id": "1"}))
    await registry.broadcast(Event.message_deleted("c", "1"))

    kinds = [Event.decode(frame).kind.value for frame in socket.sent]
    assert kinds == ["new-message", "message-updated", "message-deleted"]


@pytest.mark.anyio("asyncio")
async def test_concurrent_broadcasts_do_not_duplicate_frames() -> None:
    registry = ConnectionRegistry()
    sockets = [DummyWebSocket() for _ in range(5)]
    for socket in sockets:
        await registry.register_connection(socket)

    await asyncio.gather(*(registry.broadcast(Event.new_message("c", {"n": n})) for n in range(10)))

    assert all(len(socket.sent) == 10 for socket in sockets)


@pytest.mark.anyio("asyncio")
async def test_close_shuts_every_socket_and_empties_registry() -> None:
    registry = ConnectionRegistry()
    sockets = [DummyWebSocket() for _ in range(2)]
    for socket in sockets:
        await registry.register_connection(socket)

    await registry.close()

    assert len(registry) == 0
    assert [socket.closed_with for socket in sockets] == [1001, 1001]
    assert realtime_connections.value("events") == 0
