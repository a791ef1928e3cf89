"""Live websocket registry and event fan-out."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import (
    realtime_connections,
    realtime_events_total,
    realtime_send_failures_total,
)

from .events import Event


logger = logging.getLogger(__name__)

_SEND_ERRORS: tuple[type[BaseException], ...] = (WebSocketDisconnect, RuntimeError, OSError)


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(slots=True, eq=False)
class Connection:
    """One accepted client socket tracked by the registry."""

    id: str
    websocket: WebSocket
    user_id: str | None = None
    state: ConnectionState = ConnectionState.OPEN
    connected_at: float = field(default_factory=time.monotonic)

    @property
    def is_open(self) -> bool:
        return (
            self.state is ConnectionState.OPEN
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class ConnectionRegistry:
    """Track open sockets and push every event to all of them.

    There is no per-connection filtering: each client decides which
    events matter for its current view. Mutations happen under an
    :class:`asyncio.Lock`; :meth:`broadcast` snapshots the live set and sends
    outside the lock so connects and disconnects never invalidate iteration.
    """

    def __init__(self, *, scope: str = "events") -> None:
        self._scope = scope
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def register_connection(self, websocket: WebSocket, *, user_id: str | None = None) -> str:
        connection_id = uuid.uuid4().hex
        async with self._lock:
            self._connections[connection_id] = Connection(
                id=connection_id, websocket=websocket, user_id=user_id
            )
            realtime_connections.labels(self._scope).inc()
            total = len(self._connections)
        logger.info(
            "Realtime connection opened",
            extra={"connection_id": connection_id, "user_id": user_id, "connections": total},
        )
        return connection_id

    async def deregister_connection(self, connection_id: str) -> bool:
        """Forget a connection. Returns ``False`` when it was already gone."""

        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return False
            connection.state = ConnectionState.CLOSED
            realtime_connections.labels(self._scope).dec()
            total = len(self._connections)
        logger.info(
            "Realtime connection closed",
            extra={"connection_id": connection_id, "connections": total},
        )
        return True

    async def broadcast(self, event: Event) -> int:
        """Deliver ``event`` once to every open connection and return the delivery count."""

        async with self._lock:
            targets = list(self._connections.values())

        frame = event.encode()
        delivered = 0
        dead: list[str] = []
        for connection in targets:
            if not connection.is_open:
                realtime_send_failures_total.labels("closed").inc()
                dead.append(connection.id)
                continue
            try:
                await connection.websocket.send_text(frame)
            except _SEND_ERRORS as exc:
                logger.warning(
                    "Skipping realtime connection after failed send: %s",
                    exc,
                    extra={"connection_id": connection.id, "event": event.kind.value},
                )
                realtime_send_failures_total.labels("error").inc()
                dead.append(connection.id)
                continue
            delivered += 1

        for connection_id in dead:
            await self.deregister_connection(connection_id)

        realtime_events_total.labels(self._scope, "out", event.kind.value).inc()
        logger.debug(
            "Broadcast %s to %s of %s connections", event.kind.value, delivered, len(targets)
        )
        return delivered

    async def close(self, code: int = 1001) -> None:
        """Close every socket and empty the registry; used on application shutdown."""

        async with self._lock:
            targets = list(self._connections.values())
        for connection in targets:
            if connection.is_open:
                with contextlib.suppress(*_SEND_ERRORS):
                    await connection.websocket.close(code=code)
            await self.deregister_connection(connection.id)
