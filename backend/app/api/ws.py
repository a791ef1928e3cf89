"""WebSocket endpoint streaming realtime events to clients."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.api.deps import get_user_from_token
from app.config import Settings
from app.database import session_scope
from app.monitoring.metrics import realtime_events_total
from huddle.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Rejected(Exception):
    """Raised internally once the handshake has been refused."""


PING_FRAME: Dict[str, Any] = {"type": "ping"}


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield inbound frames; while the peer is quiet, ping it every ``ping_interval_seconds``.

    Stops once the socket disconnects or a ping cannot be delivered.
    """

    payload = ping_payload or PING_FRAME
    timeout = float(timeout_seconds or 0)
    interval = float(ping_interval_seconds or 0)
    quiet_since = time.monotonic()
    last_ping: float | None = None

    while websocket.application_state == WebSocketState.CONNECTED:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            now = time.monotonic()
            due = interval <= 0 or (
                now - quiet_since >= interval and (last_ping is None or now - last_ping >= interval)
            )
            if due:
                if not await safe_send_json(websocket, payload):
                    return
                last_ping = now
            continue
        except (RuntimeError, WebSocketDisconnect):
            return
        quiet_since = time.monotonic()
        last_ping = None
        yield message


async def safe_send_json(websocket: WebSocket, data: Dict[str, Any]) -> bool:
    """Send one control frame; ``False`` when the socket is already gone."""

    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug("Control frame not delivered: %s", exc)
        return False
    return True


async def receive_frame(websocket: WebSocket) -> str | bytes:
    """Receive the next inbound data frame, text or binary."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason"))
    text = message.get("text")
    if text is not None:
        return text
    return message.get("bytes") or b""


def _extract_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    return token or None


async def _resolve_user_id(websocket: WebSocket, settings: Settings) -> str | None:
    """Return the caller's id, ``None`` for an allowed anonymous socket, or raise :class:`_Rejected`."""

    token = _extract_token(websocket)
    if not token:
        if not settings.websocket_require_auth:
            return None
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
        raise _Rejected

    try:
        with session_scope(websocket.app.state.session_factory) as db:
            user = get_user_from_token(
                token, db, settings=settings, revocations=websocket.app.state.revocations
            )
            return user.id
    except HTTPException as exc:
        logger.info("Rejected realtime connection: %s", exc.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        raise _Rejected from None


async def realtime_endpoint(websocket: WebSocket) -> None:
    """Register the socket for fan-out until the client goes away.

    The stream is server-to-client only: inbound frames are logged and dropped.
    """

    settings: Settings = websocket.app.state.settings
    registry: ConnectionRegistry = websocket.app.state.connections

    try:
        user_id = await _resolve_user_id(websocket, settings)
    except _Rejected:
        return

    await websocket.accept()
    connection_id = await registry.register_connection(websocket, user_id=user_id)
    try:
        await safe_send_json(websocket, {"type": "ready", "connectionId": connection_id})
        async for raw_message in iter_keepalive_messages(
            websocket,
            functools.partial(receive_frame, websocket),
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            realtime_events_total.labels("events", "in", "ignored").inc()
            logger.debug(
                "Ignoring inbound %s frame (%s bytes)",
                "text" if isinstance(raw_message, str) else "binary",
                len(raw_message),
                extra={"connection_id": connection_id},
            )
    finally:
        await registry.deregister_connection(connection_id)
