"""Websocket client that keeps a realtime subscription alive."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import WebSocketException


logger = logging.getLogger(__name__)

FrameHandler = Callable[[str | bytes], Any]
Connector = Callable[..., Any]

DEFAULT_RECONNECT_DELAY = 3.0
READY_FRAME_TYPE = "ready"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


def is_ready_frame(raw: str | bytes) -> bool:
    """Whether ``raw`` is the server's notice that the socket now receives broadcasts."""

    try:
        frame = json.loads(raw)
    except ValueError:
        return False
    return isinstance(frame, dict) and frame.get("type") == READY_FRAME_TYPE


def with_token(url: str, token: str | None) -> str:
    """Append ``token`` to the query string of a websocket URL."""

    if not token:
        return url
    parts = urlsplit(url)
    query = f"{parts.query}&{urlencode({'token': token})}" if parts.query else urlencode({"token": token})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class RealtimeClient:
    """Hold one websocket open and hand every inbound frame to ``on_frame``.

    Any close or transport error moves the client to ``disconnected``; after
    ``reconnect_delay`` seconds it tries again, forever and without backoff.
    ``on_reconnect`` fires after every successful connection except the first,
    which is where callers resynchronise state missed while offline. With
    ``wait_for_ready`` it waits for the server's ``ready`` frame, since only
    events published after that frame are guaranteed to arrive.
    """

    def __init__(
        self,
        url: str,
        on_frame: FrameHandler,
        *,
        token: str | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        open_timeout: float = 10.0,
        connector: Connector | None = None,
        on_reconnect: Callable[[], Any] | None = None,
        on_status: Callable[[ConnectionStatus], Any] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        wait_for_ready: bool = True,
    ) -> None:
        self.url = with_token(url, token)
        self._on_frame = on_frame
        self.reconnect_delay = reconnect_delay
        self.open_timeout = open_timeout
        self._connector = connector or websockets.connect
        self._on_reconnect = on_reconnect
        self._on_status = on_status
        self._sleep = sleep
        self.wait_for_ready = wait_for_ready

        self._status = ConnectionStatus.DISCONNECTED
        self._socket: Any = None
        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self._resync_pending = False
        self.connect_count = 0
        self.reconnect_attempts = 0

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        logger.debug("Realtime client %s -> %s", self._status.value, status.value)
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    async def run(self) -> None:
        """Connect and reconnect until :meth:`stop` is called."""

        self._stopping = False
        while not self._stopping:
            self._set_status(ConnectionStatus.CONNECTING)
            try:
                async with self._connector(self.url, open_timeout=self.open_timeout) as socket:
                    self._socket = socket
                    self._opened()
                    async for raw in socket:
                        self._dispatch(raw)
                logger.info("Realtime connection closed by server")
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
                logger.warning("Realtime connection lost: %s", exc)
            finally:
                self._socket = None
                self._set_status(ConnectionStatus.DISCONNECTED)

            if self._stopping:
                break
            self.reconnect_attempts += 1
            logger.info("Reconnecting in %.1fs (attempt %s)", self.reconnect_delay, self.reconnect_attempts)
            await self._sleep(self.reconnect_delay)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="huddle-realtime-client")
        return self._task

    async def stop(self) -> None:
        self._stopping = True
        socket = self._socket
        if socket is not None:
            with contextlib.suppress(WebSocketException, OSError):
                await socket.close()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_status(ConnectionStatus.DISCONNECTED)

    def _opened(self) -> None:
        self.connect_count += 1
        self._set_status(ConnectionStatus.OPEN)
        logger.info("Realtime connection open (%s)", "reconnect" if self.connect_count > 1 else "initial")
        self._resync_pending = self.connect_count > 1 and self._on_reconnect is not None
        if self._resync_pending and not self.wait_for_ready:
            self._resync()

    def _resync(self) -> None:
        self._resync_pending = False
        self._on_reconnect()

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            self._on_frame(raw)
        except Exception:
            logger.exception("Realtime frame handler failed")
        if self._resync_pending and is_ready_frame(raw):
            self._resync()
