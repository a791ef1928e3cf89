"""Test doubles shared across modules."""

from __future__ import annotations

from fastapi.websockets import WebSocketState


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class DummyWebSocket:
    """Stand-in for a server-side websocket that records outgoing frames."""

    def __init__(self, *, fail_with: BaseException | None = None) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.closed_with: int | None = None
        self.fail_with = fail_with

    async def send_text(self, data: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED
