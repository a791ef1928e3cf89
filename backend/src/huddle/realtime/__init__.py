"""Realtime fan-out of chat events to connected websockets."""

from .events import DirectPair, Event, EventDecodeError, EventKind  # noqa: F401
from .registry import Connection, ConnectionRegistry, ConnectionState  # noqa: F401

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "DirectPair",
    "Event",
    "EventDecodeError",
    "EventKind",
]
