"""Client-side cache reconciliation for the Huddle realtime feed."""

from .api import ChatApiClient  # noqa: F401
from .cache import (  # noqa: F401
    ADMIN_USERS,
    CHANNELS,
    CONVERSATIONS,
    CURRENT_USER,
    CacheKey,
    QueryCache,
    channel_messages,
    conversation_messages,
)
from .connection import ConnectionStatus, RealtimeClient  # noqa: F401
from .reconciler import Reconciler, ViewState  # noqa: F401

__all__ = [
    "ADMIN_USERS",
    "CHANNELS",
    "CONVERSATIONS",
    "CURRENT_USER",
    "CacheKey",
    "ChatApiClient",
    "ConnectionStatus",
    "QueryCache",
    "RealtimeClient",
    "Reconciler",
    "ViewState",
    "channel_messages",
    "conversation_messages",
]
