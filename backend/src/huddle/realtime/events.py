"""Event values pushed to connected clients after a durable state change."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class EventKind(str, Enum):
    """Tagged variants understood by the realtime clients."""

    NEW_MESSAGE = "new-message"
    MESSAGE_UPDATED = "message-updated"
    MESSAGE_DELETED = "message-deleted"
    NEW_DIRECT_MESSAGE = "new-direct-message"
    USER_UPDATED = "user-updated"


CHANNEL_EVENT_KINDS: frozenset[EventKind] = frozenset(
    {EventKind.NEW_MESSAGE, EventKind.MESSAGE_UPDATED, EventKind.MESSAGE_DELETED}
)


class EventDecodeError(ValueError):
    """Raised when a wire frame names a known kind but lacks its routing data."""


@dataclass(frozen=True, slots=True)
class DirectPair:
    """Unordered pair of users taking part in a direct conversation."""

    sender_id: str
    receiver_id: str

    def includes(self, user_id: str | None) -> bool:
        return user_id is not None and user_id in (self.sender_id, self.receiver_id)

    def other(self, user_id: str) -> str | None:
        if user_id == self.sender_id:
            return self.receiver_id
        if user_id == self.receiver_id:
            return self.sender_id
        return None


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable broadcast notification.

    ``message`` and ``dm`` are denormalized hints. Receivers must treat them as
    disposable and refetch authoritative state instead of applying them.
    """

    kind: EventKind
    channel_id: str | None = None
    pair: DirectPair | None = None
    message: Mapping[str, Any] | None = None
    dm: Mapping[str, Any] | None = None
    message_id: str | None = None

    # ------------------------------------------------------------------
    # Constructors matching the command routing table
    # ------------------------------------------------------------------
    @classmethod
    def new_message(cls, channel_id: str, message: Mapping[str, Any]) -> "Event":
        return cls(EventKind.NEW_MESSAGE, channel_id=channel_id, message=message)

    @classmethod
    def message_updated(cls, channel_id: str, message: Mapping[str, Any]) -> "Event":
        return cls(EventKind.MESSAGE_UPDATED, channel_id=channel_id, message=message)

    @classmethod
    def message_deleted(cls, channel_id: str, message_id: str) -> "Event":
        return cls(EventKind.MESSAGE_DELETED, channel_id=channel_id, message_id=message_id)

    @classmethod
    def new_direct_message(cls, dm: Mapping[str, Any]) -> "Event":
        pair = DirectPair(str(dm["sender_id"]), str(dm["receiver_id"]))
        return cls(EventKind.NEW_DIRECT_MESSAGE, pair=pair, dm=dm)

    @classmethod
    def user_updated(cls) -> "Event":
        return cls(EventKind.USER_UPDATED)

    @property
    def routing_key(self) -> str | DirectPair | None:
        if self.kind in CHANNEL_EVENT_KINDS:
            return self.channel_id
        if self.kind is EventKind.NEW_DIRECT_MESSAGE:
            return self.pair
        return None

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------
    def to_wire(self) -> dict[str, Any]:
        frame: dict[str, Any] = {"type": self.kind.value}
        if self.channel_id is not None:
            frame["channelId"] = self.channel_id
        if self.message is not None:
            frame["message"] = dict(self.message)
        if self.dm is not None:
            frame["dm"] = dict(self.dm)
        if self.message_id is not None:
            frame["messageId"] = self.message_id
        return frame

    def encode(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"))

    @classmethod
    def from_wire(cls, frame: Mapping[str, Any]) -> "Event | None":
        """Rebuild an event from a decoded frame, returning ``None`` for foreign frame types."""

        try:
            kind = EventKind(frame.get("type"))
        except ValueError:
            return None

        channel_id = frame.get("channelId")
        if kind in CHANNEL_EVENT_KINDS:
            if not channel_id:
                raise EventDecodeError(f"{kind.value} frame is missing channelId")
            return cls(
                kind,
                channel_id=str(channel_id),
                message=frame.get("message"),
                message_id=frame.get("messageId"),
            )
        if kind is EventKind.NEW_DIRECT_MESSAGE:
            dm = frame.get("dm")
            if not isinstance(dm, Mapping) or "sender_id" not in dm or "receiver_id" not in dm:
                raise EventDecodeError("new-direct-message frame is missing the participant pair")
            return cls.new_direct_message(dm)
        return cls.user_updated()

    @classmethod
    def decode(cls, raw: str | bytes) -> "Event | None":
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise EventDecodeError("Frame is not valid JSON") from exc
        if not isinstance(frame, Mapping):
            raise EventDecodeError("Frame must be a JSON object")
        return cls.from_wire(frame)
