"""Build realtime events from committed records and hand them to the registry."""

from __future__ import annotations

import logging

from app.models import DirectMessage, Message
from app.schemas import DirectMessageRead, MessageRead
from huddle.realtime import ConnectionRegistry, Event


logger = logging.getLogger(__name__)


def serialize_message(message: Message) -> dict:
    return MessageRead.model_validate(message).model_dump(mode="json")


def serialize_direct_message(dm: DirectMessage) -> dict:
    return DirectMessageRead.model_validate(dm).model_dump(mode="json")


async def publish(registry: ConnectionRegistry, event: Event) -> int:
    """Broadcast an event; callers invoke this only once their transaction committed."""

    delivered = await registry.broadcast(event)
    logger.debug("Published %s to %s connections", event.kind.value, delivered)
    return delivered


async def publish_new_message(registry: ConnectionRegistry, message: Message) -> int:
    return await publish(registry, Event.new_message(message.channel_id, serialize_message(message)))


async def publish_message_updated(registry: ConnectionRegistry, message: Message) -> int:
    return await publish(
        registry, Event.message_updated(message.channel_id, serialize_message(message))
    )


async def publish_message_deleted(registry: ConnectionRegistry, channel_id: str, message_id: str) -> int:
    return await publish(registry, Event.message_deleted(channel_id, message_id))


async def publish_direct_message(registry: ConnectionRegistry, dm: DirectMessage) -> int:
    return await publish(registry, Event.new_direct_message(serialize_direct_message(dm)))


async def publish_user_updated(registry: ConnectionRegistry) -> int:
    return await publish(registry, Event.user_updated())
