"""Map pushed events onto the cache keys they make stale."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from huddle.realtime.events import Event, EventDecodeError, EventKind

from .cache import (
    ADMIN_USERS,
    CHANNELS,
    CONVERSATIONS,
    CURRENT_USER,
    CacheKey,
    QueryCache,
    channel_messages,
    conversation_messages,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ViewState:
    """What the client is currently looking at."""

    user_id: str | None = None
    channel_id: str | None = None
    partner_id: str | None = None


KeyTemplate = Callable[[Event, ViewState], "CacheKey | None"]


def _event_channel_messages(event: Event, view: ViewState) -> CacheKey | None:
    return channel_messages(event.channel_id) if event.channel_id else None


def _static(key: CacheKey) -> KeyTemplate:
    def template(event: Event, view: ViewState) -> CacheKey:
        return key

    return template


def _open_conversation_for_pair(event: Event, view: ViewState) -> CacheKey | None:
    pair = event.pair
    if pair is None or not pair.includes(view.partner_id):
        return None
    # Everyone receives every DM event; only the thread between us and the
    # displayed partner is affected.
    if view.user_id is not None and pair.other(view.partner_id) != view.user_id:
        return None
    return conversation_messages(view.partner_id)


def _active_channel_messages(event: Event, view: ViewState) -> CacheKey | None:
    return channel_messages(view.channel_id) if view.channel_id else None


def _active_conversation(event: Event, view: ViewState) -> CacheKey | None:
    return conversation_messages(view.partner_id) if view.partner_id else None


ROUTING_TABLE: Mapping[EventKind, tuple[KeyTemplate, ...]] = {
    EventKind.NEW_MESSAGE: (_event_channel_messages,),
    EventKind.MESSAGE_UPDATED: (_event_channel_messages,),
    EventKind.MESSAGE_DELETED: (_event_channel_messages,),
    EventKind.NEW_DIRECT_MESSAGE: (_static(CONVERSATIONS), _open_conversation_for_pair),
    # Profile, role and moderation changes carry no payload; anything that
    # renders user details is refetched.
    EventKind.USER_UPDATED: (
        _static(CURRENT_USER),
        _static(CHANNELS),
        _static(CONVERSATIONS),
        _static(ADMIN_USERS),
        _active_channel_messages,
        _active_conversation,
    ),
}


class Reconciler:
    """Invalidate cached views in response to realtime events.

    Event payloads are never applied to cached data; the only effect of an
    event is marking keys stale, so the view always converges on whatever the
    server returns next.
    """

    def __init__(self, cache: QueryCache, view: ViewState | None = None) -> None:
        self.cache = cache
        self.view = view or ViewState()

    def resolve(self, event: Event) -> list[CacheKey]:
        keys: list[CacheKey] = []
        for template in ROUTING_TABLE.get(event.kind, ()):
            key = template(event, self.view)
            if key is not None and key not in keys:
                keys.append(key)
        return keys

    def on_event(self, event: Event) -> list[CacheKey]:
        keys = self.resolve(event)
        for key in keys:
            self.cache.invalidate(key)
        logger.debug("Event %s invalidated %s", event.kind.value, keys)
        return keys

    def on_frame(self, raw: str | bytes) -> list[CacheKey]:
        try:
            event = Event.decode(raw)
        except EventDecodeError as exc:
            logger.warning("Discarded malformed realtime frame: %s", exc)
            return []
        if event is None:
            return []
        return self.on_event(event)

    def resync(self) -> list[CacheKey]:
        """Invalidate everything cached; events missed while offline cannot be replayed."""

        keys = self.cache.invalidate_all()
        logger.info("Resynchronising %s cached views after reconnect", len(keys))
        return keys

    # ------------------------------------------------------------------
    # View helpers
    # ------------------------------------------------------------------
    def show_channel(self, channel_id: str | None) -> None:
        self._swap_observed(
            channel_messages(self.view.channel_id) if self.view.channel_id else None,
            channel_messages(channel_id) if channel_id else None,
        )
        self.view.channel_id = channel_id

    def show_conversation(self, partner_id: str | None) -> None:
        self._swap_observed(
            conversation_messages(self.view.partner_id) if self.view.partner_id else None,
            conversation_messages(partner_id) if partner_id else None,
        )
        self.view.partner_id = partner_id

    def _swap_observed(self, previous: CacheKey | None, current: CacheKey | None) -> None:
        if previous == current:
            return
        if previous is not None:
            self.cache.release(previous)
        if current is not None:
            self.cache.observe(current)
