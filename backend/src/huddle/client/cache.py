"""Client-side query cache with stale tracking and background refetch."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator


logger = logging.getLogger(__name__)

CacheKey = tuple[str, ...]
Fetcher = Callable[[], Awaitable[Any]]
FetcherResolver = Callable[[CacheKey], Fetcher]


CURRENT_USER: CacheKey = ("/api/user",)
CHANNELS: CacheKey = ("/api/channels",)
CONVERSATIONS: CacheKey = ("/api/dms/conversations",)
ADMIN_USERS: CacheKey = ("/api/admin/users",)


def channel_messages(channel_id: str) -> CacheKey:
    return ("/api/channels", channel_id, "messages")


def conversation_messages(partner_id: str) -> CacheKey:
    return ("/api/dms", partner_id)


@dataclass(slots=True)
class _Entry:
    key: CacheKey
    fetcher: Fetcher
    data: Any = None
    fetched: bool = False
    stale: bool = True
    observers: int = 0
    generation: int = 0
    fetch_count: int = 0
    updated_at: float | None = None
    error: BaseException | None = None
    inflight: asyncio.Task[Any] | None = field(default=None, repr=False)


class QueryCache:
    """Keyed store of fetched collections.

    Entries are only ever filled by their fetcher. :meth:`invalidate` marks an
    entry stale; observed entries refetch in the background right away, the
    others on their next :meth:`get`. An invalidation that lands while a fetch
    is in flight keeps the entry stale so the next read converges again.
    """

    def __init__(self, resolver: FetcherResolver | None = None) -> None:
        self._resolver = resolver
        self._entries: dict[CacheKey, _Entry] = {}
        self._background: set[asyncio.Task[Any]] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[CacheKey]:
        return iter(list(self._entries))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, key: CacheKey, fetcher: Fetcher) -> None:
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = _Entry(key=key, fetcher=fetcher)
        else:
            entry.fetcher = fetcher

    def _entry(self, key: CacheKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is not None:
            return entry
        if self._resolver is None:
            raise KeyError(f"No fetcher registered for cache key {key!r}")
        entry = _Entry(key=key, fetcher=self._resolver(key))
        self._entries[key] = entry
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get(self, key: CacheKey) -> Any:
        entry = self._entry(key)
        if entry.fetched and not entry.stale:
            return entry.data
        await self.refetch(key)
        if entry.error is not None and not entry.fetched:
            raise entry.error
        return entry.data

    def peek(self, key: CacheKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def is_stale(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def fetch_count(self, key: CacheKey) -> int:
        entry = self._entries.get(key)
        return entry.fetch_count if entry is not None else 0

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    def observe(self, key: CacheKey) -> None:
        """Mark ``key`` as rendered so invalidations refetch it immediately."""

        self._entry(key).observers += 1

    def release(self, key: CacheKey) -> None:
        entry = self._entries.get(key)
        if entry is not None and entry.observers > 0:
            entry.observers -= 1

    def is_observed(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.observers > 0

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------
    def invalidate(self, key: CacheKey) -> bool:
        """Mark ``key`` stale. Returns ``False`` when nothing was cached under it."""

        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.stale = True
        entry.generation += 1
        if entry.observers > 0:
            self._schedule_refetch(entry)
        return True

    def invalidate_all(self) -> list[CacheKey]:
        keys = list(self._entries)
        for key in keys:
            self.invalidate(key)
        return keys

    async def refetch(self, key: CacheKey) -> None:
        entry = self._entry(key)
        while True:
            if entry.inflight is None or entry.inflight.done():
                entry.inflight = asyncio.create_task(
                    self._fetch(entry), name=f"query-cache-fetch-{key!r}"
                )
            await asyncio.shield(entry.inflight)
            # Invalidated mid-flight: the result is already outdated, go again.
            if not entry.stale or entry.error is not None:
                return

    async def drain(self) -> None:
        """Wait for background refetches, including ones scheduled while waiting."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _schedule_refetch(self, entry: _Entry) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop to refetch on; the entry refreshes on its next read.
            return
        task = asyncio.create_task(self.refetch(entry.key), name=f"query-cache-refetch-{entry.key!r}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _fetch(self, entry: _Entry) -> None:
        generation = entry.generation
        entry.fetch_count += 1
        try:
            data = await entry.fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            entry.error = exc
            logger.warning("Refetch of %r failed; entry stays stale: %s", entry.key, exc)
            return
        entry.data = data
        entry.error = None
        entry.fetched = True
        entry.updated_at = time.monotonic()
        entry.stale = entry.generation != generation
