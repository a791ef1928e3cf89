"""Revoked access token ids, remembered until the tokens would expire anyway."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

from redis import Redis


logger = logging.getLogger(__name__)

REVOKED_PREFIX = "auth:revoked:"


class RevocationStore(Protocol):
    def revoke(self, token_id: str, ttl_seconds: int | None) -> None:
        """Reject ``token_id`` for the next ``ttl_seconds``, or for good when ``None``."""

    def is_revoked(self, token_id: str) -> bool:
        """Return whether ``token_id`` was revoked and the entry is still live."""


class MemoryRevocationStore:
    """Process-local store; revocations are lost on restart and not shared between workers."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._expires_at: dict[str, float | None] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._expires_at)

    def revoke(self, token_id: str, ttl_seconds: int | None) -> None:
        now = self._clock()
        with self._lock:
            self._prune(now)
            self._expires_at[token_id] = None if ttl_seconds is None else now + max(ttl_seconds, 1)

    def is_revoked(self, token_id: str) -> bool:
        with self._lock:
            if token_id not in self._expires_at:
                return False
            expires_at = self._expires_at[token_id]
            if expires_at is not None and expires_at <= self._clock():
                del self._expires_at[token_id]
                return False
            return True

    def _prune(self, now: float) -> None:
        expired = [
            token_id
            for token_id, expires_at in self._expires_at.items()
            if expires_at is not None and expires_at <= now
        ]
        for token_id in expired:
            del self._expires_at[token_id]


class RedisRevocationStore:
    """Shared store; Redis expires each entry together with its token."""

    def __init__(self, url: str, *, prefix: str = REVOKED_PREFIX) -> None:
        self._client = Redis.from_url(url, decode_responses=True)
        self._prefix = prefix

    def revoke(self, token_id: str, ttl_seconds: int | None) -> None:
        expires = None if ttl_seconds is None else max(ttl_seconds, 1)
        self._client.set(f"{self._prefix}{token_id}", "1", ex=expires)

    def is_revoked(self, token_id: str) -> bool:
        return bool(self._client.exists(f"{self._prefix}{token_id}"))


def build_revocation_store(url: str | None) -> RevocationStore:
    if url:
        logger.info("Token revocations are stored in Redis")
        return RedisRevocationStore(url)
    return MemoryRevocationStore()
