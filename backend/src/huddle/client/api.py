"""HTTP client for the Huddle REST API."""

from __future__ import annotations

import functools
from typing import Any

import httpx

from .cache import (
    ADMIN_USERS,
    CHANNELS,
    CONVERSATIONS,
    CURRENT_USER,
    CacheKey,
    Fetcher,
)


class ChatApiClient:
    """Thin wrapper around :class:`httpx.AsyncClient` that tracks the bearer token."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        websocket_path: str = "/ws",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.websocket_path = websocket_path
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self.token: str | None = None
        if token:
            self.set_token(token)

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str | None) -> None:
        self.token = token
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    @property
    def ws_url(self) -> str:
        """Websocket endpoint derived from the HTTP base URL."""

        if self.base_url.startswith("https://"):
            root = "wss://" + self.base_url[len("https://"):]
        elif self.base_url.startswith("http://"):
            root = "ws://" + self.base_url[len("http://"):]
        else:
            root = self.base_url
        return root + self.websocket_path

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Issue a request and decode the JSON body.

        Raises:
            httpx.HTTPStatusError: If the server answers with a 4xx/5xx status
        """
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    async def register(self, username: str, password: str) -> dict[str, Any]:
        payload = await self._request("POST", "/api/register", json={"username": username, "password": password})
        self.set_token(payload["access_token"])
        return payload

    async def login(self, username: str, password: str) -> dict[str, Any]:
        payload = await self._request("POST", "/api/login", json={"username": username, "password": password})
        self.set_token(payload["access_token"])
        return payload

    async def logout(self) -> None:
        await self._request("POST", "/api/logout")
        self.set_token(None)

    # ------------------------------------------------------------------
    # Reads backing the query cache
    # ------------------------------------------------------------------
    async def current_user(self) -> dict[str, Any]:
        return await self._request("GET", "/api/user")

    async def list_channels(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/channels")

    async def channel_messages(self, channel_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/channels/{channel_id}/messages")

    async def conversations(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/dms/conversations")

    async def conversation(self, partner_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/dms/{partner_id}")

    async def admin_users(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/admin/users")

    def fetcher_for(self, key: CacheKey) -> Fetcher:
        """
        Resolve the fetcher that fills ``key``.

        Args:
            key: Cache key produced by :mod:`huddle.client.cache`

        Returns:
            Zero-argument coroutine function returning the collection

        Raises:
            KeyError: If the key does not name a known collection
        """
        static = {
            CURRENT_USER: self.current_user,
            CHANNELS: self.list_channels,
            CONVERSATIONS: self.conversations,
            ADMIN_USERS: self.admin_users,
        }
        if key in static:
            return static[key]
        if len(key) == 3 and key[0] == "/api/channels" and key[2] == "messages":
            return functools.partial(self.channel_messages, key[1])
        if len(key) == 2 and key[0] == "/api/dms":
            return functools.partial(self.conversation, key[1])
        raise KeyError(f"No fetcher for cache key {key!r}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def create_channel(self, name: str, description: str | None = None) -> dict[str, Any]:
        return await self._request("POST", "/api/channels", json={"name": name, "description": description})

    async def post_message(self, channel_id: str, content: str) -> dict[str, Any]:
        return await self._request("POST", "/api/messages", json={"channel_id": channel_id, "content": content})

    async def edit_message(self, message_id: str, content: str) -> dict[str, Any]:
        return await self._request("PATCH", f"/api/messages/{message_id}", json={"content": content})

    async def delete_message(self, message_id: str, reason: str | None = None) -> None:
        params = {"reason": reason} if reason else None
        await self._request("DELETE", f"/api/messages/{message_id}", params=params)

    async def send_direct_message(self, receiver_id: str, content: str) -> dict[str, Any]:
        return await self._request("POST", "/api/dms", json={"receiver_id": receiver_id, "content": content})

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        return await self._request("PATCH", "/api/user", json=fields)
