"""HTTP client and the cache it feeds, driven against the in-process app."""

from __future__ import annotations

import httpx
import pytest

from app.models import UserRole
from huddle.client import (
    ADMIN_USERS,
    CHANNELS,
    CONVERSATIONS,
    CURRENT_USER,
    ChatApiClient,
    QueryCache,
    Reconciler,
    ViewState,
    channel_messages,
    conversation_messages,
)


def _client(app, token: str | None = None) -> ChatApiClient:
    return ChatApiClient("http://testserver", token=token, transport=httpx.ASGITransport(app=app))


def test_ws_url_follows_the_http_scheme() -> None:
    assert ChatApiClient("http://chat.local:8000/").ws_url == "ws://chat.local:8000/ws"
    assert ChatApiClient("https://chat.example.com", websocket_path="/realtime").ws_url == (
        "wss://chat.example.com/realtime"
    )


def test_unknown_cache_key_has_no_fetcher() -> None:
    api = ChatApiClient("http://testserver")

    with pytest.raises(KeyError):
        api.fetcher_for(("/api/unknown",))


@pytest.mark.anyio("asyncio")
async def test_login_sets_bearer_token(app, make_user) -> None:
    make_user("alice")

    async with _client(app) as api:
        payload = await api.login("alice", "secret123")
        me = await api.current_user()
        await api.logout()

    assert payload["token_type"] == "bearer"
    assert me["username"] == "alice"
    assert api.token is None


@pytest.mark.anyio("asyncio")
async def test_error_statuses_raise(app, make_user) -> None:
    make_user("alice")

    async with _client(app) as api:
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await api.login("alice", "wrong-password")

    assert exc_info.value.response.status_code == 401


@pytest.mark.anyio("asyncio")
async def test_fetchers_cover_every_cached_collection(app, make_user) -> None:
    alice_id, token = make_user("alice", role=UserRole.MODERATOR)
    bob_id, _ = make_user("bob")

    async with _client(app, token) as api:
        channel = await api.create_channel("general")
        await api.post_message(channel["id"], "hello")
        await api.send_direct_message(bob_id, "hi bob")
        cache = QueryCache(resolver=api.fetcher_for)

        assert (await cache.get(CURRENT_USER))["id"] == alice_id
        assert [entry["name"] for entry in await cache.get(CHANNELS)] == ["general"]
        assert [entry["content"] for entry in await cache.get(channel_messages(channel["id"]))] == ["hello"]
        assert [entry["partner"]["id"] for entry in await cache.get(CONVERSATIONS)] == [bob_id]
        assert [entry["content"] for entry in await cache.get(conversation_messages(bob_id))] == ["hi bob"]
        assert {entry["username"] for entry in await cache.get(ADMIN_USERS)} == {"alice", "bob"}


@pytest.mark.anyio("asyncio")
async def test_broadcast_frame_refreshes_the_open_channel(app, make_user, published) -> None:
    alice_id, alice_token = make_user("alice")
    _, bob_token = make_user("bob")

    async with _client(app, alice_token) as alice, _client(app, bob_token) as bob:
        channel = await alice.create_channel("general")
        key = channel_messages(channel["id"])
        cache = QueryCache(resolver=alice.fetcher_for)
        reconciler = Reconciler(cache, ViewState(user_id=alice_id))
        reconciler.show_channel(channel["id"])
        assert await cache.get(key) == []

        await bob.post_message(channel["id"], "hello")
        assert reconciler.on_frame(published[-1].encode()) == [key]
        await cache.drain()

        assert [entry["content"] for entry in cache.peek(key)] == ["hello"]
        assert not cache.is_stale(key)
        assert cache.fetch_count(key) == 2


@pytest.mark.anyio("asyncio")
async def test_moderator_deletion_refreshes_the_open_channel(app, make_user, published) -> None:
    alice_id, alice_token = make_user("alice")
    _, mod_token = make_user("mod", role=UserRole.MODERATOR)

    async with _client(app, alice_token) as alice, _client(app, mod_token) as moderator:
        channel = await alice.create_channel("general")
        message = await alice.post_message(channel["id"], "spam")
        cache = QueryCache(resolver=alice.fetcher_for)
        reconciler = Reconciler(cache, ViewState(user_id=alice_id))
        reconciler.show_channel(channel["id"])
        assert len(await cache.get(channel_messages(channel["id"]))) == 1

        assert await moderator.delete_message(message["id"], reason="spam") is None
        reconciler.on_frame(published[-1].encode())
        await cache.drain()

        assert cache.peek(channel_messages(channel["id"])) == []


@pytest.mark.anyio("asyncio")
async def test_profile_change_refreshes_user_views(app, make_user, published) -> None:
    alice_id, token = make_user("alice")

    async with _client(app, token) as api:
        cache = QueryCache(resolver=api.fetcher_for)
        reconciler = Reconciler(cache, ViewState(user_id=alice_id))
        cache.observe(CURRENT_USER)
        assert (await cache.get(CURRENT_USER))["display_name"] is None

        await api.update_profile(display_name="Alice")
        reconciler.on_frame(published[-1].encode())
        await cache.drain()

        assert cache.peek(CURRENT_USER)["display_name"] == "Alice"
