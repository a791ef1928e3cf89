"""Command handlers: authorization, persistence and the events they emit."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.models import Channel, Message, ModerationAction, ModerationLog, UserRole
from app.models.base import utcnow
from helpers import auth
from huddle.realtime import EventKind


@pytest.fixture()
def alice(make_user):
    return make_user("alice")


@pytest.fixture()
def bob(make_user):
    return make_user("bob")


@pytest.fixture()
def moderator(make_user):
    return make_user("mod", role=UserRole.MODERATOR)


@pytest.fixture()
def admin(make_user):
    return make_user("admin", role=UserRole.ADMIN)


@pytest.fixture()
def channel_id(client, alice) -> str:
    response = client.post("/api/channels", json={"name": "general"}, headers=auth(alice[1]))
    assert response.status_code == 201
    return response.json()["id"]


def _post(client, token: str, channel_id: str, content: str = "hello"):
    return client.post(
        "/api/messages", json={"channel_id": channel_id, "content": content}, headers=auth(token)
    )


# ----------------------------------------------------------------------
# Messages
# ----------------------------------------------------------------------
def test_post_message_persists_then_broadcasts(client, alice, channel_id, published, session_factory) -> None:
    response = _post(client, alice[1], channel_id, "  hello  ")

    assert response.status_code == 201
    body = response.json()
    assert body["content"] == "hello"
    assert body["user"]["username"] == "alice"

    with session_factory() as session:
        stored = session.get(Message, body["id"])
        assert stored.channel_id == channel_id and stored.user_id == alice[0]

    assert [event.kind for event in published] == [EventKind.NEW_MESSAGE]
    assert published[0].channel_id == channel_id
    assert published[0].message["id"] == body["id"]
    assert published[0].message["user"]["username"] == "alice"


def test_rejected_messages_emit_no_event(client, alice, channel_id, published) -> None:
    assert _post(client, alice[1], "missing-channel").status_code == 404
    assert _post(client, alice[1], channel_id, "   ").status_code == 422
    assert _post(client, alice[1], channel_id, "x" * 2001).status_code == 413
    assert client.post("/api/messages", json={"channel_id": channel_id, "content": "hi"}).status_code == 401

    assert published == []


def test_timed_out_user_cannot_post(client, make_user, channel_id, published) -> None:
    _, token = make_user("quiet", timeout_until=utcnow() + timedelta(minutes=5))

    assert _post(client, token, channel_id).status_code == 403
    assert published == []


def test_expired_timeout_no_longer_blocks(client, make_user, channel_id) -> None:
    _, token = make_user("reformed", timeout_until=utcnow() - timedelta(minutes=5))

    assert _post(client, token, channel_id).status_code == 201


def test_only_the_author_can_edit_regardless_of_role(client, alice, admin, channel_id, published) -> None:
    message_id = _post(client, alice[1], channel_id).json()["id"]
    published.clear()

    denied = client.patch(f"/api/messages/{message_id}", json={"content": "hacked"}, headers=auth(admin[1]))
    assert denied.status_code == 403
    assert published == []

    edited = client.patch(f"/api/messages/{message_id}", json={"content": "edited"}, headers=auth(alice[1]))
    assert edited.status_code == 200
    assert edited.json()["content"] == "edited"
    assert edited.json()["edited_at"] is not None
    assert [event.kind for event in published] == [EventKind.MESSAGE_UPDATED]
    assert published[0].message["content"] == "edited"


def test_plain_user_cannot_delete_someone_elses_message(client, alice, bob, channel_id, published) -> None:
    message_id = _post(client, alice[1], channel_id).json()["id"]
    published.clear()

    response = client.delete(f"/api/messages/{message_id}", headers=auth(bob[1]))

    assert response.status_code == 403
    assert published == []


def test_author_deletes_own_message_without_moderation_log(client, alice, channel_id, published, session_factory) -> None:
    message_id = _post(client, alice[1], channel_id).json()["id"]
    published.clear()

    assert client.delete(f"/api/messages/{message_id}", headers=auth(alice[1])).status_code == 204

    assert [event.kind for event in published] == [EventKind.MESSAGE_DELETED]
    with session_factory() as session:
        assert session.execute(select(ModerationLog)).first() is None


def test_moderator_deletion_is_logged_and_broadcast(client, bob, moderator, channel_id, published, session_factory) -> None:
    message_id = _post(client, bob[1], channel_id).json()["id"]
    published.clear()

    response = client.delete(
        f"/api/messages/{message_id}", params={"reason": "spam"}, headers=auth(moderator[1])
    )

    assert response.status_code == 204
    event = published[0]
    assert event.kind is EventKind.MESSAGE_DELETED
    assert event.to_wire() == {"type": "message-deleted", "channelId": channel_id, "messageId": message_id}
    with session_factory() as session:
        assert session.get(Message, message_id) is None
        log = session.execute(select(ModerationLog)).scalar_one()
        assert log.action is ModerationAction.DELETE_MESSAGE
        assert log.target_id == bob[0]
        assert log.admin_id == moderator[0]
        assert log.reason == "spam"


def test_persistence_failure_returns_500_and_emits_nothing(client, alice, channel_id, published, monkeypatch) -> None:
    def failing_commit(self) -> None:
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(Session, "commit", failing_commit)

    response = _post(client, alice[1], channel_id)

    assert response.status_code == 500
    assert response.json() == {"detail": "Persistence error"}
    assert published == []


# ----------------------------------------------------------------------
# Channels
# ----------------------------------------------------------------------
def test_channel_listing_and_history(client, alice, bob, channel_id) -> None:
    for text in ("one", "two", "three"):
        _post(client, bob[1], channel_id, text)

    channels = client.get("/api/channels", headers=auth(alice[1])).json()
    history = client.get(f"/api/channels/{channel_id}/messages", headers=auth(alice[1])).json()
    latest = client.get(
        f"/api/channels/{channel_id}/messages", params={"limit": 2}, headers=auth(alice[1])
    ).json()

    assert [channel["name"] for channel in channels] == ["general"]
    assert channels[0]["creator"]["username"] == "alice"
    assert [message["content"] for message in history] == ["one", "two", "three"]
    assert [message["content"] for message in latest] == ["two", "three"]
    assert client.get("/api/channels/unknown/messages", headers=auth(alice[1])).status_code == 404


def test_channel_management_is_limited_to_creator_and_admins(client, alice, bob, admin, channel_id) -> None:
    assert client.patch(f"/api/channels/{channel_id}", json={"name": "x"}, headers=auth(bob[1])).status_code == 403
    assert client.delete(f"/api/channels/{channel_id}", headers=auth(bob[1])).status_code == 403

    renamed = client.patch(
        f"/api/channels/{channel_id}", json={"description": "chit chat"}, headers=auth(alice[1])
    )
    assert renamed.status_code == 200
    assert renamed.json()["description"] == "chit chat"

    assert client.patch(f"/api/channels/{channel_id}", json={"name": "lobby"}, headers=auth(admin[1])).json()["name"] == "lobby"


def test_deleting_a_channel_removes_its_messages(client, alice, channel_id, session_factory) -> None:
    _post(client, alice[1], channel_id)

    assert client.delete(f"/api/channels/{channel_id}", headers=auth(alice[1])).status_code == 204

    with session_factory() as session:
        assert session.get(Channel, channel_id) is None
        assert session.execute(select(Message)).first() is None
    assert client.get(f"/api/channels/{channel_id}", headers=auth(alice[1])).status_code == 404


# ----------------------------------------------------------------------
# Direct messages
# ----------------------------------------------------------------------
def test_direct_message_is_broadcast_with_participant_pair(client, alice, bob, published) -> None:
    response = client.post("/api/dms", json={"receiver_id": bob[0], "content": "psst"}, headers=auth(alice[1]))

    assert response.status_code == 201
    assert response.json()["receiver"]["username"] == "bob"
    event = published[0]
    assert event.kind is EventKind.NEW_DIRECT_MESSAGE
    assert (event.pair.sender_id, event.pair.receiver_id) == (alice[0], bob[0])
    assert event.dm["content"] == "psst"


def test_direct_message_validation(client, alice, published) -> None:
    to_self = client.post("/api/dms", json={"receiver_id": alice[0], "content": "hi"}, headers=auth(alice[1]))
    to_nobody = client.post("/api/dms", json={"receiver_id": "ghost", "content": "hi"}, headers=auth(alice[1]))

    assert to_self.status_code == 400
    assert to_nobody.status_code == 404
    assert published == []


def test_conversations_and_threads(client, alice, bob, make_user) -> None:
    carol = make_user("carol")
    client.post("/api/dms", json={"receiver_id": bob[0], "content": "hi bob"}, headers=auth(alice[1]))
    client.post("/api/dms", json={"receiver_id": alice[0], "content": "hi alice"}, headers=auth(bob[1]))
    client.post("/api/dms", json={"receiver_id": alice[0], "content": "hey"}, headers=auth(carol[1]))

    conversations = client.get("/api/dms/conversations", headers=auth(alice[1])).json()
    thread = client.get(f"/api/dms/{bob[0]}", headers=auth(alice[1])).json()

    assert [entry["partner"]["username"] for entry in conversations] == ["carol", "bob"]
    assert [dm["content"] for dm in thread] == ["hi bob", "hi alice"]
    assert client.get("/api/dms/ghost", headers=auth(alice[1])).status_code == 404


# ----------------------------------------------------------------------
# Profile
# ----------------------------------------------------------------------
def test_profile_update_emits_user_updated(client, alice, bob, published) -> None:
    response = client.patch(
        "/api/user", json={"display_name": "Alice A.", "bio": "hi there"}, headers=auth(alice[1])
    )

    assert response.status_code == 200
    assert response.json()["display_name"] == "Alice A."
    assert [event.kind for event in published] == [EventKind.USER_UPDATED]
    assert published[0].to_wire() == {"type": "user-updated"}

    public = client.get(f"/api/users/{alice[0]}", headers=auth(bob[1])).json()
    assert public["bio"] == "hi there"
    assert "is_banned" not in public


def test_profile_update_without_changes_emits_nothing(client, alice, published) -> None:
    client.patch("/api/user", json={"display_name": "Alice"}, headers=auth(alice[1]))
    published.clear()

    for body in ({"username": None}, {"username": "alice", "display_name": "Alice"}, {"bio": ""}, {}):
        response = client.patch("/api/user", json=body, headers=auth(alice[1]))
        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert response.json()["display_name"] == "Alice"

    assert published == []


def test_profile_validation(client, alice, bob, published) -> None:
    taken = client.patch("/api/user", json={"username": "bob"}, headers=auth(alice[1]))
    short = client.patch("/api/user", json={"username": "ab"}, headers=auth(alice[1]))
    long_bio = client.patch("/api/user", json={"bio": "x" * 501}, headers=auth(alice[1]))

    assert taken.status_code == 400
    assert short.status_code == 422
    assert long_bio.status_code == 422
    assert published == []
    assert client.get("/api/users/missing", headers=auth(alice[1])).status_code == 404


def test_password_change(client, alice, published) -> None:
    wrong = client.post(
        "/api/user/password",
        json={"current_password": "nope", "new_password": "brand-new"},
        headers=auth(alice[1]),
    )
    ok = client.post(
        "/api/user/password",
        json={"current_password": "secret123", "new_password": "brand-new"},
        headers=auth(alice[1]),
    )

    assert wrong.status_code == 400
    assert ok.status_code == 200
    assert client.post("/api/login", json={"username": "alice", "password": "brand-new"}).status_code == 200
    assert published == []
