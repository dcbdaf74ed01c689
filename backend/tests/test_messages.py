"""Message ledger behaviour: sending, history, edits, deletes and reactions."""

from __future__ import annotations

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from kaiflake.config import get_settings
from kaiflake.models import ChatMember, Message

Headers = Dict[str, str]


def _register(client: TestClient, username: str) -> dict[str, Any]:
    response = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": "secret1",
            "display_name": username.title(),
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _headers(account: dict[str, Any]) -> Headers:
    return {"Authorization": f"Bearer {account['token']}"}


def _send(client: TestClient, account: dict[str, Any], chat_id: int, content: str, **extra: Any) -> dict[str, Any]:
    response = client.post(
        "/api/messages",
        json={"chat_id": chat_id, "content": content, **extra},
        headers=_headers(account),
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def group(client: TestClient) -> dict[str, Any]:
    """A group owned by alice with bob as a plain member and mallory outside."""

    alice = _register(client, "alice")
    bob = _register(client, "bob")
    mallory = _register(client, "mallory")
    response = client.post(
        "/api/chats",
        json={"type": "group", "name": "Team", "member_ids": [bob["user"]["id"]]},
        headers=_headers(alice),
    )
    assert response.status_code == 201
    return {"alice": alice, "bob": bob, "mallory": mallory, "chat_id": response.json()["id"]}


def test_only_members_can_send(client: TestClient, group) -> None:
    chat_id = group["chat_id"]

    rejected = client.post(
        "/api/messages",
        json={"chat_id": chat_id, "content": "let me in"},
        headers=_headers(group["mallory"]),
    )
    assert rejected.status_code == 404
    assert rejected.json()["detail"] == "Chat not found or access denied"

    message = _send(client, group["bob"], chat_id, "hello team")
    assert message["content"] == "hello team"
    assert message["type"] == "text"
    assert message["sender"]["username"] == "bob"
    assert message["is_edited"] is False
    assert message["reactions"] == []


def test_send_validation(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    headers = _headers(group["alice"])
    too_long = "x" * (get_settings().chat_message_max_length + 1)

    payloads = [
        {"chat_id": chat_id, "content": "   "},
        {"chat_id": chat_id, "content": too_long},
        {"chat_id": chat_id, "content": "sneaky", "type": "system"},
        {"content": "no chat"},
    ]
    for payload in payloads:
        response = client.post("/api/messages", json=payload, headers=headers)
        assert response.status_code == 400, payload


def test_media_message_without_text(client: TestClient, group) -> None:
    response = client.post(
        "/api/messages",
        json={
            "chat_id": group["chat_id"],
            "type": "image",
            "media_url": "https://cdn.example.com/cat.png",
            "media_metadata": {"width": 640, "height": 480},
        },
        headers=_headers(group["alice"]),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["content"] is None
    assert body["media_metadata"] == {"width": 640, "height": 480}


def test_sending_keeps_own_read_cursor(client: TestClient, group, session_factory) -> None:
    chat_id = group["chat_id"]
    bob = group["bob"]
    _send(client, group["alice"], chat_id, "one")
    _send(client, group["alice"], chat_id, "two")

    def bob_unread() -> int:
        chats = client.get("/api/chats", headers=_headers(bob)).json()
        return next(chat["unread_count"] for chat in chats if chat["id"] == chat_id)

    assert bob_unread() == 2

    _send(client, bob, chat_id, "reply without reading")

    assert bob_unread() == 2
    with session_factory() as session:
        membership = session.execute(
            select(ChatMember).where(
                ChatMember.chat_id == chat_id,
                ChatMember.user_id == bob["user"]["id"],
            )
        ).scalar_one()
        assert membership.last_read_message_id is None


def test_content_is_stored_as_sent(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    snippet = "    def f():\n        return 1\n"
    message = _send(client, group["alice"], chat_id, snippet)
    assert message["content"] == snippet

    history = client.get("/api/messages", params={"chat_id": chat_id}, headers=_headers(group["bob"])).json()
    assert history[-1]["content"] == snippet

    revised = "  indented\n\n"
    edited = client.put(f"/api/messages/{message['id']}", json={"content": revised}, headers=_headers(group["alice"]))
    assert edited.status_code == 200
    assert edited.json()["content"] == revised

    limit = get_settings().chat_message_max_length
    padded = " " + "x" * (limit - 1) + "\n"
    response = client.post(
        "/api/messages",
        json={"chat_id": chat_id, "content": padded},
        headers=_headers(group["alice"]),
    )
    assert response.status_code == 400


def test_history_pagination(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    headers = _headers(group["alice"])
    sent = [_send(client, group["alice"], chat_id, f"message {index}")["id"] for index in range(5)]

    latest = client.get("/api/messages", params={"chat_id": chat_id, "limit": 2}, headers=headers)
    assert latest.status_code == 200
    assert [item["id"] for item in latest.json()] == sent[3:]

    older = client.get(
        "/api/messages",
        params={"chat_id": chat_id, "limit": 2, "before": sent[3]},
        headers=headers,
    )
    assert [item["id"] for item in older.json()] == sent[1:3]

    oldest = client.get(
        "/api/messages",
        params={"chat_id": chat_id, "before": sent[1]},
        headers=headers,
    )
    contents = [item["content"] for item in oldest.json()]
    assert contents == ["Alice created the group", "message 0"]

    capped = client.get("/api/messages", params={"chat_id": chat_id, "limit": 500}, headers=headers)
    assert capped.status_code == 200
    assert len(capped.json()) == 6

    invalid = client.get("/api/messages", params={"chat_id": chat_id, "limit": 0}, headers=headers)
    assert invalid.status_code == 400

    missing_chat = client.get("/api/messages", headers=headers)
    assert missing_chat.status_code == 400


def test_history_before_must_belong_to_chat(client: TestClient, group) -> None:
    other = client.post(
        "/api/chats",
        json={"type": "channel", "name": "Elsewhere"},
        headers=_headers(group["alice"]),
    ).json()["id"]
    foreign = _send(client, group["alice"], other, "elsewhere")

    response = client.get(
        "/api/messages",
        params={"chat_id": group["chat_id"], "before": foreign["id"]},
        headers=_headers(group["alice"]),
    )
    assert response.status_code == 404


def test_history_is_guarded(client: TestClient, group) -> None:
    response = client.get(
        "/api/messages",
        params={"chat_id": group["chat_id"]},
        headers=_headers(group["mallory"]),
    )
    assert response.status_code == 404


def test_reply_preview_tracks_target(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    original = _send(client, group["alice"], chat_id, "original")
    reply = _send(client, group["bob"], chat_id, "reply", reply_to_id=original["id"])

    assert reply["reply_to_id"] == original["id"]
    assert reply["reply_to"]["content"] == "original"
    assert reply["reply_to"]["sender_name"] == "Alice"

    client.put(f"/api/messages/{original['id']}", json={"content": "revised"}, headers=_headers(group["alice"]))
    history = client.get("/api/messages", params={"chat_id": chat_id}, headers=_headers(group["bob"])).json()
    assert history[-1]["reply_to"]["content"] == "revised"

    client.delete(f"/api/messages/{original['id']}", headers=_headers(group["alice"]))
    history = client.get("/api/messages", params={"chat_id": chat_id}, headers=_headers(group["bob"])).json()
    preview = history[-1]["reply_to"]
    assert preview["is_deleted"] is True
    assert preview["content"] is None


def test_reply_must_target_same_chat(client: TestClient, group) -> None:
    other = client.post(
        "/api/chats",
        json={"type": "channel", "name": "Elsewhere"},
        headers=_headers(group["alice"]),
    ).json()["id"]
    foreign = _send(client, group["alice"], other, "elsewhere")

    response = client.post(
        "/api/messages",
        json={"chat_id": group["chat_id"], "content": "reply", "reply_to_id": foreign["id"]},
        headers=_headers(group["alice"]),
    )
    assert response.status_code == 400


def test_edit_rules(client: TestClient, group, session_factory) -> None:
    chat_id = group["chat_id"]
    message = _send(client, group["alice"], chat_id, "draft")

    by_other = client.put(f"/api/messages/{message['id']}", json={"content": "hijack"}, headers=_headers(group["bob"]))
    assert by_other.status_code == 404
    assert by_other.json()["detail"] == "Message not found or access denied"

    blank = client.put(f"/api/messages/{message['id']}", json={"content": "   "}, headers=_headers(group["alice"]))
    assert blank.status_code == 400

    edited = client.put(f"/api/messages/{message['id']}", json={"content": "final"}, headers=_headers(group["alice"]))
    assert edited.status_code == 200
    assert edited.json()["is_edited"] is True
    assert edited.json()["content"] == "final"

    with session_factory() as session:
        system_id = session.execute(
            select(Message.id).where(Message.chat_id == chat_id).order_by(Message.id.asc()).limit(1)
        ).scalar_one()
    system_edit = client.put(f"/api/messages/{system_id}", json={"content": "rewritten"}, headers=_headers(group["alice"]))
    assert system_edit.status_code == 404


def test_delete_rules(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    from_alice = _send(client, group["alice"], chat_id, "from alice")
    from_bob = _send(client, group["bob"], chat_id, "from bob")
    another_from_bob = _send(client, group["bob"], chat_id, "again from bob")

    member_attempt = client.delete(f"/api/messages/{from_alice['id']}", headers=_headers(group["bob"]))
    assert member_attempt.status_code == 404

    outsider_attempt = client.delete(f"/api/messages/{from_bob['id']}", headers=_headers(group["mallory"]))
    assert outsider_attempt.status_code == 404

    own = client.delete(f"/api/messages/{from_bob['id']}", headers=_headers(group["bob"]))
    assert own.status_code == 200
    assert own.json()["is_deleted"] is True

    as_admin = client.delete(f"/api/messages/{another_from_bob['id']}", headers=_headers(group["alice"]))
    assert as_admin.status_code == 200

    again = client.delete(f"/api/messages/{from_bob['id']}", headers=_headers(group["bob"]))
    assert again.status_code == 404

    history = client.get("/api/messages", params={"chat_id": chat_id}, headers=_headers(group["alice"])).json()
    assert [item["content"] for item in history] == ["Alice created the group", "from alice"]


def test_reaction_toggle_flow(client: TestClient, group) -> None:
    chat_id = group["chat_id"]
    message = _send(client, group["alice"], chat_id, "react to me")
    url = f"/api/messages/{message['id']}/reactions"

    added = client.post(url, json={"emoji": "👍"}, headers=_headers(group["bob"]))
    assert added.status_code == 200
    assert added.json()["added"] is True
    assert [reaction["user"]["username"] for reaction in added.json()["reactions"]] == ["bob"]

    client.post(url, json={"emoji": "👍"}, headers=_headers(group["alice"]))
    history = client.get("/api/messages", params={"chat_id": chat_id}, headers=_headers(group["bob"])).json()
    assert len(history[-1]["reactions"]) == 2

    removed = client.post(url, json={"emoji": "👍"}, headers=_headers(group["bob"]))
    assert removed.json()["added"] is False
    assert [reaction["user_id"] for reaction in removed.json()["reactions"]] == [group["alice"]["user"]["id"]]

    outsider = client.post(url, json={"emoji": "👍"}, headers=_headers(group["mallory"]))
    assert outsider.status_code == 404

    client.delete(f"/api/messages/{message['id']}", headers=_headers(group["alice"]))
    on_deleted = client.post(url, json={"emoji": "🎉"}, headers=_headers(group["bob"]))
    assert on_deleted.status_code == 404
