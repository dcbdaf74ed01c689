"""Unit tests for unread counters."""

from __future__ import annotations

import pytest

from kaiflake.core.security import get_password_hash
from kaiflake.models import Chat, ChatMember, ChatRole, ChatType, Message, MessageType, User
from kaiflake.services import unread_count, unread_counts


def _user(db_session, username: str) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password=get_password_hash("secret1"),
        display_name=username.title(),
    )
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture()
def conversation(db_session):
    alice = _user(db_session, "alice")
    bob = _user(db_session, "bob")
    chat = Chat(type=ChatType.GROUP, name="Pair", created_by=alice.id)
    db_session.add(chat)
    db_session.flush()
    alice_member = ChatMember(chat_id=chat.id, user_id=alice.id, role=ChatRole.ADMIN)
    bob_member = ChatMember(chat_id=chat.id, user_id=bob.id)
    db_session.add_all([alice_member, bob_member])
    db_session.add(Message(chat_id=chat.id, sender_id=alice.id, content="Alice created the group", type=MessageType.SYSTEM))
    db_session.commit()
    return {"alice": alice, "bob": bob, "chat": chat, "alice_member": alice_member, "bob_member": bob_member}


def _post(db_session, chat: Chat, sender: User, content: str, *, deleted: bool = False) -> Message:
    message = Message(chat_id=chat.id, sender_id=sender.id, content=content, is_deleted=deleted)
    db_session.add(message)
    db_session.commit()
    return message


def test_unread_count_ignores_own_deleted_and_system(db_session, conversation):
    chat, alice, bob = conversation["chat"], conversation["alice"], conversation["bob"]
    _post(db_session, chat, alice, "one")
    _post(db_session, chat, alice, "two", deleted=True)
    _post(db_session, chat, bob, "three")

    assert unread_count(chat.id, bob.id, None, db_session) == 1
    assert unread_count(chat.id, alice.id, None, db_session) == 1


def test_unread_count_respects_cursor(db_session, conversation):
    chat, alice, bob = conversation["chat"], conversation["alice"], conversation["bob"]
    first = _post(db_session, chat, alice, "one")
    second = _post(db_session, chat, alice, "two")
    third = _post(db_session, chat, alice, "three")

    assert unread_count(chat.id, bob.id, first.id, db_session) == 2
    assert unread_count(chat.id, bob.id, second.id, db_session) == 1
    assert unread_count(chat.id, bob.id, third.id, db_session) == 0


def test_unread_counts_batches_per_chat(db_session, conversation):
    chat, alice, bob = conversation["chat"], conversation["alice"], conversation["bob"]
    quiet = Chat(type=ChatType.CHANNEL, name="Quiet", created_by=alice.id)
    db_session.add(quiet)
    db_session.flush()
    quiet_member = ChatMember(chat_id=quiet.id, user_id=bob.id)
    db_session.add(quiet_member)
    db_session.commit()

    first = _post(db_session, chat, alice, "one")
    _post(db_session, chat, alice, "two")
    bob_member = conversation["bob_member"]
    bob_member.last_read_message_id = first.id
    db_session.commit()

    assert unread_counts([bob_member, quiet_member], db_session) == {chat.id: 1, quiet.id: 0}
    assert unread_counts([], db_session) == {}


def test_unread_counts_rejects_mixed_viewers(db_session, conversation):
    with pytest.raises(ValueError):
        unread_counts([conversation["alice_member"], conversation["bob_member"]], db_session)
