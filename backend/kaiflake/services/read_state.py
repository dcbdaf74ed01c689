"""Unread counters derived from per-member read cursors."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from kaiflake.models import ChatMember, Message, MessageType


def _unread_criteria(viewer_id: int):
    return (
        Message.sender_id != viewer_id,
        Message.is_deleted.is_(False),
        Message.type != MessageType.SYSTEM,
    )


def unread_count(chat_id: int, viewer_id: int, cursor: int | None, db: Session) -> int:
    """Count messages after ``cursor`` that the viewer has not authored.

    Message ids grow in insertion order, so "after the cursor" is a plain id
    comparison. A ``None`` cursor means nothing has been read yet.
    """

    stmt = select(func.count(Message.id)).where(
        Message.chat_id == chat_id,
        *_unread_criteria(viewer_id),
    )
    if cursor is not None:
        stmt = stmt.where(Message.id > cursor)
    return db.execute(stmt).scalar_one()


def unread_counts(memberships: Iterable[ChatMember], db: Session) -> dict[int, int]:
    """Return ``{chat_id: unread}`` for several memberships of one viewer."""

    memberships = list(memberships)
    if not memberships:
        return {}

    viewer_ids = {membership.user_id for membership in memberships}
    if len(viewer_ids) != 1:
        raise ValueError("Memberships must belong to a single user")
    viewer_id = viewer_ids.pop()

    per_chat = []
    for membership in memberships:
        condition = Message.chat_id == membership.chat_id
        if membership.last_read_message_id is not None:
            condition = and_(condition, Message.id > membership.last_read_message_id)
        per_chat.append(condition)

    stmt = (
        select(Message.chat_id, func.count(Message.id))
        .where(or_(*per_chat), *_unread_criteria(viewer_id))
        .group_by(Message.chat_id)
    )
    counts = {chat_id: count for chat_id, count in db.execute(stmt)}
    return {membership.chat_id: counts.get(membership.chat_id, 0) for membership in memberships}
