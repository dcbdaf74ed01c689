"""HTTP endpoints for managing chat messages."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from kaiflake.api.deps import get_current_user, require_chat_member
from kaiflake.config import get_settings
from kaiflake.database import get_db
from kaiflake.models import Chat, ChatMember, ChatRole, Message, MessageReaction, MessageType, User
from kaiflake.schemas import (
    MessageCreate,
    MessageRead,
    MessageSender,
    MessageUpdate,
    ReactionRead,
    ReactionRequest,
    ReactionToggleResult,
    ReplyPreview,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

settings = get_settings()

MESSAGE_ACCESS_DENIED = "Message not found or access denied"

MESSAGE_LOAD_OPTIONS = (
    selectinload(Message.sender),
    selectinload(Message.reply_to).selectinload(Message.sender),
    selectinload(Message.reactions).selectinload(MessageReaction.user),
)


def _serialize_reaction(reaction: MessageReaction) -> ReactionRead:
    return ReactionRead(
        id=reaction.id,
        emoji=reaction.emoji,
        user_id=reaction.user_id,
        user=MessageSender.model_validate(reaction.user),
        created_at=reaction.created_at,
    )


def _reply_preview(message: Message) -> ReplyPreview | None:
    # Built from the referenced row as it is now, so later edits show up.
    target = message.reply_to
    if target is None:
        return None
    return ReplyPreview(
        id=target.id,
        sender_id=target.sender_id,
        sender_name=target.sender.display_name if target.sender else None,
        content=None if target.is_deleted else target.content,
        type=target.type,
        is_deleted=target.is_deleted,
    )


def serialize_message(message: Message, *, with_reactions: bool = True) -> MessageRead:
    return MessageRead(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        sender=MessageSender.model_validate(message.sender),
        content=message.content,
        type=message.type,
        media_url=message.media_url,
        media_metadata=message.media_metadata,
        reply_to_id=message.reply_to_id,
        reply_to=_reply_preview(message),
        is_edited=message.is_edited,
        is_deleted=message.is_deleted,
        reactions=[_serialize_reaction(reaction) for reaction in message.reactions]
        if with_reactions
        else [],
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def serialize_message_by_id(message_id: int, db: Session) -> MessageRead:
    stmt = select(Message).where(Message.id == message_id).options(*MESSAGE_LOAD_OPTIONS)
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return serialize_message(message)


def _get_accessible_message(message_id: int, user_id: int, db: Session) -> tuple[Message, ChatMember]:
    """Load a visible message together with the caller's membership in its chat."""

    stmt = (
        select(Message, ChatMember)
        .join(
            ChatMember,
            and_(ChatMember.chat_id == Message.chat_id, ChatMember.user_id == user_id),
        )
        .where(Message.id == message_id, Message.is_deleted.is_(False))
    )
    row = db.execute(stmt).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=MESSAGE_ACCESS_DENIED)
    return row[0], row[1]


def _checked_content(content: str | None) -> str | None:
    """Return content as sent, or ``None`` when it is blank."""

    if content is None or not content.strip():
        return None
    if len(content) > settings.chat_message_max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message exceeds maximum length of {settings.chat_message_max_length} characters",
        )
    return content


@router.get("", response_model=list[MessageRead])
def list_messages(
    chat_id: int = Query(...),
    limit: int = Query(default=settings.chat_history_default_limit, ge=1),
    before: int | None = Query(default=None, description="Only return messages older than this one"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MessageRead]:
    """Return a chronological page of visible messages, newest page first."""

    require_chat_member(chat_id, current_user.id, db)
    limit = min(limit, settings.chat_history_max_limit)

    stmt = select(Message).where(Message.chat_id == chat_id, Message.is_deleted.is_(False))
    if before is not None:
        pivot_id = db.execute(
            select(Message.id).where(Message.id == before, Message.chat_id == chat_id)
        ).scalar_one_or_none()
        if pivot_id is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        # Compare against the stored column so the database does the timestamp math.
        pivot_created_at = (
            select(Message.created_at).where(Message.id == pivot_id).scalar_subquery()
        )
        stmt = stmt.where(
            or_(
                Message.created_at < pivot_created_at,
                and_(Message.created_at == pivot_created_at, Message.id < pivot_id),
            )
        )

    stmt = (
        stmt.order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .options(*MESSAGE_LOAD_OPTIONS)
    )
    rows = list(db.execute(stmt).scalars())
    rows.reverse()
    return [serialize_message(message) for message in rows]


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    """Append a message to a chat the caller belongs to."""

    require_chat_member(payload.chat_id, current_user.id, db)
    content = _checked_content(payload.content)

    if payload.reply_to_id is not None:
        reply_target = db.execute(
            select(Message.id).where(
                Message.id == payload.reply_to_id,
                Message.chat_id == payload.chat_id,
                Message.is_deleted.is_(False),
            )
        ).scalar_one_or_none()
        if reply_target is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reply target mismatch")

    message = Message(
        chat_id=payload.chat_id,
        sender_id=current_user.id,
        content=content,
        type=payload.type,
        media_url=payload.media_url or None,
        media_metadata=payload.media_metadata,
        reply_to_id=payload.reply_to_id,
    )
    db.add(message)
    db.flush()

    chat = db.get(Chat, payload.chat_id)
    chat.updated_at = datetime.now(timezone.utc)
    db.add(chat)
    db.commit()
    logger.info("User %s sent %s message %s to chat %s", current_user.id, message.type.value, message.id, chat.id)

    return serialize_message_by_id(message.id, db)


@router.put("/{message_id}", response_model=MessageRead)
def edit_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    """Replace the content of one of the caller's own messages."""

    stmt = select(Message).where(
        Message.id == message_id,
        Message.sender_id == current_user.id,
        Message.is_deleted.is_(False),
        Message.type != MessageType.SYSTEM,
    )
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=MESSAGE_ACCESS_DENIED)

    content = _checked_content(payload.content)
    if content is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content is required")

    message.content = content
    message.is_edited = True
    db.add(message)
    db.commit()

    return serialize_message_by_id(message.id, db)


@router.delete("/{message_id}", response_model=MessageRead)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    """Soft-delete a message as its sender or as an admin of its chat."""

    message, membership = _get_accessible_message(message_id, current_user.id, db)
    if message.sender_id != current_user.id and membership.role != ChatRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=MESSAGE_ACCESS_DENIED)

    message.is_deleted = True
    db.add(message)
    db.commit()
    logger.info("User %s deleted message %s in chat %s", current_user.id, message.id, message.chat_id)

    return serialize_message_by_id(message.id, db)


def _load_reactions(message_id: int, db: Session) -> list[MessageReaction]:
    stmt = (
        select(MessageReaction)
        .where(MessageReaction.message_id == message_id)
        .order_by(MessageReaction.id.asc())
        .options(selectinload(MessageReaction.user))
    )
    return list(db.execute(stmt).scalars())


@router.post("/{message_id}/reactions", response_model=ReactionToggleResult)
def toggle_reaction(
    message_id: int,
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReactionToggleResult:
    """Add the caller's reaction, or remove it if it is already there."""

    message, _ = _get_accessible_message(message_id, current_user.id, db)
    stmt = select(MessageReaction).where(
        MessageReaction.message_id == message.id,
        MessageReaction.user_id == current_user.id,
        MessageReaction.emoji == payload.emoji,
    )
    existing = db.execute(stmt).scalar_one_or_none()
    if existing is not None:
        db.delete(existing)
        added = False
    else:
        db.add(MessageReaction(message_id=message.id, user_id=current_user.id, emoji=payload.emoji))
        added = True

    try:
        db.commit()
    except IntegrityError:
        # A concurrent toggle inserted the same row first.
        db.rollback()
        added = db.execute(stmt).scalar_one_or_none() is not None

    return ReactionToggleResult(
        message_id=message_id,
        emoji=payload.emoji,
        added=added,
        reactions=[_serialize_reaction(reaction) for reaction in _load_reactions(message_id, db)],
    )
