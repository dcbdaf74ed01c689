"""Chat directory endpoints: listing, creation, membership and read state."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, selectinload

from kaiflake.api.deps import ensure_chat_admin, get_current_user, require_chat_member
from kaiflake.api.messages import MESSAGE_LOAD_OPTIONS, serialize_message
from kaiflake.database import get_db
from kaiflake.models import Chat, ChatMember, ChatRole, ChatType, Message, MessageType, User
from kaiflake.schemas import (
    ChatCreate,
    ChatCreateResult,
    ChatDetail,
    ChatMemberRead,
    ChatMembersAdd,
    ChatSummary,
    MarkReadRequest,
    MessageRead,
    MuteRequest,
    PublicUser,
    ReadStateRead,
)
from kaiflake.services import unread_count, unread_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


def _normalize_pair(user_a: int, user_b: int) -> tuple[int, int]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def _direct_key(user_a: int, user_b: int) -> str:
    low, high = _normalize_pair(user_a, user_b)
    return f"{low}:{high}"


def _find_direct_chat(user_a: int, user_b: int, db: Session) -> Chat | None:
    first = aliased(ChatMember)
    second = aliased(ChatMember)
    stmt = (
        select(Chat)
        .join(first, and_(first.chat_id == Chat.id, first.user_id == user_a))
        .join(second, and_(second.chat_id == Chat.id, second.user_id == user_b))
        .where(Chat.type == ChatType.DIRECT)
        .order_by(Chat.id.asc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def _system_text(chat_type: ChatType, creator: User) -> str:
    if chat_type == ChatType.DIRECT:
        return "Chat started"
    return f"{creator.display_name} created the {chat_type.value}"


def _ensure_users_exist(user_ids: Iterable[int], db: Session) -> None:
    wanted = set(user_ids)
    if not wanted:
        return
    found = set(db.execute(select(User.id).where(User.id.in_(wanted))).scalars())
    if found != wanted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Some users were not found")


def _latest_messages(chat_ids: list[int], db: Session) -> dict[int, MessageRead]:
    if not chat_ids:
        return {}
    latest_ids = (
        select(func.max(Message.id))
        .where(Message.chat_id.in_(chat_ids), Message.is_deleted.is_(False))
        .group_by(Message.chat_id)
    )
    stmt = select(Message).where(Message.id.in_(latest_ids)).options(*MESSAGE_LOAD_OPTIONS)
    return {message.chat_id: serialize_message(message) for message in db.execute(stmt).scalars()}


def _other_member(chat: Chat, user_id: int) -> User | None:
    for member in chat.members:
        if member.user_id != user_id:
            return member.user
    return None


def _serialize_summary(
    chat: Chat,
    membership: ChatMember,
    *,
    unread: int,
    last_message: MessageRead | None,
) -> ChatSummary:
    summary = ChatSummary(
        id=chat.id,
        type=chat.type,
        name=chat.name,
        description=chat.description,
        avatar_url=chat.avatar_url,
        created_by=chat.created_by,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        last_read_message_id=membership.last_read_message_id,
        is_muted=membership.is_muted,
        unread_count=unread,
        last_message=last_message,
    )
    if chat.type == ChatType.DIRECT:
        other = _other_member(chat, membership.user_id)
        if other is not None:
            summary.other_user = PublicUser.model_validate(other)
            summary.name = other.display_name
            summary.avatar_url = other.avatar_url
    return summary


@router.get("", response_model=list[ChatSummary])
def list_chats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ChatSummary]:
    """Return every chat of the current user, most recently active first."""

    stmt = (
        select(ChatMember)
        .join(Chat, Chat.id == ChatMember.chat_id)
        .where(ChatMember.user_id == current_user.id)
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
        .options(selectinload(ChatMember.chat).selectinload(Chat.members).selectinload(ChatMember.user))
    )
    memberships = list(db.execute(stmt).scalars())
    counts = unread_counts(memberships, db)
    latest = _latest_messages([membership.chat_id for membership in memberships], db)

    return [
        _serialize_summary(
            membership.chat,
            membership,
            unread=counts.get(membership.chat_id, 0),
            last_message=latest.get(membership.chat_id),
        )
        for membership in memberships
    ]


def _insert_chat(payload: ChatCreate, member_ids: list[int], creator: User, db: Session) -> Chat:
    is_direct = payload.type == ChatType.DIRECT
    chat = Chat(
        type=payload.type,
        name=None if is_direct else payload.name,
        description=payload.description,
        created_by=creator.id,
        direct_key=_direct_key(creator.id, member_ids[0]) if is_direct else None,
    )
    db.add(chat)
    db.flush()

    db.add(ChatMember(chat_id=chat.id, user_id=creator.id, role=ChatRole.ADMIN))
    for member_id in member_ids:
        db.add(ChatMember(chat_id=chat.id, user_id=member_id, role=ChatRole.MEMBER))
    db.add(
        Message(
            chat_id=chat.id,
            sender_id=creator.id,
            content=_system_text(payload.type, creator),
            type=MessageType.SYSTEM,
        )
    )
    db.commit()
    return chat


@router.post("", response_model=ChatCreateResult, status_code=status.HTTP_201_CREATED)
def create_chat(
    payload: ChatCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatCreateResult:
    """Create a chat, or return the existing direct chat for the same pair."""

    member_ids = list(
        dict.fromkeys(member_id for member_id in payload.member_ids if member_id != current_user.id)
    )
    if payload.type == ChatType.DIRECT and not member_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a direct chat with yourself",
        )
    _ensure_users_exist(member_ids, db)

    if payload.type == ChatType.DIRECT:
        existing = _find_direct_chat(current_user.id, member_ids[0], db)
        if existing is not None:
            response.status_code = status.HTTP_200_OK
            return ChatCreateResult(id=existing.id, created=False, message="Chat already exists")

    try:
        chat = _insert_chat(payload, member_ids, current_user, db)
    except IntegrityError:
        db.rollback()
        if payload.type != ChatType.DIRECT:
            raise
        existing = _find_direct_chat(current_user.id, member_ids[0], db)
        if existing is None:
            raise
        logger.info(
            "Direct chat %s for users %s and %s was created concurrently",
            existing.id,
            current_user.id,
            member_ids[0],
        )
        response.status_code = status.HTTP_200_OK
        return ChatCreateResult(id=existing.id, created=False, message="Chat already exists")

    logger.info("User %s created %s chat %s", current_user.id, chat.type.value, chat.id)
    return ChatCreateResult(id=chat.id, created=True, message="Chat created successfully")


def _serialize_detail(chat: Chat, membership: ChatMember) -> ChatDetail:
    return ChatDetail(
        id=chat.id,
        type=chat.type,
        name=chat.name,
        description=chat.description,
        avatar_url=chat.avatar_url,
        created_by=chat.created_by,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        members=[ChatMemberRead.model_validate(member) for member in chat.members],
        user_role=membership.role,
    )


def _load_chat(chat_id: int, db: Session) -> Chat:
    stmt = (
        select(Chat)
        .where(Chat.id == chat_id)
        .options(selectinload(Chat.members).selectinload(ChatMember.user))
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one()


@router.get("/{chat_id}", response_model=ChatDetail)
def read_chat(
    chat_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatDetail:
    """Return chat details with members and the caller's role."""

    membership = require_chat_member(chat_id, current_user.id, db)
    return _serialize_detail(_load_chat(chat_id, db), membership)


@router.post("/{chat_id}/read", response_model=ReadStateRead)
def mark_chat_read(
    chat_id: int,
    payload: MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadStateRead:
    """Move the caller's read cursor to the given message."""

    membership = require_chat_member(chat_id, current_user.id, db)
    message_id = db.execute(
        select(Message.id).where(Message.id == payload.message_id, Message.chat_id == chat_id)
    ).scalar_one_or_none()
    if message_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    membership.last_read_message_id = message_id
    db.add(membership)
    db.commit()

    return ReadStateRead(
        chat_id=chat_id,
        last_read_message_id=message_id,
        unread_count=unread_count(chat_id, current_user.id, message_id, db),
    )


@router.post("/{chat_id}/members", response_model=ChatDetail)
def add_chat_members(
    chat_id: int,
    payload: ChatMembersAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatDetail:
    """Invite users into a group or channel. Admins only."""

    membership = require_chat_member(chat_id, current_user.id, db)
    ensure_chat_admin(membership)

    chat = _load_chat(chat_id, db)
    if chat.type == ChatType.DIRECT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Members cannot be added to a direct chat",
        )

    requested = list(dict.fromkeys(payload.member_ids))
    _ensure_users_exist(requested, db)
    new_ids = [user_id for user_id in requested if not chat.has_user(user_id)]
    if new_ids:
        for user_id in new_ids:
            db.add(ChatMember(chat_id=chat.id, user_id=user_id, role=ChatRole.MEMBER))
        added_names = db.execute(
            select(User.display_name).where(User.id.in_(new_ids)).order_by(User.id.asc())
        ).scalars().all()
        db.add(
            Message(
                chat_id=chat.id,
                sender_id=current_user.id,
                content=f"{current_user.display_name} added {', '.join(added_names)}",
                type=MessageType.SYSTEM,
            )
        )
        chat.updated_at = datetime.now(timezone.utc)
        db.add(chat)
        db.commit()
        logger.info("User %s added %s to chat %s", current_user.id, new_ids, chat.id)

    return _serialize_detail(_load_chat(chat_id, db), membership)


@router.put("/{chat_id}/mute", response_model=ChatMemberRead)
def set_chat_muted(
    chat_id: int,
    payload: MuteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatMemberRead:
    """Mute or unmute a chat for the caller."""

    membership = require_chat_member(chat_id, current_user.id, db)
    membership.is_muted = payload.is_muted
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return ChatMemberRead.model_validate(membership)
