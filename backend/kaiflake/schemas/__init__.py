"""Pydantic schemas for API payloads."""

from .auth import AuthResponse, LoginRequest, UserCreate
from .chats import (
    ChatCreate,
    ChatCreateResult,
    ChatDetail,
    ChatMemberRead,
    ChatMembersAdd,
    ChatRead,
    ChatSummary,
    MarkReadRequest,
    MuteRequest,
    ReadStateRead,
)
from .messages import (
    MessageCreate,
    MessageRead,
    MessageSender,
    MessageUpdate,
    ReactionRead,
    ReactionRequest,
    ReactionToggleResult,
    ReplyPreview,
)
from .users import (
    ContactCreate,
    ContactRead,
    ContactUpdate,
    PublicUser,
    UserProfileRead,
    UserProfileUpdate,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "UserCreate",
    "ChatCreate",
    "ChatCreateResult",
    "ChatDetail",
    "ChatMemberRead",
    "ChatMembersAdd",
    "ChatRead",
    "ChatSummary",
    "MarkReadRequest",
    "MuteRequest",
    "ReadStateRead",
    "MessageCreate",
    "MessageRead",
    "MessageSender",
    "MessageUpdate",
    "ReactionRead",
    "ReactionRequest",
    "ReactionToggleResult",
    "ReplyPreview",
    "ContactCreate",
    "ContactRead",
    "ContactUpdate",
    "PublicUser",
    "UserProfileRead",
    "UserProfileUpdate",
]
