"""Database models package."""

from .base import Base
from .chat import (
    Chat,
    ChatMember,
    Contact,
    Message,
    MessageReaction,
    User,
    UserSession,
)
from .enums import ChatRole, ChatType, MessageType

__all__ = [
    "Base",
    "User",
    "UserSession",
    "Chat",
    "ChatMember",
    "Message",
    "MessageReaction",
    "Contact",
    "ChatType",
    "ChatRole",
    "MessageType",
]
