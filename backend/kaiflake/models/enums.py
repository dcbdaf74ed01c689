from __future__ import annotations

from enum import Enum


class ChatType(str, Enum):
    """Kinds of conversations a user can take part in."""

    DIRECT = "direct"
    GROUP = "group"
    CHANNEL = "channel"


class ChatRole(str, Enum):
    """Roles that a user can have inside a chat."""

    ADMIN = "admin"
    MEMBER = "member"


class MessageType(str, Enum):
    """Payload kinds carried by a message."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    SYSTEM = "system"
