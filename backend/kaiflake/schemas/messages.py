"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from kaiflake.models.enums import MessageType


class MessageSender(BaseModel):
    """Lightweight author information for displaying messages."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: str
    avatar_url: str | None = None


class ReplyPreview(BaseModel):
    """Excerpt of the message being replied to."""

    id: int
    sender_id: int
    sender_name: str | None = None
    content: str | None = None
    type: MessageType
    is_deleted: bool = False


class ReactionRead(BaseModel):
    """Single reaction together with the reacting user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    emoji: str
    user_id: int
    user: MessageSender
    created_at: datetime


class MessageRead(BaseModel):
    """Serialized representation of a chat message."""

    id: int
    chat_id: int
    sender_id: int
    sender: MessageSender
    content: str | None = None
    type: MessageType
    media_url: str | None = None
    media_metadata: dict[str, Any] | None = None
    reply_to_id: int | None = None
    reply_to: ReplyPreview | None = None
    is_edited: bool = False
    is_deleted: bool = False
    reactions: list[ReactionRead] = []
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    """Payload for sending a message to a chat."""

    chat_id: int
    content: str | None = None
    type: MessageType = MessageType.TEXT
    reply_to_id: int | None = None
    media_url: constr(strip_whitespace=True, max_length=512) | None = None
    media_metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def ensure_content(self) -> "MessageCreate":
        if self.type == MessageType.SYSTEM:
            raise ValueError("System messages cannot be sent by clients")
        if self.type == MessageType.TEXT and not (self.content or "").strip():
            raise ValueError("Content is required for text messages")
        return self


class MessageUpdate(BaseModel):
    """Payload for editing message content."""

    content: str


class ReactionRequest(BaseModel):
    """Payload for toggling a reaction."""

    emoji: constr(strip_whitespace=True, min_length=1, max_length=32)


class ReactionToggleResult(BaseModel):
    """Outcome of a reaction toggle and the message's current reactions."""

    message_id: int
    emoji: str
    added: bool = Field(..., description="True when the reaction was added, False when removed")
    reactions: list[ReactionRead] = []
