"""Schemas for chats, memberships and read state."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from kaiflake.models.enums import ChatRole, ChatType
from kaiflake.schemas.messages import MessageRead
from kaiflake.schemas.users import PublicUser


class ChatCreate(BaseModel):
    """Payload for creating a chat."""

    type: ChatType
    name: constr(strip_whitespace=True, max_length=128) | None = None
    description: constr(strip_whitespace=True, max_length=2000) | None = None
    member_ids: list[int] = Field(default_factory=list, description="Users to add besides the creator")

    @model_validator(mode="after")
    def check_type_constraints(self) -> "ChatCreate":
        if self.type == ChatType.DIRECT and len(self.member_ids) != 1:
            raise ValueError("Direct chat requires exactly one other member")
        if self.type in (ChatType.GROUP, ChatType.CHANNEL) and not self.name:
            raise ValueError("Group and channel chats require a name")
        return self


class ChatCreateResult(BaseModel):
    """Identifier of the created (or reused direct) chat."""

    id: int
    created: bool
    message: str


class ChatRead(BaseModel):
    """Basic chat fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: ChatType
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime


class ChatSummary(ChatRead):
    """Chat list entry augmented with the caller's read state."""

    last_read_message_id: int | None = None
    is_muted: bool = False
    unread_count: int = 0
    last_message: MessageRead | None = None
    other_user: PublicUser | None = None


class ChatMemberRead(BaseModel):
    """Chat participant with profile and role."""

    model_config = ConfigDict(from_attributes=True)

    user: PublicUser
    role: ChatRole
    joined_at: datetime
    last_read_message_id: int | None = None
    is_muted: bool = False


class ChatDetail(ChatRead):
    """Chat with its full member list and the caller's role."""

    members: list[ChatMemberRead]
    user_role: ChatRole


class MarkReadRequest(BaseModel):
    """Payload for moving the caller's read cursor."""

    message_id: int


class ReadStateRead(BaseModel):
    """The caller's cursor and the resulting unread count."""

    chat_id: int
    last_read_message_id: int | None = None
    unread_count: int = 0


class ChatMembersAdd(BaseModel):
    """Payload for inviting users into a group or channel."""

    member_ids: list[int] = Field(..., min_length=1)


class MuteRequest(BaseModel):
    """Payload for muting or unmuting a chat."""

    is_muted: bool
