"""Schemas related to user profiles and contacts."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr


class PublicUser(BaseModel):
    """Public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: str
    avatar_url: str | None = None
    bio: str | None = None
    is_online: bool = False
    last_seen: datetime | None = None


class UserProfileRead(PublicUser):
    """Detailed representation of the current user profile."""

    email: str
    created_at: datetime
    updated_at: datetime


class UserProfileUpdate(BaseModel):
    """Payload for updating profile fields."""

    display_name: constr(strip_whitespace=True, min_length=1, max_length=100) | None = None
    bio: constr(strip_whitespace=True, max_length=500) | None = None
    avatar_url: constr(strip_whitespace=True, max_length=512) | None = None


class ContactCreate(BaseModel):
    """Payload for adding a user to the address book."""

    contact_id: int
    nickname: constr(strip_whitespace=True, min_length=1, max_length=100) | None = None


class ContactUpdate(BaseModel):
    """Payload for renaming or blocking a contact."""

    nickname: constr(strip_whitespace=True, min_length=1, max_length=100) | None = None
    is_blocked: bool | None = None


class ContactRead(BaseModel):
    """Address-book entry with the referenced user's profile."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    nickname: str | None = None
    is_blocked: bool = False
    created_at: datetime
    contact: PublicUser = Field(..., description="Profile of the saved user")
