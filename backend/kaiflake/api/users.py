"""User profile, search and contact endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from kaiflake.api.deps import get_current_user
from kaiflake.config import get_settings
from kaiflake.database import get_db
from kaiflake.models import Contact, User
from kaiflake.schemas import (
    ContactCreate,
    ContactRead,
    ContactUpdate,
    PublicUser,
    UserProfileRead,
    UserProfileUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

settings = get_settings()


@router.get("/me", response_model=UserProfileRead)
def read_profile(current_user: User = Depends(get_current_user)) -> UserProfileRead:
    """Return profile information for the authenticated user."""

    return UserProfileRead.model_validate(current_user)


@router.put("/me", response_model=UserProfileRead)
def update_profile(
    payload: UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserProfileRead:
    """Update display name, bio or avatar of the current user."""

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    for field, value in changes.items():
        setattr(current_user, field, value or None)
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return UserProfileRead.model_validate(current_user)


@router.get("/search", response_model=list[PublicUser])
def search_users(
    q: str = Query(default=""),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PublicUser]:
    """Find users whose username or display name contains the query."""

    query = q.strip()
    if len(query) < settings.user_search_min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Query must be at least {settings.user_search_min_length} characters",
        )

    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    stmt = (
        select(User)
        .where(
            or_(
                func.lower(User.username).like(pattern, escape="\\"),
                func.lower(User.display_name).like(pattern, escape="\\"),
            )
        )
        .order_by(User.username.asc())
        .limit(settings.user_search_limit)
    )
    users = db.execute(stmt).scalars().all()
    return [PublicUser.model_validate(user) for user in users]


def _serialize_contact(contact: Contact) -> ContactRead:
    return ContactRead(
        id=contact.id,
        contact_id=contact.contact_id,
        nickname=contact.nickname,
        is_blocked=contact.is_blocked,
        created_at=contact.created_at,
        contact=PublicUser.model_validate(contact.contact),
    )


@router.get("/me/contacts", response_model=list[ContactRead])
def list_contacts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ContactRead]:
    """Return the non-blocked contacts of the current user."""

    stmt = (
        select(Contact)
        .join(User, Contact.contact_id == User.id)
        .where(Contact.user_id == current_user.id, Contact.is_blocked.is_(False))
        .order_by(User.display_name.asc(), Contact.id.asc())
        .options(selectinload(Contact.contact))
    )
    contacts = db.execute(stmt).scalars().all()
    return [_serialize_contact(contact) for contact in contacts]


@router.post("/me/contacts", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
def add_contact(
    payload: ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ContactRead:
    """Save another user in the current user's address book."""

    if payload.contact_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot add yourself as contact")

    target = db.get(User, payload.contact_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = db.execute(
        select(Contact.id).where(
            Contact.user_id == current_user.id,
            Contact.contact_id == target.id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Contact already exists")

    contact = Contact(user_id=current_user.id, contact_id=target.id, nickname=payload.nickname)
    contact.contact = target
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info("User %s added contact %s", current_user.id, target.id)
    return _serialize_contact(contact)


@router.patch("/me/contacts/{contact_id}", response_model=ContactRead)
def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ContactRead:
    """Rename or block a saved contact."""

    stmt = (
        select(Contact)
        .where(Contact.user_id == current_user.id, Contact.contact_id == contact_id)
        .options(selectinload(Contact.contact))
    )
    contact = db.execute(stmt).scalar_one_or_none()
    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    if payload.nickname is not None:
        contact.nickname = payload.nickname
    if payload.is_blocked is not None:
        contact.is_blocked = payload.is_blocked
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return _serialize_contact(contact)


@router.get("/{user_id}", response_model=PublicUser)
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PublicUser:
    """Return the public profile of any user."""

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return PublicUser.model_validate(user)
