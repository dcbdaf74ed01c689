"""FastAPI dependencies for the API layer."""

from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from kaiflake.core.security import decode_access_token
from kaiflake.database import get_db
from kaiflake.models import ChatMember, ChatRole, User, UserSession

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

CHAT_ACCESS_DENIED = "Chat not found or access denied"


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the bearer token."""

    return get_user_from_token(token, db)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token with a live session or raise HTTP 401."""

    payload = decode_access_token(token)
    sub = payload.get("sub")
    token_id = payload.get("jti")
    if sub is None or token_id is None:
        raise _credentials_error()

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _credentials_error() from None

    session_stmt = select(UserSession.id).where(
        UserSession.token_id == str(token_id),
        UserSession.user_id == user_id,
        UserSession.expires_at > datetime.now(timezone.utc),
    )
    if db.execute(session_stmt).scalar_one_or_none() is None:
        raise _credentials_error()

    user = db.get(User, user_id)
    if user is None:
        raise _credentials_error()
    return user


def get_chat_member(chat_id: int, user_id: int, db: Session) -> ChatMember | None:
    """Return membership entry for the given user and chat if it exists."""

    stmt = select(ChatMember).where(
        ChatMember.chat_id == chat_id,
        ChatMember.user_id == user_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def require_chat_member(chat_id: int, user_id: int, db: Session) -> ChatMember:
    """Ensure the user belongs to the chat.

    Missing chats and chats the user is not part of produce the same 404 so
    that non-members cannot tell which chat ids exist.
    """

    membership = get_chat_member(chat_id, user_id, db)
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=CHAT_ACCESS_DENIED,
        )
    return membership


def ensure_chat_admin(membership: ChatMember) -> None:
    """Verify that the membership carries the admin role."""

    if membership.role != ChatRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only chat admins can do this",
        )
