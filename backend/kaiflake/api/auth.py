"""Authentication API endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from kaiflake.api.deps import get_current_user, oauth2_scheme
from kaiflake.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from kaiflake.database import get_db
from kaiflake.models import User, UserSession
from kaiflake.schemas import AuthResponse, LoginRequest, UserCreate, UserProfileRead

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_session(user: User, request: Request | None, db: Session) -> tuple[str, int]:
    issued = create_access_token({"sub": str(user.id)})
    device_info = None
    ip_address = None
    if request is not None:
        device_info = (request.headers.get("user-agent") or "")[:255] or None
        ip_address = request.client.host if request.client else None
    db.add(
        UserSession(
            user_id=user.id,
            token_id=issued.token_id,
            expires_at=issued.expires_at,
            device_info=device_info,
            ip_address=ip_address,
        )
    )
    return issued.token, issued.expires_in


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    user_in: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Register a new user and open a session for them."""

    stmt = select(User.id).where(
        or_(User.username == user_in.username, User.email == str(user_in.email))
    )
    if db.execute(stmt).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    user = User(
        username=user_in.username,
        email=str(user_in.email),
        display_name=user_in.display_name,
        hashed_password=get_password_hash(user_in.password),
    )
    db.add(user)
    db.flush()
    token, expires_in = _issue_session(user, request, db)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (id=%s)", user.username, user.id)

    return AuthResponse(
        user=UserProfileRead.model_validate(user),
        token=token,
        expires_in=expires_in,
    )


@router.post("/login", response_model=AuthResponse)
def login_user(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Authenticate by username or email and return a bearer token."""

    if credentials.username:
        stmt = select(User).where(User.username == credentials.username)
    else:
        stmt = select(User).where(User.email == str(credentials.email))
    db_user = db.execute(stmt).scalar_one_or_none()
    if db_user is None or not verify_password(credentials.password, db_user.hashed_password):
        logger.info("Rejected login for %s", credentials.username or credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    db_user.is_online = True
    db_user.last_seen = datetime.now(timezone.utc)
    token, expires_in = _issue_session(db_user, request, db)
    db.commit()
    db.refresh(db_user)

    return AuthResponse(
        user=UserProfileRead.model_validate(db_user),
        token=token,
        expires_in=expires_in,
    )


@router.post("/logout")
def logout_user(
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    """Revoke the session behind the presented token."""

    payload = decode_access_token(token)
    db.execute(
        delete(UserSession).where(
            UserSession.token_id == str(payload.get("jti")),
            UserSession.user_id == current_user.id,
        )
    )
    db.commit()
    logger.info("User %s logged out", current_user.id)
    return {"message": "Logged out successfully"}
