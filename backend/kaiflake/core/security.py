"""Security helpers for password hashing and token management."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from kaiflake.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(slots=True)
class IssuedToken:
    """Signed access token together with the session it is bound to."""

    token: str
    token_id: str
    expires_at: datetime
    expires_in: int


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hashed counterpart."""

    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database."""

    return pwd_context.hash(password)


def new_token_id() -> str:
    return secrets.token_urlsafe(24)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: timedelta | None = None,
    *,
    token_id: str | None = None,
) -> IssuedToken:
    """Create a signed JWT access token bound to a session identifier."""

    lifetime = (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.access_token_expire_minutes)
    )
    expire = datetime.now(timezone.utc) + lifetime
    jti = token_id or new_token_id()
    to_encode = data.copy()
    to_encode.update({"exp": expire, "jti": jti})
    token = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return IssuedToken(
        token=token,
        token_id=jti,
        expires_at=expire,
        expires_in=int(lifetime.total_seconds()),
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc
    return payload
