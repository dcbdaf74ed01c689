"""Core utilities for the Kaif Lake backend."""

from .security import (
    IssuedToken,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)

__all__ = [
    "IssuedToken",
    "create_access_token",
    "decode_access_token",
    "get_password_hash",
    "verify_password",
]
