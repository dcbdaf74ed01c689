"""Schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field, constr, model_validator

from kaiflake.schemas.users import UserProfileRead


class UserCreate(BaseModel):
    """Payload for creating a new user via registration."""

    username: constr(strip_whitespace=True, min_length=3, max_length=30) = Field(
        ..., description="Unique user handle consisting of 3-30 characters"
    )
    email: EmailStr
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )
    display_name: constr(strip_whitespace=True, min_length=1, max_length=100)


class LoginRequest(BaseModel):
    """Payload for user login by username or email."""

    username: constr(strip_whitespace=True, min_length=1, max_length=30) | None = None
    email: EmailStr | None = None
    password: constr(min_length=1, max_length=128)

    @model_validator(mode="after")
    def ensure_identifier(self) -> "LoginRequest":
        if not self.username and not self.email:
            raise ValueError("Username or email is required")
        return self


class AuthResponse(BaseModel):
    """Authenticated user together with a bearer token."""

    user: UserProfileRead
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    expires_in: int = Field(..., description="Number of seconds until the token expires")
