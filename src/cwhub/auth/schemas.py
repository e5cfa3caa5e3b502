"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Local registration. Email is optional."""

    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)
    email: EmailStr | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        """Normalize email to lowercase."""
        return v.lower().strip() if v else None


class LoginRequest(BaseModel):
    """Login with username + password."""

    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Public view of the signed-in user. Never includes the password hash."""

    id: str
    username: str
    email: str | None = None
    is_premium: bool
    auth_method: str
    created_at: datetime | None = None
    last_login: datetime | None = None
    login_count: int = 0


class SessionResponse(BaseModel):
    """Issued on login and registration. The token is also set as a cookie."""

    session_token: str
    expires_in: int
    user: UserResponse


class FederatedAuthorizeResponse(BaseModel):
    """Where to send the browser to sign in with the identity provider."""

    authorize_url: str
    state: str
