"""Authentication schema definitions."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, constr


PasswordStr = constr(min_length=8, max_length=128)
EmailLike = constr(pattern=r"[^@\s]+@[^@\s]+\.[^@\s]+", min_length=5, max_length=255)


class RegisterRequest(BaseModel):
    """Payload for creating a new user account."""

    email: EmailLike
    password: PasswordStr
    display_name: Optional[constr(min_length=1, max_length=80)] = None


class LoginRequest(BaseModel):
    """Login payload."""

    email: EmailLike
    password: PasswordStr


class UserInfo(BaseModel):
    user_id: UUID
    email: str
    display_name: Optional[str] = None
    is_admin: bool
    created_at: datetime
    last_login_date: Optional[datetime] = None


class AuthTokenResponse(BaseModel):
    """Standard response containing the JWT access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo
