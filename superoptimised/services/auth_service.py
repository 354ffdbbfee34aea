"""Authentication and authorization helpers."""
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.config import get_settings
from superoptimised.models.user import User
from superoptimised.utils.passwords import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Raised when authentication fails."""


class AuthService:
    """Service responsible for credential management and JWT issuance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self.db.get(User, user_id)

    async def register_user(self, email: str, password: str, display_name: str | None = None) -> User:
        """Create a new user with provided credentials."""
        email = email.strip().lower()
        try:
            validate_password_strength(password)
        except PasswordValidationError as exc:
            raise AuthError(str(exc)) from exc

        if await self.get_user_by_email(email) is not None:
            raise AuthError("email_taken")

        user = User(
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise AuthError("email_taken") from exc
        await self.db.refresh(user)
        logger.info("Created user %s via credential signup", user.user_id)
        return user

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    async def authenticate_user(self, email: str, password: str) -> User:
        """Authenticate a user using email and password."""
        user = await self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthError("Email/password combination is invalid")

        user.last_login_date = datetime.now(UTC)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    def is_admin(self, user: User) -> bool:
        return self.settings.is_admin_email(user.email)

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    def _access_token_payload(self, user: User) -> dict[str, str | int]:
        expire = datetime.now(UTC) + timedelta(minutes=self.settings.access_token_exp_minutes)
        return {
            "sub": str(user.user_id),
            "email": user.email,
            "exp": int(expire.timestamp()),
        }

    def create_access_token(self, user: User) -> tuple[str, int]:
        payload = self._access_token_payload(user)
        token = jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)
        expires_in = self.settings.access_token_exp_minutes * 60
        return token, expires_in

    def decode_access_token(self, token: str) -> dict[str, str]:
        try:
            return jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token") from exc
