"""Registered user model."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, String

from superoptimised.database import Base
from superoptimised.models.base import get_uuid_column


class User(Base):
    """Authenticated account. Admin status comes from settings, not the row."""

    __tablename__ = "users"

    user_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    last_login_date = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(user_id={self.user_id}, email={self.email})>"
