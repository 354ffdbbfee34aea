"""Question model."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text

from superoptimised.database import Base
from superoptimised.models.base import get_uuid_column
from superoptimised.utils.datetime_helpers import ensure_utc


class Question(Base):
    """A votable question.

    ``question_data`` holds the type-specific configuration (options, scale
    bounds, ranking items and so on). Questions are never deleted, only
    deactivated, so their responses stay attributable.
    """

    __tablename__ = "questions"

    question_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    question_type = Column(String(32), nullable=False)
    question_data = Column(JSON, nullable=False, default=dict)
    category = Column(String(100), nullable=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    scheduled_start = Column(DateTime(timezone=True), nullable=True)
    scheduled_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_questions_active_order", "is_active", "display_order"),
    )

    def is_live(self, now: datetime | None = None) -> bool:
        """Active and inside the optional schedule window."""
        if not self.is_active:
            return False
        now = now or datetime.now(UTC)
        start = ensure_utc(self.scheduled_start)
        end = ensure_utc(self.scheduled_end)
        if start and now < start:
            return False
        if end and now > end:
            return False
        return True

    def __repr__(self):
        return f"<Question(question_id={self.question_id}, type={self.question_type}, title={self.title!r})>"
