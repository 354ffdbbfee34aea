"""Base utilities for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class QuestionType(str, Enum):
    """Question type tags understood by the response validator."""
    BINARY = "binary"
    MULTI_CHOICE = "multi-choice"
    RATING_SCALE = "rating-scale"
    TEXT_RESPONSE = "text-response"
    RANKING = "ranking"
    AB_TEST = "ab-test"


class QuestionnaireStatus(str, Enum):
    """Questionnaire lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class XpActionType(str, Enum):
    """Reasons an XP ledger entry was written."""
    VOTE = "vote"
    STREAK = "streak"
    MILESTONE = "milestone"


class BlogPostType(str, Enum):
    BLOG = "blog"
    JOURNEY = "journey"
    ANNOUNCEMENT = "announcement"


class BlogPostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID stored natively on PostgreSQL and as 32-char hex elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(32))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return value.hex

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that adapts to the database dialect.

    Example:
        question_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        user_id = get_uuid_column(ForeignKey("users.user_id"), nullable=True)
    """
    return Column(
        AdaptiveUUID(),
        *args,
        **kwargs
    )
