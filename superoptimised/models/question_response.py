"""Recorded answers to questions."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, JSON, String

from superoptimised.database import Base
from superoptimised.models.base import get_uuid_column


class QuestionResponse(Base):
    """One validated answer, attributed to exactly one identity."""

    __tablename__ = "question_responses"

    response_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    question_id = get_uuid_column(
        ForeignKey("questions.question_id", ondelete="CASCADE"), nullable=False, index=True
    )
    questionnaire_id = get_uuid_column(
        ForeignKey("questionnaires.questionnaire_id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id = get_uuid_column(ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True)
    voter_token_id = get_uuid_column(
        ForeignKey("voter_tokens.voter_token_id", ondelete="CASCADE"), nullable=True
    )
    response_data = Column(JSON, nullable=False)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (voter_token_id IS NULL)",
            name="ck_question_responses_single_identity",
        ),
        Index("ix_question_responses_question_user", "question_id", "user_id"),
        Index("ix_question_responses_question_voter", "question_id", "voter_token_id"),
    )

    def __repr__(self):
        return f"<QuestionResponse(response_id={self.response_id}, question_id={self.question_id})>"
