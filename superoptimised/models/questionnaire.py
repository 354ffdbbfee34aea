"""Questionnaire models."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from superoptimised.database import Base
from superoptimised.models.base import QuestionnaireStatus, get_uuid_column


class Questionnaire(Base):
    """An ordered group of questions answered together."""

    __tablename__ = "questionnaires"

    questionnaire_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=QuestionnaireStatus.DRAFT.value, index=True)
    allow_multiple_responses = Column(Boolean, nullable=False, default=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    question_links = relationship(
        "QuestionnaireQuestion",
        back_populates="questionnaire",
        cascade="all, delete-orphan",
        order_by="QuestionnaireQuestion.display_order",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Questionnaire(questionnaire_id={self.questionnaire_id}, status={self.status})>"


class QuestionnaireQuestion(Base):
    """Membership of a question in a questionnaire, with its position."""

    __tablename__ = "questionnaire_questions"

    questionnaire_id = get_uuid_column(
        ForeignKey("questionnaires.questionnaire_id", ondelete="CASCADE"), primary_key=True
    )
    question_id = get_uuid_column(
        ForeignKey("questions.question_id", ondelete="CASCADE"), primary_key=True
    )
    display_order = Column(Integer, nullable=False, default=0)
    is_required = Column(Boolean, nullable=False, default=True)

    questionnaire = relationship("Questionnaire", back_populates="question_links")
    question = relationship("Question", lazy="selectin")

    def __repr__(self):
        return (f"<QuestionnaireQuestion(questionnaire_id={self.questionnaire_id}, "
                f"question_id={self.question_id}, display_order={self.display_order})>")
