"""Engagement statistics and XP ledger models."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from superoptimised.database import Base
from superoptimised.models.base import XpActionType, get_uuid_column


class EngagementStats(Base):
    """Running totals for one identity (user or voter token)."""

    __tablename__ = "engagement_stats"

    stats_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = get_uuid_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True, unique=True
    )
    voter_token_id = get_uuid_column(
        ForeignKey("voter_tokens.voter_token_id", ondelete="CASCADE"), nullable=True, unique=True
    )
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    total_votes = Column(Integer, nullable=False, default=0, index=True)
    total_xp = Column(Integer, nullable=False, default=0)
    last_activity = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (voter_token_id IS NULL)",
            name="ck_engagement_stats_single_identity",
        ),
    )

    def __repr__(self):
        return (f"<EngagementStats(stats_id={self.stats_id}, total_votes={self.total_votes}, "
                f"total_xp={self.total_xp})>")


class XpLedger(Base):
    """Append-only record of XP awarded."""

    __tablename__ = "xp_ledger"

    entry_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = get_uuid_column(ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True, index=True)
    voter_token_id = get_uuid_column(
        ForeignKey("voter_tokens.voter_token_id", ondelete="CASCADE"), nullable=True, index=True
    )
    action_type = Column(String(20), nullable=False, default=XpActionType.VOTE.value)
    xp_amount = Column(Integer, nullable=False)
    source_question_id = get_uuid_column(
        ForeignKey("questions.question_id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (voter_token_id IS NULL)",
            name="ck_xp_ledger_single_identity",
        ),
    )

    def __repr__(self):
        return f"<XpLedger(entry_id={self.entry_id}, action_type={self.action_type}, xp_amount={self.xp_amount})>"
