"""Daily analytics rollup."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Column, Date, DateTime, Integer, JSON

from superoptimised.database import Base
from superoptimised.models.base import get_uuid_column


class AnalyticsDaily(Base):
    __tablename__ = "analytics_daily"

    analytics_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, unique=True)
    total_votes = Column(Integer, nullable=False, default=0)
    unique_voters = Column(Integer, nullable=False, default=0)
    total_xp_earned = Column(Integer, nullable=False, default=0)
    popular_questions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self):
        return f"<AnalyticsDaily(date={self.date}, total_votes={self.total_votes})>"
