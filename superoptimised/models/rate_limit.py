"""Per-IP, per-action request counters."""
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from superoptimised.database import Base
from superoptimised.models.base import AdaptiveUUID


class RateLimit(Base):
    """Fixed-window counter keyed by (ip_address, action_type).

    Writes go through a single INSERT ... ON CONFLICT statement, so the unique
    constraint below is what makes concurrent increments safe.
    """

    __tablename__ = "rate_limits"

    id: Mapped[UUID] = mapped_column(AdaptiveUUID(), primary_key=True, default=uuid4)
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("ip_address", "action_type", name="uq_rate_limits_ip_action"),
    )

    def __repr__(self):
        return (f"<RateLimit(ip_address={self.ip_address}, action_type={self.action_type}, "
                f"request_count={self.request_count})>")
