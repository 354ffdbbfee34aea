"""Anonymous voter token model."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, Integer, String

from superoptimised.database import Base
from superoptimised.models.base import get_uuid_column


class VoterToken(Base):
    """Identity for a voter without an account.

    Only the sha256 hash of the raw cookie token is stored.
    """

    __tablename__ = "voter_tokens"

    voter_token_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)
    vote_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    last_active = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self):
        return f"<VoterToken(voter_token_id={self.voter_token_id}, vote_count={self.vote_count})>"
