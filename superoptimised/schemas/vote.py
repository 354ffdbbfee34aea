"""Vote-related Pydantic schemas."""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from superoptimised.schemas.base import BaseSchema


class VoteSubmission(BaseSchema):
    """An answer to one question, optionally given inside a questionnaire."""
    question_id: UUID
    response: Any
    questionnaire_id: Optional[UUID] = None


class VoteResult(BaseSchema):
    success: bool = True
    vote_id: UUID
    xp_earned: int
    total_xp: int
    vote_number: int
    message: str


class VoteBreakdown(BaseSchema):
    value: str
    count: int
    percentage: int


class VoteStats(BaseSchema):
    question_id: UUID
    question_type: str
    total_votes: int
    breakdown: list[VoteBreakdown]


class VoteHistoryItem(BaseSchema):
    vote_id: UUID
    question_id: UUID
    question_title: str
    question_type: str
    questionnaire_id: Optional[UUID] = None
    response: dict[str, Any]
    voted_at: datetime


class VoteHistory(BaseSchema):
    votes: list[VoteHistoryItem]
    total_votes: int
    total_xp: int


class RateLimitStatusResponse(BaseSchema):
    remaining: int
    reset_time: datetime
    limit: int
