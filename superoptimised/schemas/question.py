"""Question schemas."""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from superoptimised.models.base import QuestionType
from superoptimised.schemas.base import BaseSchema


class QuestionCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    question_type: QuestionType
    question_data: dict[str, Any] = Field(default_factory=dict)
    category: Optional[str] = Field(default=None, max_length=100)
    display_order: int = 0
    is_active: bool = False
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None


class QuestionUpdate(BaseSchema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    question_data: Optional[dict[str, Any]] = None
    category: Optional[str] = Field(default=None, max_length=100)
    display_order: Optional[int] = None
    is_active: Optional[bool] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None


class QuestionActiveUpdate(BaseSchema):
    is_active: bool


class QuestionOrderItem(BaseSchema):
    question_id: UUID
    display_order: int


class QuestionOut(BaseSchema):
    question_id: UUID
    title: str
    description: Optional[str] = None
    question_type: str
    question_data: dict[str, Any]
    category: Optional[str] = None
    display_order: int
    is_active: bool
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    response_count: int = 0


class OptionResult(BaseSchema):
    option: str
    label: Optional[str] = None
    count: int
    percentage: int


class RankingItemResult(BaseSchema):
    item: str
    label: Optional[str] = None
    average_position: Optional[float] = None
    first_place_count: int


class QuestionResults(BaseSchema):
    question_id: UUID
    question_type: str
    total_responses: int
    options: Optional[list[OptionResult]] = None
    average_rating: Optional[float] = None
    distribution: Optional[dict[str, int]] = None
    ranking: Optional[list[RankingItemResult]] = None
    recent_texts: Optional[list[str]] = None


class QuestionAnalytics(BaseSchema):
    question_id: UUID
    title: str
    question_type: str
    total_responses: int
    unique_voters: int
    responses_over_time: dict[str, int]
    average_responses_per_day: float
    is_active: bool
    created_at: datetime


class DeactivateResult(BaseSchema):
    question_id: UUID
    is_active: bool
    message: str
