"""Questionnaire schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from superoptimised.models.base import QuestionnaireStatus
from superoptimised.schemas.base import BaseSchema
from superoptimised.schemas.question import QuestionOut


class QuestionnaireCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    allow_multiple_responses: bool = False
    question_ids: list[UUID] = Field(default_factory=list)


class QuestionnaireUpdate(BaseSchema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    allow_multiple_responses: Optional[bool] = None
    status: Optional[QuestionnaireStatus] = None


class QuestionnaireStatusUpdate(BaseSchema):
    status: QuestionnaireStatus


class QuestionnaireQuestionAdd(BaseSchema):
    question_id: UUID
    display_order: Optional[int] = None
    is_required: bool = True


class QuestionnaireQuestionOrder(BaseSchema):
    question_id: UUID
    display_order: int


class QuestionnaireReorder(BaseSchema):
    question_orders: list[QuestionnaireQuestionOrder]


class QuestionnaireQuestionOut(BaseSchema):
    question_id: UUID
    display_order: int
    is_required: bool
    question: QuestionOut


class QuestionnaireOut(BaseSchema):
    questionnaire_id: UUID
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    status: str
    allow_multiple_responses: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    question_count: int = 0
    response_count: int = 0
    questions: list[QuestionnaireQuestionOut] = Field(default_factory=list)


class QuestionnaireList(BaseSchema):
    questionnaires: list[QuestionnaireOut]
    total: int
    limit: int
    offset: int
    has_more: bool


class QuestionnaireStats(BaseSchema):
    total_questionnaires: int
    active_questionnaires: int
    total_questions: int
    total_respondents: int
    completed_respondents: int
    completion_rate: int
