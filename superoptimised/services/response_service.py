"""Validate and persist answers to questions."""
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.base import QuestionnaireStatus
from superoptimised.models.question import Question
from superoptimised.models.question_response import QuestionResponse
from superoptimised.models.questionnaire import Questionnaire, QuestionnaireQuestion
from superoptimised.schemas.vote import VoteBreakdown, VoteHistory, VoteHistoryItem, VoteStats
from superoptimised.services.engagement_service import EngagementService
from superoptimised.services.identity import Identity
from superoptimised.services.question_types import validate_response
from superoptimised.utils.exceptions import (
    DuplicateVoteError,
    QuestionNotFoundError,
    QuestionnaireNotFoundError,
)
from superoptimised.utils.log_sanitizer import log_internal_error

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50

BeforeInsertHook = Callable[[], Awaitable[Optional[Identity]]]


@dataclass
class ResponseRecord:
    response: QuestionResponse
    xp_earned: int = 0
    total_xp: int = 0
    vote_number: int = 0


class ResponseService:
    """Records responses and triggers the engagement update."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_live_question(self, question_id: UUID) -> Question:
        question = await self.db.get(Question, question_id)
        if question is None or not question.is_live():
            raise QuestionNotFoundError(question_id)
        return question

    async def _load_questionnaire_for(self, questionnaire_id: UUID, question_id: UUID) -> Questionnaire:
        questionnaire = await self.db.get(Questionnaire, questionnaire_id)
        if questionnaire is None or questionnaire.status != QuestionnaireStatus.ACTIVE.value:
            raise QuestionnaireNotFoundError(questionnaire_id)

        link = await self.db.get(QuestionnaireQuestion, (questionnaire_id, question_id))
        if link is None:
            raise QuestionnaireNotFoundError(questionnaire_id)
        return questionnaire

    async def has_responded(
        self,
        identity: Identity,
        question_id: UUID,
        questionnaire_id: Optional[UUID] = None,
    ) -> bool:
        """Whether ``identity`` already answered ``question_id`` in the same context.

        Standalone votes and answers given inside a questionnaire are tracked
        separately.
        """
        query = select(QuestionResponse.response_id).where(
            QuestionResponse.question_id == question_id,
            identity.filter_for(QuestionResponse),
        )
        if questionnaire_id is None:
            query = query.where(QuestionResponse.questionnaire_id.is_(None))
        else:
            query = query.where(QuestionResponse.questionnaire_id == questionnaire_id)

        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def submit(
        self,
        question_id: UUID,
        identity: Optional[Identity],
        response_data: Any,
        ip_address: Optional[str] = None,
        questionnaire_id: Optional[UUID] = None,
        before_insert: Optional[BeforeInsertHook] = None,
    ) -> ResponseRecord:
        """Validate and store one response.

        ``before_insert`` is awaited once every check has passed and right
        before the row is written, so side effects such as counting the rate
        limit happen only for responses that will be stored. It may raise to
        abort, and it must return the identity when ``identity`` is ``None``
        (a first-time anonymous voter has nothing to check duplicates against).

        Raises:
            QuestionNotFoundError: missing, inactive or out-of-schedule question.
            QuestionnaireNotFoundError: questionnaire missing, not active, or
                not containing the question.
            ResponseValidationError: payload does not fit the question type.
            DuplicateVoteError: repeat answer where the policy forbids one.
        """
        question = await self._load_live_question(question_id)

        allow_multiple = False
        if questionnaire_id is not None:
            questionnaire = await self._load_questionnaire_for(questionnaire_id, question_id)
            allow_multiple = questionnaire.allow_multiple_responses

        normalized = validate_response(question.question_type, question.question_data, response_data)

        if (not allow_multiple and identity is not None
                and await self.has_responded(identity, question_id, questionnaire_id)):
            raise DuplicateVoteError()

        if before_insert is not None:
            identity = await before_insert() or identity
        if identity is None:
            raise ValueError("submit needs an identity or a before_insert hook that supplies one")

        response = QuestionResponse(
            question_id=question_id,
            questionnaire_id=questionnaire_id,
            response_data=normalized,
            ip_address=ip_address,
            created_at=datetime.now(UTC),
            **identity.columns,
        )
        self.db.add(response)
        await self.db.commit()
        logger.info(f"Recorded response {response.response_id} to question {question_id} from {identity.key}")

        record = ResponseRecord(response=response)
        try:
            reward = await EngagementService(self.db).record_vote(identity, question_id, now=response.created_at)
            record.xp_earned = reward.xp_awarded
            record.total_xp = reward.total_xp
            record.vote_number = reward.vote_number
        except Exception as exc:
            log_internal_error(logger, "Engagement update failed after recording response", exc,
                               response_id=response.response_id)
            await self.db.rollback()
            await self.db.refresh(response)

        return record

    async def vote_stats(self, question_id: UUID) -> VoteStats:
        """Total votes and a breakdown by distinct response payload."""
        question = await self.db.get(Question, question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)

        result = await self.db.execute(
            select(QuestionResponse.response_data).where(QuestionResponse.question_id == question_id)
        )
        counts = Counter(json.dumps(data, sort_keys=True) for data in result.scalars())
        total = sum(counts.values())

        return VoteStats(
            question_id=question_id,
            question_type=question.question_type,
            total_votes=total,
            breakdown=[
                VoteBreakdown(value=value, count=count, percentage=round(count / total * 100))
                for value, count in counts.most_common()
            ],
        )

    async def history(self, identity: Optional[Identity], limit: int = HISTORY_LIMIT) -> VoteHistory:
        """The identity's most recent responses with its XP total."""
        if identity is None:
            return VoteHistory(votes=[], total_votes=0, total_xp=0)

        result = await self.db.execute(
            select(QuestionResponse, Question.title, Question.question_type)
            .join(Question, Question.question_id == QuestionResponse.question_id)
            .where(identity.filter_for(QuestionResponse))
            .order_by(QuestionResponse.created_at.desc())
            .limit(limit)
        )
        votes = [
            VoteHistoryItem(
                vote_id=response.response_id,
                question_id=response.question_id,
                question_title=title,
                question_type=question_type,
                questionnaire_id=response.questionnaire_id,
                response=response.response_data,
                voted_at=response.created_at,
            )
            for response, title, question_type in result.all()
        ]

        count_result = await self.db.execute(
            select(func.count(QuestionResponse.response_id)).where(identity.filter_for(QuestionResponse))
        )
        total_xp = await EngagementService(self.db).get_total_xp(identity)
        return VoteHistory(votes=votes, total_votes=int(count_result.scalar_one()), total_xp=total_xp)
