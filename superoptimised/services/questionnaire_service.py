"""Questionnaire management."""
import logging
from collections import defaultdict
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.base import QuestionnaireStatus
from superoptimised.models.question import Question
from superoptimised.models.question_response import QuestionResponse
from superoptimised.models.questionnaire import Questionnaire, QuestionnaireQuestion
from superoptimised.schemas.questionnaire import (
    QuestionnaireCreate,
    QuestionnaireList,
    QuestionnaireOut,
    QuestionnaireQuestionAdd,
    QuestionnaireQuestionOrder,
    QuestionnaireQuestionOut,
    QuestionnaireStats,
    QuestionnaireUpdate,
)
from superoptimised.services.question_service import QuestionService
from superoptimised.utils.exceptions import (
    QuestionConfigError,
    QuestionNotFoundError,
    QuestionnaireNotFoundError,
)

logger = logging.getLogger(__name__)


def _identity_key(user_id, voter_token_id) -> tuple:
    return ("user", user_id) if user_id is not None else ("voter", voter_token_id)


class QuestionnaireService:
    """Service for building and publishing questionnaires."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, questionnaire_id: UUID) -> Questionnaire:
        questionnaire = await self.db.get(Questionnaire, questionnaire_id)
        if questionnaire is None:
            raise QuestionnaireNotFoundError(questionnaire_id)
        return questionnaire

    async def _reload(self, questionnaire_id: UUID) -> Questionnaire:
        result = await self.db.execute(
            select(Questionnaire)
            .where(Questionnaire.questionnaire_id == questionnaire_id)
            .execution_options(populate_existing=True)
        )
        questionnaire = result.scalar_one_or_none()
        if questionnaire is None:
            raise QuestionnaireNotFoundError(questionnaire_id)
        return questionnaire

    async def _respondent_counts(self, questionnaire_ids: list[UUID]) -> dict[UUID, int]:
        if not questionnaire_ids:
            return {}
        result = await self.db.execute(
            select(QuestionResponse.questionnaire_id, QuestionResponse.user_id, QuestionResponse.voter_token_id)
            .where(QuestionResponse.questionnaire_id.in_(questionnaire_ids))
            .distinct()
        )
        respondents: dict[UUID, set] = defaultdict(set)
        for questionnaire_id, user_id, voter_token_id in result.all():
            respondents[questionnaire_id].add(_identity_key(user_id, voter_token_id))
        return {key: len(value) for key, value in respondents.items()}

    def to_out(self, questionnaire: Questionnaire, response_count: int = 0) -> QuestionnaireOut:
        links = sorted(questionnaire.question_links, key=lambda link: link.display_order)
        return QuestionnaireOut(
            questionnaire_id=questionnaire.questionnaire_id,
            title=questionnaire.title,
            description=questionnaire.description,
            category=questionnaire.category,
            status=questionnaire.status,
            allow_multiple_responses=questionnaire.allow_multiple_responses,
            start_date=questionnaire.start_date,
            end_date=questionnaire.end_date,
            created_at=questionnaire.created_at,
            updated_at=questionnaire.updated_at,
            question_count=len(links),
            response_count=response_count,
            questions=[
                QuestionnaireQuestionOut(
                    question_id=link.question_id,
                    display_order=link.display_order,
                    is_required=link.is_required,
                    question=QuestionService.to_out(link.question),
                )
                for link in links
            ],
        )

    async def get_out(self, questionnaire_id: UUID) -> QuestionnaireOut:
        questionnaire = await self._reload(questionnaire_id)
        counts = await self._respondent_counts([questionnaire_id])
        return self.to_out(questionnaire, counts.get(questionnaire_id, 0))

    async def get_public(self, questionnaire_id: UUID) -> QuestionnaireOut:
        """An active questionnaire with only its live questions."""
        questionnaire = await self.get(questionnaire_id)
        if questionnaire.status != QuestionnaireStatus.ACTIVE.value:
            raise QuestionnaireNotFoundError(questionnaire_id)
        out = self.to_out(questionnaire)
        live_ids = {link.question_id for link in questionnaire.question_links if link.question.is_live()}
        out.questions = [entry for entry in out.questions if entry.question_id in live_ids]
        out.question_count = len(out.questions)
        return out

    async def list_questionnaires(
        self,
        status: Optional[QuestionnaireStatus] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> QuestionnaireList:
        query = select(Questionnaire)
        count_query = select(func.count(Questionnaire.questionnaire_id))
        if status is not None:
            query = query.where(Questionnaire.status == status.value)
            count_query = count_query.where(Questionnaire.status == status.value)

        total = int((await self.db.execute(count_query)).scalar_one())
        result = await self.db.execute(
            query.order_by(Questionnaire.created_at.desc()).limit(limit).offset(offset)
        )
        questionnaires = list(result.scalars().all())
        counts = await self._respondent_counts([q.questionnaire_id for q in questionnaires])

        return QuestionnaireList(
            questionnaires=[self.to_out(q, counts.get(q.questionnaire_id, 0)) for q in questionnaires],
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(questionnaires) < total,
        )

    async def _require_questions(self, question_ids: list[UUID]) -> None:
        if not question_ids:
            return
        if len(set(question_ids)) != len(question_ids):
            raise QuestionConfigError("A question can only appear once in a questionnaire")
        result = await self.db.execute(select(Question.question_id).where(Question.question_id.in_(question_ids)))
        found = set(result.scalars().all())
        missing = [qid for qid in question_ids if qid not in found]
        if missing:
            raise QuestionNotFoundError(missing[0])

    async def create(self, data: QuestionnaireCreate) -> QuestionnaireOut:
        """Create a draft questionnaire, linking questions in the given order."""
        await self._require_questions(data.question_ids)

        questionnaire = Questionnaire(
            title=data.title.strip(),
            description=data.description,
            category=data.category,
            allow_multiple_responses=data.allow_multiple_responses,
            status=QuestionnaireStatus.DRAFT.value,
        )
        self.db.add(questionnaire)
        await self.db.flush()

        for index, question_id in enumerate(data.question_ids):
            self.db.add(QuestionnaireQuestion(
                questionnaire_id=questionnaire.questionnaire_id,
                question_id=question_id,
                display_order=index,
            ))
        await self.db.commit()
        logger.info(f"Created questionnaire {questionnaire.questionnaire_id} with {len(data.question_ids)} questions")
        return await self.get_out(questionnaire.questionnaire_id)

    def _apply_status(self, questionnaire: Questionnaire, status: QuestionnaireStatus) -> None:
        now = datetime.now(UTC)
        questionnaire.status = status.value
        if status == QuestionnaireStatus.ACTIVE:
            questionnaire.start_date = now
            questionnaire.end_date = None
        elif status == QuestionnaireStatus.CLOSED:
            questionnaire.end_date = now

    async def update(self, questionnaire_id: UUID, data: QuestionnaireUpdate) -> QuestionnaireOut:
        questionnaire = await self.get(questionnaire_id)
        changes = data.model_dump(exclude_unset=True)

        status = changes.pop("status", None)
        for field, value in changes.items():
            if value is None and field in ("title", "allow_multiple_responses"):
                continue
            setattr(questionnaire, field, value.strip() if field == "title" else value)
        if status is not None:
            self._apply_status(questionnaire, QuestionnaireStatus(status))

        await self.db.commit()
        return await self.get_out(questionnaire_id)

    async def update_status(self, questionnaire_id: UUID, status: QuestionnaireStatus) -> QuestionnaireOut:
        """Move through draft/active/closed, stamping start and end dates."""
        questionnaire = await self.get(questionnaire_id)
        self._apply_status(questionnaire, status)
        await self.db.commit()
        logger.info(f"Questionnaire {questionnaire_id} status -> {status.value}")
        return await self.get_out(questionnaire_id)

    async def delete(self, questionnaire_id: UUID) -> None:
        questionnaire = await self.get(questionnaire_id)
        await self.db.delete(questionnaire)
        await self.db.commit()
        logger.info(f"Deleted questionnaire {questionnaire_id}")

    async def add_question(self, questionnaire_id: UUID, data: QuestionnaireQuestionAdd) -> QuestionnaireOut:
        """Link a question; without an explicit order it goes to the end."""
        await self.get(questionnaire_id)
        await self._require_questions([data.question_id])

        existing = await self.db.get(QuestionnaireQuestion, (questionnaire_id, data.question_id))
        if existing is not None:
            raise QuestionConfigError("Question is already part of this questionnaire")

        display_order = data.display_order
        if display_order is None:
            count_result = await self.db.execute(
                select(func.count()).select_from(QuestionnaireQuestion)
                .where(QuestionnaireQuestion.questionnaire_id == questionnaire_id)
            )
            display_order = int(count_result.scalar_one())

        self.db.add(QuestionnaireQuestion(
            questionnaire_id=questionnaire_id,
            question_id=data.question_id,
            display_order=display_order,
            is_required=data.is_required,
        ))
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise QuestionConfigError("Question is already part of this questionnaire") from exc
        return await self.get_out(questionnaire_id)

    async def remove_question(self, questionnaire_id: UUID, question_id: UUID) -> QuestionnaireOut:
        link = await self.db.get(QuestionnaireQuestion, (questionnaire_id, question_id))
        if link is None:
            raise QuestionNotFoundError(question_id)
        await self.db.delete(link)
        await self.db.commit()
        return await self.get_out(questionnaire_id)

    async def reorder(self, questionnaire_id: UUID, orders: list[QuestionnaireQuestionOrder]) -> QuestionnaireOut:
        await self.get(questionnaire_id)
        for item in orders:
            link = await self.db.get(QuestionnaireQuestion, (questionnaire_id, item.question_id))
            if link is None:
                raise QuestionNotFoundError(item.question_id)
            link.display_order = item.display_order
        await self.db.commit()
        return await self.get_out(questionnaire_id)

    async def stats(self) -> QuestionnaireStats:
        """Totals plus the share of respondents who answered every required question."""
        total = int((await self.db.execute(select(func.count(Questionnaire.questionnaire_id)))).scalar_one())
        active = int((await self.db.execute(
            select(func.count(Questionnaire.questionnaire_id))
            .where(Questionnaire.status == QuestionnaireStatus.ACTIVE.value)
        )).scalar_one())
        total_questions = int((await self.db.execute(select(func.count(Question.question_id)))).scalar_one())

        required_result = await self.db.execute(
            select(QuestionnaireQuestion.questionnaire_id, QuestionnaireQuestion.question_id)
            .where(QuestionnaireQuestion.is_required.is_(True))
        )
        required: dict[UUID, set[UUID]] = defaultdict(set)
        for questionnaire_id, question_id in required_result.all():
            required[questionnaire_id].add(question_id)

        answers_result = await self.db.execute(
            select(
                QuestionResponse.questionnaire_id,
                QuestionResponse.user_id,
                QuestionResponse.voter_token_id,
                QuestionResponse.question_id,
            )
            .where(QuestionResponse.questionnaire_id.is_not(None))
            .distinct()
        )
        answered: dict[tuple, set[UUID]] = defaultdict(set)
        for questionnaire_id, user_id, voter_token_id, question_id in answers_result.all():
            answered[(questionnaire_id, _identity_key(user_id, voter_token_id))].add(question_id)

        completed = sum(
            1 for (questionnaire_id, _), questions in answered.items()
            if required[questionnaire_id] <= questions
        )
        respondents = len(answered)

        return QuestionnaireStats(
            total_questionnaires=total,
            active_questionnaires=active,
            total_questions=total_questions,
            total_respondents=respondents,
            completed_respondents=completed,
            completion_rate=round(completed / respondents * 100) if respondents else 0,
        )
