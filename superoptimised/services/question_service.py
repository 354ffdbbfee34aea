"""Question reads, results aggregation and admin management."""
import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, UTC
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.base import QuestionType
from superoptimised.models.question import Question
from superoptimised.models.question_response import QuestionResponse
from superoptimised.schemas.question import (
    OptionResult,
    QuestionAnalytics,
    QuestionCreate,
    QuestionOut,
    QuestionOrderItem,
    QuestionResults,
    QuestionUpdate,
    RankingItemResult,
)
from superoptimised.services.question_types import normalize_config, parse_config
from superoptimised.utils.datetime_helpers import ensure_utc
from superoptimised.utils.exceptions import QuestionConfigError, QuestionNotFoundError

logger = logging.getLogger(__name__)

RECENT_TEXT_LIMIT = 20


def _percentage(count: int, total: int) -> int:
    return round(count / total * 100) if total > 0 else 0


def _live_filter(now: datetime):
    return and_(
        Question.is_active.is_(True),
        or_(Question.scheduled_start.is_(None), Question.scheduled_start <= now),
        or_(Question.scheduled_end.is_(None), Question.scheduled_end >= now),
    )


class QuestionService:
    """Service for question lookups and admin edits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _response_counts(self, question_ids: Iterable[UUID]) -> dict[UUID, int]:
        ids = list(question_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(QuestionResponse.question_id, func.count(QuestionResponse.response_id))
            .where(QuestionResponse.question_id.in_(ids))
            .group_by(QuestionResponse.question_id)
        )
        return {question_id: count for question_id, count in result.all()}

    @staticmethod
    def to_out(question: Question, response_count: int = 0) -> QuestionOut:
        out = QuestionOut.model_validate(question)
        out.response_count = response_count
        return out

    async def list_active(self, category: Optional[str] = None, limit: int = 10) -> list[QuestionOut]:
        """Live questions ordered by display order, newest first within a slot."""
        query = select(Question).where(_live_filter(datetime.now(UTC)))
        if category:
            query = query.where(Question.category == category)
        query = query.order_by(Question.display_order.asc(), Question.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        questions = list(result.scalars().all())
        counts = await self._response_counts(q.question_id for q in questions)
        return [self.to_out(q, counts.get(q.question_id, 0)) for q in questions]

    async def list_all(self) -> list[QuestionOut]:
        """Every question including inactive ones, for the admin interface."""
        result = await self.db.execute(
            select(Question).order_by(Question.display_order.asc(), Question.created_at.desc())
        )
        questions = list(result.scalars().all())
        counts = await self._response_counts(q.question_id for q in questions)
        return [self.to_out(q, counts.get(q.question_id, 0)) for q in questions]

    async def get(self, question_id: UUID) -> Question:
        question = await self.db.get(Question, question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    async def get_live(self, question_id: UUID) -> QuestionOut:
        question = await self.db.get(Question, question_id)
        if question is None or not question.is_live():
            raise QuestionNotFoundError(question_id)
        counts = await self._response_counts([question_id])
        return self.to_out(question, counts.get(question_id, 0))

    async def get_with_count(self, question_id: UUID) -> QuestionOut:
        question = await self.get(question_id)
        counts = await self._response_counts([question_id])
        return self.to_out(question, counts.get(question_id, 0))

    async def get_results(self, question_id: UUID) -> QuestionResults:
        """Aggregate responses in the shape that suits the question type."""
        question = await self.get(question_id)
        result = await self.db.execute(
            select(QuestionResponse.response_data, QuestionResponse.created_at)
            .where(QuestionResponse.question_id == question_id)
            .order_by(QuestionResponse.created_at.desc())
        )
        rows = result.all()
        payloads = [row.response_data or {} for row in rows]
        total = len(payloads)

        results = QuestionResults(
            question_id=question.question_id,
            question_type=question.question_type,
            total_responses=total,
        )

        try:
            question_type = QuestionType(question.question_type)
        except ValueError:
            logger.warning(f"Question {question_id} has unknown type {question.question_type}")
            return results

        config = question.question_data or {}

        if question_type in (QuestionType.BINARY, QuestionType.AB_TEST):
            labels = self._binary_labels(question_type, config)
            counts = Counter(p.get("selectedOption") for p in payloads)
            results.options = [
                OptionResult(option=key, label=label, count=counts.get(key, 0),
                             percentage=_percentage(counts.get(key, 0), total))
                for key, label in labels
            ]

        elif question_type == QuestionType.MULTI_CHOICE:
            parsed = parse_config(question_type, config)
            counts = Counter(option for p in payloads for option in p.get("selectedOptions", []))
            # Percentages are relative to respondents, not selections
            results.options = [
                OptionResult(option=option.id, label=option.label, count=counts.get(option.id, 0),
                             percentage=_percentage(counts.get(option.id, 0), total))
                for option in parsed.options
            ]

        elif question_type == QuestionType.RATING_SCALE:
            ratings = [p["rating"] for p in payloads if isinstance(p.get("rating"), (int, float))]
            distribution = Counter(str(rating) for rating in ratings)
            results.distribution = dict(sorted(distribution.items(), key=lambda item: float(item[0])))
            results.average_rating = round(sum(ratings) / len(ratings), 2) if ratings else None

        elif question_type == QuestionType.RANKING:
            parsed = parse_config(question_type, config)
            positions: dict[str, list[int]] = defaultdict(list)
            for payload in payloads:
                for position, item_id in enumerate(payload.get("ranking", []), start=1):
                    positions[item_id].append(position)
            ranking = [
                RankingItemResult(
                    item=item.id,
                    label=item.label,
                    average_position=(round(sum(positions[item.id]) / len(positions[item.id]), 2)
                                      if positions[item.id] else None),
                    first_place_count=positions[item.id].count(1),
                )
                for item in parsed.items
            ]
            results.ranking = sorted(
                ranking,
                key=lambda entry: entry.average_position if entry.average_position is not None else float("inf"),
            )

        elif question_type == QuestionType.TEXT_RESPONSE:
            results.recent_texts = [p.get("text", "") for p in payloads[:RECENT_TEXT_LIMIT]]

        return results

    @staticmethod
    def _binary_labels(question_type: QuestionType, config: dict) -> list[tuple[str, str]]:
        option_a = config.get("optionA")
        option_b = config.get("optionB")
        if question_type == QuestionType.AB_TEST:
            label_a = option_a.get("label") if isinstance(option_a, dict) else option_a
            label_b = option_b.get("label") if isinstance(option_b, dict) else option_b
            return [("variant_a", label_a or "Variant A"), ("variant_b", label_b or "Variant B")]
        return [("A", option_a or "A"), ("B", option_b or "B")]

    async def get_analytics(self, question_id: UUID) -> QuestionAnalytics:
        """Per-question response volume over time, for admins."""
        question = await self.get(question_id)
        result = await self.db.execute(
            select(QuestionResponse.created_at, QuestionResponse.user_id, QuestionResponse.voter_token_id)
            .where(QuestionResponse.question_id == question_id)
        )
        rows = result.all()

        over_time: Counter = Counter()
        voters = set()
        for created_at, user_id, voter_token_id in rows:
            over_time[ensure_utc(created_at).date().isoformat()] += 1
            voters.add(("user", user_id) if user_id else ("voter", voter_token_id))

        created_at = ensure_utc(question.created_at)
        age_days = max(1, math.ceil((datetime.now(UTC) - created_at).total_seconds() / 86400))
        return QuestionAnalytics(
            question_id=question.question_id,
            title=question.title,
            question_type=question.question_type,
            total_responses=len(rows),
            unique_voters=len(voters),
            responses_over_time=dict(sorted(over_time.items())),
            average_responses_per_day=round(len(rows) / age_days, 2) if rows else 0.0,
            is_active=question.is_active,
            created_at=created_at,
        )

    # ------------------------------------------------------------------
    # Admin mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _check_schedule(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start and end and ensure_utc(end) <= ensure_utc(start):
            raise QuestionConfigError("scheduledEnd must be after scheduledStart")

    async def create(self, data: QuestionCreate) -> Question:
        """Create a question after validating its configuration for the type."""
        self._check_schedule(data.scheduled_start, data.scheduled_end)
        question = Question(
            title=data.title.strip(),
            description=data.description,
            question_type=data.question_type.value,
            question_data=normalize_config(data.question_type, data.question_data),
            category=data.category,
            display_order=data.display_order,
            is_active=data.is_active,
            scheduled_start=data.scheduled_start,
            scheduled_end=data.scheduled_end,
        )
        self.db.add(question)
        await self.db.commit()
        await self.db.refresh(question)
        logger.info(f"Created {question.question_type} question {question.question_id}")
        return question

    async def update(self, question_id: UUID, data: QuestionUpdate) -> Question:
        question = await self.get(question_id)
        changes = data.model_dump(exclude_unset=True)

        if "question_data" in changes and changes["question_data"] is not None:
            changes["question_data"] = normalize_config(question.question_type, changes["question_data"])
        if "title" in changes and changes["title"]:
            changes["title"] = changes["title"].strip()

        self._check_schedule(
            changes.get("scheduled_start", question.scheduled_start),
            changes.get("scheduled_end", question.scheduled_end),
        )

        for field, value in changes.items():
            if field in ("title", "question_data", "display_order", "is_active") and value is None:
                continue
            setattr(question, field, value)

        await self.db.commit()
        await self.db.refresh(question)
        logger.info(f"Updated question {question_id}: {sorted(changes)}")
        return question

    async def set_active(self, question_id: UUID, is_active: bool) -> Question:
        question = await self.get(question_id)
        question.is_active = is_active
        await self.db.commit()
        await self.db.refresh(question)
        logger.info(f"Question {question_id} is_active={is_active}")
        return question

    async def deactivate(self, question_id: UUID) -> Question:
        """The admin "delete": stop accepting responses and close the schedule."""
        question = await self.get(question_id)
        question.is_active = False
        question.scheduled_end = datetime.now(UTC)
        await self.db.commit()
        await self.db.refresh(question)
        logger.info(f"Deactivated question {question_id}")
        return question

    async def reorder(self, items: list[QuestionOrderItem]) -> int:
        """Apply new display orders in one transaction."""
        for item in items:
            question = await self.get(item.question_id)
            question.display_order = item.display_order
        await self.db.commit()
        return len(items)
