"""Tests for recording responses: lookups, validation and the duplicate policy."""
import uuid
from datetime import datetime, timedelta, UTC

import pytest
from sqlalchemy import func, select

from superoptimised.models.base import QuestionnaireStatus, QuestionType
from superoptimised.models.engagement import EngagementStats
from superoptimised.models.question_response import QuestionResponse
from superoptimised.services.engagement_service import EngagementService
from superoptimised.services.identity import UserIdentity, VoterIdentity
from superoptimised.services.response_service import ResponseService
from superoptimised.services.voter_token_service import VoterTokenService
from superoptimised.utils.exceptions import (
    DuplicateVoteError,
    QuestionNotFoundError,
    QuestionnaireNotFoundError,
    ResponseValidationError,
)


@pytest.fixture
async def voter(db_session):
    _, record = await VoterTokenService(db_session).get_or_create(None, "10.0.0.1")
    return VoterIdentity(record.voter_token_id)


async def _response_count(db_session) -> int:
    return (await db_session.execute(select(func.count(QuestionResponse.response_id)))).scalar_one()


class TestSubmit:

    @pytest.mark.asyncio
    async def test_records_response_with_one_identity(self, db_session, question_factory, voter):
        question = await question_factory(QuestionType.RATING_SCALE)

        record = await ResponseService(db_session).submit(question.question_id, voter, {"rating": 4}, "10.0.0.1")

        response = record.response
        assert response.voter_token_id == voter.voter_token_id
        assert response.user_id is None
        assert response.response_data == {"rating": 4}
        assert response.ip_address == "10.0.0.1"
        assert record.xp_earned == 5
        assert record.total_xp == 5
        assert record.vote_number == 1

    @pytest.mark.asyncio
    async def test_user_identity_fills_user_column(self, db_session, question_factory, user_factory):
        user = await user_factory()
        question = await question_factory()

        record = await ResponseService(db_session).submit(
            question.question_id, UserIdentity(user.user_id), {"selectedOption": True}
        )

        assert record.response.user_id == user.user_id
        assert record.response.voter_token_id is None
        assert record.response.response_data == {"selectedOption": "A"}

    @pytest.mark.asyncio
    async def test_missing_question(self, db_session, voter):
        with pytest.raises(QuestionNotFoundError):
            await ResponseService(db_session).submit(uuid.uuid4(), voter, {"selectedOption": "A"})

    @pytest.mark.asyncio
    async def test_inactive_question(self, db_session, question_factory, voter):
        question = await question_factory(is_active=False)

        with pytest.raises(QuestionNotFoundError):
            await ResponseService(db_session).submit(question.question_id, voter, {"selectedOption": "A"})

    @pytest.mark.asyncio
    async def test_question_outside_schedule(self, db_session, question_factory, voter):
        now = datetime.now(UTC)
        upcoming = await question_factory(scheduled_start=now + timedelta(days=1))
        finished = await question_factory(scheduled_end=now - timedelta(days=1))

        service = ResponseService(db_session)
        for question in (upcoming, finished):
            with pytest.raises(QuestionNotFoundError):
                await service.submit(question.question_id, voter, {"selectedOption": "A"})

    @pytest.mark.asyncio
    async def test_invalid_payload_is_not_stored(self, db_session, question_factory, voter):
        question = await question_factory(QuestionType.RATING_SCALE)

        with pytest.raises(ResponseValidationError) as exc_info:
            await ResponseService(db_session).submit(question.question_id, voter, {"rating": 11})

        assert exc_info.value.field == "rating"
        assert await _response_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_standalone_duplicate_is_rejected(self, db_session, question_factory, voter):
        question = await question_factory()
        service = ResponseService(db_session)
        await service.submit(question.question_id, voter, {"selectedOption": "A"})

        with pytest.raises(DuplicateVoteError):
            await service.submit(question.question_id, voter, {"selectedOption": "B"})

        assert await _response_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_different_voters_can_answer_same_question(self, db_session, question_factory, voter):
        question = await question_factory()
        _, other = await VoterTokenService(db_session).get_or_create(None)
        service = ResponseService(db_session)

        await service.submit(question.question_id, voter, {"selectedOption": "A"})
        await service.submit(question.question_id, VoterIdentity(other.voter_token_id), {"selectedOption": "A"})

        assert await _response_count(db_session) == 2

    @pytest.mark.asyncio
    async def test_engagement_failure_keeps_response(self, db_session, question_factory, voter, monkeypatch):
        question = await question_factory()

        async def broken_record_vote(self, *args, **kwargs):
            raise RuntimeError("stats table unavailable")

        monkeypatch.setattr(EngagementService, "record_vote", broken_record_vote)

        record = await ResponseService(db_session).submit(question.question_id, voter, {"selectedOption": "A"})

        assert record.xp_earned == 0
        assert record.response.response_id is not None
        assert await _response_count(db_session) == 1
        stats = (await db_session.execute(select(func.count(EngagementStats.stats_id)))).scalar_one()
        assert stats == 0


class TestBeforeInsertHook:

    @pytest.mark.asyncio
    async def test_hook_supplies_identity_for_new_voter(self, db_session, question_factory, voter):
        question = await question_factory()
        calls = []

        async def issue_identity():
            calls.append("called")
            return voter

        record = await ResponseService(db_session).submit(
            question.question_id, None, {"selectedOption": "A"}, before_insert=issue_identity
        )

        assert calls == ["called"]
        assert record.response.voter_token_id == voter.voter_token_id

    @pytest.mark.asyncio
    async def test_hook_skipped_when_payload_is_invalid(self, db_session, question_factory, voter):
        question = await question_factory(QuestionType.RATING_SCALE)
        calls = []

        async def count_call():
            calls.append("called")

        with pytest.raises(ResponseValidationError):
            await ResponseService(db_session).submit(question.question_id, voter, {"rating": 99},
                                                     before_insert=count_call)

        assert calls == []

    @pytest.mark.asyncio
    async def test_hook_skipped_for_duplicate(self, db_session, question_factory, voter):
        question = await question_factory()
        service = ResponseService(db_session)
        await service.submit(question.question_id, voter, {"selectedOption": "A"})
        calls = []

        async def count_call():
            calls.append("called")

        with pytest.raises(DuplicateVoteError):
            await service.submit(question.question_id, voter, {"selectedOption": "B"}, before_insert=count_call)

        assert calls == []

    @pytest.mark.asyncio
    async def test_hook_error_aborts_insert(self, db_session, question_factory, voter):
        question = await question_factory()

        async def refuse():
            raise RuntimeError("quota gone")

        with pytest.raises(RuntimeError):
            await ResponseService(db_session).submit(question.question_id, voter, {"selectedOption": "A"},
                                                     before_insert=refuse)

        assert await _response_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_identity_is_rejected(self, db_session, question_factory):
        question = await question_factory()

        with pytest.raises(ValueError):
            await ResponseService(db_session).submit(question.question_id, None, {"selectedOption": "A"})


class TestQuestionnaireContext:

    @pytest.mark.asyncio
    async def test_answer_inside_active_questionnaire(
            self, db_session, question_factory, questionnaire_factory, voter):
        question = await question_factory()
        questionnaire = await questionnaire_factory([question])

        record = await ResponseService(db_session).submit(
            question.question_id, voter, {"selectedOption": "A"}, questionnaire_id=questionnaire.questionnaire_id
        )

        assert record.response.questionnaire_id == questionnaire.questionnaire_id

    @pytest.mark.asyncio
    async def test_draft_questionnaire_is_rejected(
            self, db_session, question_factory, questionnaire_factory, voter):
        question = await question_factory()
        questionnaire = await questionnaire_factory([question], status=QuestionnaireStatus.DRAFT)

        with pytest.raises(QuestionnaireNotFoundError):
            await ResponseService(db_session).submit(
                question.question_id, voter, {"selectedOption": "A"},
                questionnaire_id=questionnaire.questionnaire_id,
            )

    @pytest.mark.asyncio
    async def test_question_not_in_questionnaire(
            self, db_session, question_factory, questionnaire_factory, voter):
        linked = await question_factory()
        unlinked = await question_factory()
        questionnaire = await questionnaire_factory([linked])

        with pytest.raises(QuestionnaireNotFoundError):
            await ResponseService(db_session).submit(
                unlinked.question_id, voter, {"selectedOption": "A"},
                questionnaire_id=questionnaire.questionnaire_id,
            )

    @pytest.mark.asyncio
    async def test_repeat_blocked_without_allow_multiple(
            self, db_session, question_factory, questionnaire_factory, voter):
        question = await question_factory()
        questionnaire = await questionnaire_factory([question])
        service = ResponseService(db_session)

        await service.submit(question.question_id, voter, {"selectedOption": "A"},
                             questionnaire_id=questionnaire.questionnaire_id)
        with pytest.raises(DuplicateVoteError):
            await service.submit(question.question_id, voter, {"selectedOption": "B"},
                                 questionnaire_id=questionnaire.questionnaire_id)

    @pytest.mark.asyncio
    async def test_allow_multiple_accepts_second_answer(
            self, db_session, question_factory, questionnaire_factory, voter):
        question = await question_factory()
        questionnaire = await questionnaire_factory([question], allow_multiple_responses=True)
        service = ResponseService(db_session)

        await service.submit(question.question_id, voter, {"selectedOption": "A"},
                             questionnaire_id=questionnaire.questionnaire_id)
        second = await service.submit(question.question_id, voter, {"selectedOption": "B"},
                                      questionnaire_id=questionnaire.questionnaire_id)

        assert second.vote_number == 2
        assert await _response_count(db_session) == 2

    @pytest.mark.asyncio
    async def test_standalone_and_questionnaire_answers_are_separate(
            self, db_session, question_factory, questionnaire_factory, voter):
        question = await question_factory()
        questionnaire = await questionnaire_factory([question])
        service = ResponseService(db_session)

        await service.submit(question.question_id, voter, {"selectedOption": "A"})
        await service.submit(question.question_id, voter, {"selectedOption": "A"},
                             questionnaire_id=questionnaire.questionnaire_id)

        assert await _response_count(db_session) == 2


class TestReads:

    @pytest.mark.asyncio
    async def test_vote_stats_breakdown(self, db_session, question_factory):
        question = await question_factory()
        service = ResponseService(db_session)
        token_service = VoterTokenService(db_session)
        for choice in ("A", "A", "B"):
            _, token = await token_service.get_or_create(None)
            await service.submit(question.question_id, VoterIdentity(token.voter_token_id),
                                 {"selectedOption": choice})

        stats = await service.vote_stats(question.question_id)

        assert stats.total_votes == 3
        assert stats.breakdown[0].value == '{"selectedOption": "A"}'
        assert stats.breakdown[0].count == 2
        assert stats.breakdown[0].percentage == 67
        assert stats.breakdown[1].percentage == 33

    @pytest.mark.asyncio
    async def test_vote_stats_unknown_question(self, db_session):
        with pytest.raises(QuestionNotFoundError):
            await ResponseService(db_session).vote_stats(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_history_lists_own_votes_newest_first(self, db_session, question_factory, voter):
        first = await question_factory(title="First")
        second = await question_factory(title="Second")
        service = ResponseService(db_session)
        await service.submit(first.question_id, voter, {"selectedOption": "A"})
        await service.submit(second.question_id, voter, {"selectedOption": "B"})

        history = await service.history(voter)

        assert [item.question_title for item in history.votes] == ["Second", "First"]
        assert history.total_votes == 2
        assert history.total_xp == 10

    @pytest.mark.asyncio
    async def test_history_without_identity_is_empty(self, db_session):
        history = await ResponseService(db_session).history(None)

        assert history.votes == []
        assert history.total_xp == 0
