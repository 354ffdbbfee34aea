"""Tests for dashboard aggregates, CSV export and the daily rollup."""
import csv
import io
from datetime import datetime, timedelta, UTC

import pytest
from sqlalchemy import func, select

from superoptimised.models.analytics_daily import AnalyticsDaily
from superoptimised.models.base import QuestionType
from superoptimised.models.question_response import QuestionResponse
from superoptimised.services.analytics_service import (
    BASE_EXPORT_COLUMNS,
    EXPORT_EMPTY_MESSAGE,
    EXPORT_ERROR_MESSAGE,
    AnalyticsService,
    ExportRange,
    TimeRange,
    build_buckets,
)
from superoptimised.services.identity import UserIdentity, VoterIdentity
from superoptimised.services.response_service import ResponseService
from superoptimised.services.voter_token_service import VoterTokenService


@pytest.fixture
def vote_as_new_voter(db_session):
    """Submit one response from a freshly issued voter token."""

    async def _vote(question, response_data):
        _, token = await VoterTokenService(db_session).get_or_create(None, "203.0.113.9")
        identity = VoterIdentity(token.voter_token_id)
        return await ResponseService(db_session).submit(
            question.question_id, identity, response_data, ip_address="203.0.113.9"
        )

    return _vote


class TestBuckets:

    def test_24h_uses_hourly_buckets(self):
        now = datetime(2025, 10, 19, 15, 20, tzinfo=UTC)

        buckets = build_buckets(TimeRange.LAST_24H, now)

        assert len(buckets) == 24
        assert buckets[-1][2] == "15:00"
        assert buckets[0][2] == "16:00"
        assert buckets[-1][1] - buckets[-1][0] == timedelta(hours=1)

    @pytest.mark.parametrize("time_range, days", [
        (TimeRange.LAST_7D, 7), (TimeRange.LAST_30D, 30), (TimeRange.LAST_90D, 90),
    ])
    def test_longer_ranges_use_daily_buckets(self, time_range, days):
        now = datetime(2025, 10, 19, 15, 20, tzinfo=UTC)

        buckets = build_buckets(time_range, now)

        assert len(buckets) == days
        assert buckets[-1][2] == "Oct 19"
        assert buckets[-1][0] == datetime(2025, 10, 19, tzinfo=UTC)


class TestVotingAnalytics:

    @pytest.mark.asyncio
    async def test_counts_votes_and_unique_voters(self, db_session, question_factory, vote_as_new_voter):
        binary = await question_factory()
        rating = await question_factory(QuestionType.RATING_SCALE)
        await vote_as_new_voter(binary, {"selectedOption": "A"})
        await vote_as_new_voter(binary, {"selectedOption": "B"})
        await vote_as_new_voter(rating, {"rating": 3})

        analytics = await AnalyticsService(db_session).get_voting_analytics(TimeRange.LAST_7D)

        assert analytics.degraded is False
        assert analytics.summary.total_votes == 3
        assert analytics.summary.unique_voters == 3
        assert analytics.summary.peak_votes == 3
        assert analytics.question_type_breakdown["binary"] == 2
        assert analytics.question_type_breakdown["rating-scale"] == 1
        assert [dataset.label for dataset in analytics.chart_data.datasets] == ["Total Votes", "Unique Voters"]
        assert analytics.chart_data.datasets[0].data[-1] == 3
        assert len(analytics.chart_data.labels) == 7

    @pytest.mark.asyncio
    async def test_same_voter_counted_once(self, db_session, question_factory):
        _, token = await VoterTokenService(db_session).get_or_create(None)
        identity = VoterIdentity(token.voter_token_id)
        service = ResponseService(db_session)
        for _ in range(2):
            question = await question_factory()
            await service.submit(question.question_id, identity, {"selectedOption": "A"})

        analytics = await AnalyticsService(db_session).get_voting_analytics(TimeRange.LAST_24H)

        assert analytics.summary.total_votes == 2
        assert analytics.summary.unique_voters == 1

    @pytest.mark.asyncio
    async def test_failure_returns_degraded_zeroes(self, db_session, monkeypatch):
        async def broken_execute(*args, **kwargs):
            raise RuntimeError("relation does not exist")

        monkeypatch.setattr(db_session, "execute", broken_execute)

        analytics = await AnalyticsService(db_session).get_voting_analytics(TimeRange.LAST_7D)

        assert analytics.degraded is True
        assert analytics.summary.total_votes == 0
        assert analytics.chart_data.labels == []

    @pytest.mark.asyncio
    async def test_serialized_shape_uses_camel_case(self, db_session):
        analytics = await AnalyticsService(db_session).get_voting_analytics(TimeRange.LAST_7D)

        payload = analytics.model_dump(by_alias=True)

        assert set(payload) == {"summary", "chartData", "questionTypeBreakdown", "degraded"}
        assert set(payload["chartData"]) == {"labels", "datasets"}
        assert "totalVotes" in payload["summary"]


class TestCommunityAndQuestions:

    @pytest.mark.asyncio
    async def test_community_engagement(self, db_session, user_factory):
        from superoptimised.services.engagement_service import EngagementService

        service = EngagementService(db_session)
        for _ in range(2):
            user = await user_factory()
            await service.record_vote(UserIdentity(user.user_id))

        community = await AnalyticsService(db_session).get_community_engagement()

        assert community.degraded is False
        assert community.metrics.total_active_users == 2
        assert community.metrics.total_xp_awarded == 10
        assert community.metrics.longest_streak == 1
        assert community.metrics.retention_rate == 100
        assert community.xp_trend_data.datasets[0].data[-1] == 10
        assert community.streak_distribution.datasets[0].data == [0, 2, 0, 0, 0]

    @pytest.mark.asyncio
    async def test_question_performance(self, db_session, question_factory, vote_as_new_voter):
        popular = await question_factory(title="A very long question title that gets cut short", category="product")
        quiet = await question_factory(title="Quiet", category=None)
        await question_factory(title="Retired", is_active=False)
        await vote_as_new_voter(popular, {"selectedOption": "A"})
        await vote_as_new_voter(popular, {"selectedOption": "B"})

        performance = await AnalyticsService(db_session).get_question_performance()

        assert performance.summary.total_questions == 2
        assert performance.summary.total_responses == 2
        top = performance.top_performing[0]
        assert top.id == popular.question_id
        assert top.total_responses == 2
        assert top.title.endswith("...")
        assert performance.top_performing[1].id == quiet.question_id
        assert performance.category_breakdown == {"product": 1, "uncategorized": 1}
        assert performance.performance_trend.datasets[0].data[-1] == 2


class TestExport:

    @pytest.mark.asyncio
    async def test_empty_range_returns_sentinel(self, db_session):
        result = await AnalyticsService(db_session).export_voting_data(ExportRange.LAST_7D)

        assert result.content == EXPORT_EMPTY_MESSAGE
        assert result.record_count == 0
        assert result.filename.startswith("voting-data-7d-")
        assert result.filename.endswith(".csv")

    @pytest.mark.asyncio
    async def test_csv_columns_follow_flags(self, db_session, question_factory, vote_as_new_voter):
        question = await question_factory(title='Ship it, "today"?')
        await vote_as_new_voter(question, {"selectedOption": "A"})
        service = AnalyticsService(db_session)

        base_only = await service.export_voting_data(ExportRange.ALL, include_responses=False)
        full = await service.export_voting_data(ExportRange.ALL, include_responses=True, include_voter_info=True)

        assert base_only.content.splitlines()[0] == ",".join(BASE_EXPORT_COLUMNS)
        rows = list(csv.DictReader(io.StringIO(full.content)))
        assert full.record_count == 1
        assert list(rows[0]) == BASE_EXPORT_COLUMNS + ["responseValue", "voterTokenId", "userId", "voterTotalVotes"]
        assert rows[0]["questionTitle"] == 'Ship it, "today"?'
        assert rows[0]["responseValue"] == '{"selectedOption": "A"}'
        assert rows[0]["ipAddress"] == "203.0.113.9"
        assert rows[0]["questionCategory"] == "uncategorized"
        assert rows[0]["userId"] == ""
        assert rows[0]["voterTotalVotes"] == "1"

    @pytest.mark.asyncio
    async def test_range_excludes_old_votes(self, db_session, question_factory, vote_as_new_voter):
        question = await question_factory()
        record = await vote_as_new_voter(question, {"selectedOption": "A"})
        record.response.created_at = datetime.now(UTC) - timedelta(days=3)
        await db_session.commit()

        service = AnalyticsService(db_session)

        assert (await service.export_voting_data(ExportRange.LAST_24H)).record_count == 0
        assert (await service.export_voting_data(ExportRange.LAST_7D)).record_count == 1

    @pytest.mark.asyncio
    async def test_failure_returns_error_text(self, db_session, monkeypatch):
        async def broken_execute(*args, **kwargs):
            raise RuntimeError("timeout")

        monkeypatch.setattr(db_session, "execute", broken_execute)

        result = await AnalyticsService(db_session).export_voting_data(ExportRange.LAST_30D)

        assert result.degraded is True
        assert result.content == EXPORT_ERROR_MESSAGE
        assert result.filename.startswith("export-error-")


class TestDailyAggregation:

    @pytest.mark.asyncio
    async def test_aggregates_once_per_day(self, db_session, question_factory, vote_as_new_voter):
        question = await question_factory(title="Pricing page")
        yesterday = datetime.now(UTC) - timedelta(days=1)
        for choice in ("A", "B"):
            record = await vote_as_new_voter(question, {"selectedOption": choice})
            record.response.created_at = yesterday
        await db_session.commit()
        service = AnalyticsService(db_session)

        first = await service.aggregate_daily_stats(yesterday.date())
        second = await service.aggregate_daily_stats(yesterday.date())

        assert first.created is True
        assert first.total_votes == 2
        assert first.unique_voters == 2
        assert first.popular_questions == [
            {"questionId": str(question.question_id), "title": "Pricing page", "votes": 2}
        ]
        assert second.created is False
        assert second.total_votes == 2
        rows = (await db_session.execute(select(func.count(AnalyticsDaily.analytics_id)))).scalar_one()
        assert rows == 1

    @pytest.mark.asyncio
    async def test_defaults_to_yesterday(self, db_session):
        stats = await AnalyticsService(db_session).aggregate_daily_stats()

        assert stats.date == (datetime.now(UTC).date() - timedelta(days=1)).isoformat()
        assert stats.total_votes == 0

    @pytest.mark.asyncio
    async def test_votes_outside_the_day_are_ignored(self, db_session, question_factory, vote_as_new_voter):
        question = await question_factory()
        await vote_as_new_voter(question, {"selectedOption": "A"})

        stats = await AnalyticsService(db_session).aggregate_daily_stats(
            datetime.now(UTC).date() - timedelta(days=2)
        )

        assert stats.total_votes == 0
        total = (await db_session.execute(select(func.count(QuestionResponse.response_id)))).scalar_one()
        assert total == 1
