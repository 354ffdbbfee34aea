"""Admin dashboard analytics and CSV export.

Unlike the rest of the service layer, every public method here swallows
failures: the error is logged in sanitized form and a zeroed payload marked
``degraded`` is returned so the dashboard still renders.
"""
import csv
import io
import json
import logging
from collections import Counter
from datetime import date, datetime, timedelta, UTC
from enum import Enum
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.analytics_daily import AnalyticsDaily
from superoptimised.models.base import QuestionType
from superoptimised.models.engagement import EngagementStats, XpLedger
from superoptimised.models.question import Question
from superoptimised.models.question_response import QuestionResponse
from superoptimised.models.voter_token import VoterToken
from superoptimised.schemas.analytics import (
    ChartData,
    ChartDataset,
    CommunityEngagement,
    CommunityMetrics,
    DailyStats,
    ExportResult,
    PerformanceSummary,
    QuestionMetric,
    QuestionPerformance,
    VotingAnalytics,
    VotingSummary,
)
from superoptimised.utils.datetime_helpers import ensure_utc, utc_day_bounds, utc_day_start, utc_hour_start
from superoptimised.utils.log_sanitizer import log_internal_error
from superoptimised.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)


class TimeRange(str, Enum):
    """Dashboard window."""
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"


class ExportRange(str, Enum):
    """Export window; ``all`` removes the time filter."""
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"
    ALL = "all"


RANGE_HOURS = {
    "24h": 24,
    "7d": 24 * 7,
    "30d": 24 * 30,
    "90d": 24 * 90,
}

ACTIVE_WINDOW_DAYS = 30
TREND_DAYS = 7
TOP_QUESTIONS = 10
DAILY_POPULAR_QUESTIONS = 5
TITLE_PREVIEW_LENGTH = 30

EXPORT_EMPTY_MESSAGE = "No data available for the selected time range"
EXPORT_ERROR_MESSAGE = "Error occurred while exporting data. Please try again later."

BASE_EXPORT_COLUMNS = [
    "voteId",
    "questionId",
    "questionTitle",
    "questionType",
    "questionCategory",
    "votedAt",
    "ipAddress",
]
RESPONSE_EXPORT_COLUMNS = ["responseValue"]
VOTER_EXPORT_COLUMNS = ["voterTokenId", "userId", "voterTotalVotes"]

STREAK_BUCKETS = (
    ("0 days", 0, 0),
    ("1-3 days", 1, 3),
    ("4-7 days", 4, 7),
    ("8-14 days", 8, 14),
    ("15+ days", 15, None),
)
STREAK_COLORS = ["#ef4444", "#f97316", "#eab308", "#22c55e", "#16a34a"]


def _day_label(moment: datetime) -> str:
    return f"{moment:%b} {moment.day}"


def _identity_key(user_id, voter_token_id) -> tuple:
    return ("user", user_id) if user_id is not None else ("voter", voter_token_id)


def _line_dataset(label: str, data: list, rgb: str) -> ChartDataset:
    return ChartDataset(
        label=label,
        data=data,
        border_color=f"rgb({rgb})",
        background_color=f"rgba({rgb}, 0.1)",
        tension=0.4,
        fill=True,
    )


def build_buckets(time_range: TimeRange, now: datetime) -> list[tuple[datetime, datetime, str]]:
    """Consecutive ``(start, end, label)`` buckets ending with the current one.

    ``24h`` uses hourly buckets; every other range uses UTC calendar days.
    """
    if time_range == TimeRange.LAST_24H:
        current = utc_hour_start(now)
        starts = [current - timedelta(hours=offset) for offset in range(23, -1, -1)]
        return [(start, start + timedelta(hours=1), f"{start:%H}:00") for start in starts]

    days = RANGE_HOURS[time_range.value] // 24
    today = ensure_utc(now).date()
    buckets = []
    for offset in range(days - 1, -1, -1):
        start, end = utc_day_bounds(today - timedelta(days=offset))
        buckets.append((start, end, _day_label(start)))
    return buckets


def _bucket_index(buckets: list[tuple[datetime, datetime, str]], moment: datetime) -> Optional[int]:
    first_start = buckets[0][0]
    width = buckets[0][1] - first_start
    index = int((moment - first_start) // width)
    if 0 <= index < len(buckets):
        return index
    return None


class AnalyticsService:
    """Read-only aggregates for the admin dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _safe_rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as exc:
            logger.warning(f"Rollback after analytics failure also failed: {exc}")

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    async def get_voting_analytics(self, time_range: TimeRange = TimeRange.LAST_7D) -> VotingAnalytics:
        try:
            return await self._voting_analytics(TimeRange(time_range))
        except Exception as exc:
            log_internal_error(logger, "Error fetching voting analytics", exc, time_range=time_range)
            await self._safe_rollback()
            return VotingAnalytics(degraded=True)

    async def _voting_analytics(self, time_range: TimeRange) -> VotingAnalytics:
        now = datetime.now(UTC)
        buckets = build_buckets(time_range, now)
        start = buckets[0][0]

        result = await self.db.execute(
            select(
                QuestionResponse.created_at,
                QuestionResponse.user_id,
                QuestionResponse.voter_token_id,
                Question.question_type,
            )
            .join(Question, Question.question_id == QuestionResponse.question_id)
            .where(QuestionResponse.created_at >= start)
        )

        votes_per_bucket = [0] * len(buckets)
        voters_per_bucket: list[set] = [set() for _ in buckets]
        type_breakdown = {question_type.value: 0 for question_type in QuestionType}
        all_voters = set()
        total_votes = 0

        for created_at, user_id, voter_token_id, question_type in result.all():
            index = _bucket_index(buckets, ensure_utc(created_at))
            if index is None:
                continue
            identity = _identity_key(user_id, voter_token_id)
            votes_per_bucket[index] += 1
            voters_per_bucket[index].add(identity)
            all_voters.add(identity)
            type_breakdown[question_type] = type_breakdown.get(question_type, 0) + 1
            total_votes += 1

        peak_index = max(range(len(buckets)), key=lambda i: votes_per_bucket[i])
        hours = RANGE_HOURS[time_range.value]

        return VotingAnalytics(
            summary=VotingSummary(
                total_votes=total_votes,
                unique_voters=len(all_voters),
                avg_votes_per_hour=round(total_votes / hours, 2),
                peak_bucket=buckets[peak_index][0].isoformat() if total_votes else "",
                peak_votes=votes_per_bucket[peak_index],
            ),
            chart_data=ChartData(
                labels=[label for _, _, label in buckets],
                datasets=[
                    _line_dataset("Total Votes", votes_per_bucket, "99, 102, 241"),
                    _line_dataset("Unique Voters", [len(v) for v in voters_per_bucket], "16, 185, 129"),
                ],
            ),
            question_type_breakdown=type_breakdown,
        )

    # ------------------------------------------------------------------
    # Community
    # ------------------------------------------------------------------

    async def get_community_engagement(self) -> CommunityEngagement:
        try:
            return await self._community_engagement()
        except Exception as exc:
            log_internal_error(logger, "Error fetching community engagement", exc)
            await self._safe_rollback()
            return CommunityEngagement(degraded=True)

    async def _community_engagement(self) -> CommunityEngagement:
        now = datetime.now(UTC)
        stats_result = await self.db.execute(
            select(EngagementStats.current_streak, EngagementStats.longest_streak, EngagementStats.total_xp)
            .where(EngagementStats.last_activity >= now - timedelta(days=ACTIVE_WINDOW_DAYS))
        )
        rows = stats_result.all()
        active = len(rows)
        current_streaks = [row.current_streak for row in rows]

        today = now.date()
        trend_start = utc_day_start(today - timedelta(days=TREND_DAYS - 1))
        xp_result = await self.db.execute(
            select(XpLedger.created_at, XpLedger.xp_amount).where(XpLedger.created_at >= trend_start)
        )
        xp_per_day: Counter = Counter()
        for created_at, amount in xp_result.all():
            xp_per_day[ensure_utc(created_at).date()] += amount
        trend_days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]

        distribution = [
            sum(1 for streak in current_streaks if streak >= low and (high is None or streak <= high))
            for _, low, high in STREAK_BUCKETS
        ]

        return CommunityEngagement(
            metrics=CommunityMetrics(
                total_active_users=active,
                avg_current_streak=round(sum(current_streaks) / active, 1) if active else 0.0,
                longest_streak=max((row.longest_streak for row in rows), default=0),
                total_xp_awarded=sum(row.total_xp for row in rows),
                retention_rate=round(sum(1 for s in current_streaks if s > 0) / active * 100) if active else 0,
            ),
            xp_trend_data=ChartData(
                labels=[f"{day:%a}" for day in trend_days],
                datasets=[_line_dataset("XP Awarded", [xp_per_day.get(day, 0) for day in trend_days],
                                        "245, 158, 11")],
            ),
            streak_distribution=ChartData(
                labels=[label for label, _, _ in STREAK_BUCKETS],
                datasets=[ChartDataset(
                    data=distribution,
                    background_color=STREAK_COLORS,
                    border_width=2,
                    border_color="#ffffff",
                )],
            ),
        )

    # ------------------------------------------------------------------
    # Question performance
    # ------------------------------------------------------------------

    async def get_question_performance(self) -> QuestionPerformance:
        try:
            return await self._question_performance()
        except Exception as exc:
            log_internal_error(logger, "Error fetching question performance", exc)
            await self._safe_rollback()
            return QuestionPerformance(degraded=True)

    async def _question_performance(self) -> QuestionPerformance:
        response_count = func.count(QuestionResponse.response_id).label("response_count")
        result = await self.db.execute(
            select(Question.question_id, Question.title, Question.question_type, Question.category, response_count)
            .outerjoin(QuestionResponse, QuestionResponse.question_id == Question.question_id)
            .where(Question.is_active.is_(True))
            .group_by(Question.question_id, Question.title, Question.question_type, Question.category)
        )
        metrics = []
        categories: Counter = Counter()
        for question_id, title, question_type, category, count in result.all():
            category = category or "uncategorized"
            categories[category] += 1
            metrics.append(QuestionMetric(
                id=question_id,
                title=title if len(title) <= TITLE_PREVIEW_LENGTH else f"{title[:TITLE_PREVIEW_LENGTH]}...",
                type=question_type,
                total_responses=int(count),
                category=category,
            ))
        metrics.sort(key=lambda metric: metric.total_responses, reverse=True)

        today = datetime.now(UTC).date()
        trend_days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
        trend_result = await self.db.execute(
            select(QuestionResponse.created_at).where(QuestionResponse.created_at >= utc_day_start(trend_days[0]))
        )
        per_day = Counter(ensure_utc(created_at).date() for created_at in trend_result.scalars())

        return QuestionPerformance(
            top_performing=metrics[:TOP_QUESTIONS],
            summary=PerformanceSummary(
                total_questions=len(metrics),
                total_responses=sum(metric.total_responses for metric in metrics),
            ),
            performance_trend=ChartData(
                labels=[_day_label(utc_day_start(day)) for day in trend_days],
                datasets=[_line_dataset("Daily Responses", [per_day.get(day, 0) for day in trend_days],
                                        "139, 92, 246")],
            ),
            category_breakdown=dict(categories),
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_voting_data(
        self,
        time_range: ExportRange = ExportRange.LAST_30D,
        include_responses: bool = True,
        include_voter_info: bool = False,
    ) -> ExportResult:
        """Serialize responses in the range to CSV, newest first."""
        today = datetime.now(UTC).date().isoformat()
        try:
            time_range = ExportRange(time_range)
            content, count = await self._export_csv(time_range, include_responses, include_voter_info)
            return ExportResult(
                filename=f"voting-data-{time_range.value}-{today}.csv",
                content=content,
                record_count=count,
            )
        except Exception as exc:
            log_internal_error(logger, "Error exporting voting data", exc, time_range=time_range)
            await self._safe_rollback()
            return ExportResult(
                filename=f"export-error-{today}.txt",
                content=EXPORT_ERROR_MESSAGE,
                record_count=0,
                degraded=True,
            )

    async def _export_csv(
        self,
        time_range: ExportRange,
        include_responses: bool,
        include_voter_info: bool,
    ) -> tuple[str, int]:
        query = (
            select(
                QuestionResponse,
                Question.title,
                Question.question_type,
                Question.category,
                VoterToken.vote_count,
            )
            .join(Question, Question.question_id == QuestionResponse.question_id)
            .outerjoin(VoterToken, VoterToken.voter_token_id == QuestionResponse.voter_token_id)
            .order_by(QuestionResponse.created_at.desc())
        )
        if time_range != ExportRange.ALL:
            since = datetime.now(UTC) - timedelta(hours=RANGE_HOURS[time_range.value])
            query = query.where(QuestionResponse.created_at >= since)

        rows = (await self.db.execute(query)).all()
        if not rows:
            return EXPORT_EMPTY_MESSAGE, 0

        columns = list(BASE_EXPORT_COLUMNS)
        if include_responses:
            columns += RESPONSE_EXPORT_COLUMNS
        if include_voter_info:
            columns += VOTER_EXPORT_COLUMNS

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
        writer.writeheader()
        for response, title, question_type, category, vote_count in rows:
            record = {
                "voteId": str(response.response_id),
                "questionId": str(response.question_id),
                "questionTitle": title,
                "questionType": question_type,
                "questionCategory": category or "uncategorized",
                "votedAt": ensure_utc(response.created_at).isoformat(),
                "ipAddress": response.ip_address or "unknown",
            }
            if include_responses:
                record["responseValue"] = json.dumps(response.response_data, sort_keys=True)
            if include_voter_info:
                record["voterTokenId"] = str(response.voter_token_id) if response.voter_token_id else "anonymous"
                record["userId"] = str(response.user_id) if response.user_id else ""
                record["voterTotalVotes"] = vote_count or 0
            writer.writerow(record)

        return buffer.getvalue(), len(rows)

    # ------------------------------------------------------------------
    # Daily rollup
    # ------------------------------------------------------------------

    async def aggregate_daily_stats(self, day: Optional[date] = None) -> DailyStats:
        """Write the ``AnalyticsDaily`` row for ``day`` (default: yesterday, UTC).

        Running it again for a day that already has a row returns the stored
        row untouched.
        """
        day = day or (datetime.now(UTC).date() - timedelta(days=1))
        try:
            return await self._aggregate_day(day)
        except Exception as exc:
            log_internal_error(logger, "Error aggregating daily stats", exc, day=day)
            await self._safe_rollback()
            return DailyStats(
                date=day.isoformat(),
                total_votes=0,
                unique_voters=0,
                total_xp_earned=0,
                popular_questions=[],
                created=False,
                degraded=True,
            )

    async def _aggregate_day(self, day: date) -> DailyStats:
        existing = await self._get_daily(day)
        if existing is not None:
            return self._daily_out(existing, created=False)

        start, end = utc_day_bounds(day)
        responses = await self.db.execute(
            select(QuestionResponse.question_id, QuestionResponse.user_id, QuestionResponse.voter_token_id)
            .where(QuestionResponse.created_at >= start, QuestionResponse.created_at < end)
        )
        per_question: Counter = Counter()
        voters = set()
        for question_id, user_id, voter_token_id in responses.all():
            per_question[question_id] += 1
            voters.add(_identity_key(user_id, voter_token_id))

        xp_result = await self.db.execute(
            select(func.coalesce(func.sum(XpLedger.xp_amount), 0))
            .where(XpLedger.created_at >= start, XpLedger.created_at < end)
        )
        total_xp = int(xp_result.scalar_one())

        popular = per_question.most_common(DAILY_POPULAR_QUESTIONS)
        titles: dict = {}
        if popular:
            title_result = await self.db.execute(
                select(Question.question_id, Question.title)
                .where(Question.question_id.in_([question_id for question_id, _ in popular]))
            )
            titles.update(dict(title_result.all()))

        stmt = dialect_insert(self.db, AnalyticsDaily).values(
            date=day,
            total_votes=sum(per_question.values()),
            unique_voters=len(voters),
            total_xp_earned=total_xp,
            popular_questions=[
                {"questionId": str(question_id), "title": titles.get(question_id, ""), "votes": count}
                for question_id, count in popular
            ],
            created_at=datetime.now(UTC),
        ).on_conflict_do_nothing(index_elements=["date"])
        insert_result = await self.db.execute(stmt)
        await self.db.commit()

        created = bool(insert_result.rowcount)
        row = await self._get_daily(day)
        if created:
            logger.info(f"Aggregated analytics for {day}: {row.total_votes} votes, {row.unique_voters} voters")
        return self._daily_out(row, created=created)

    async def _get_daily(self, day: date) -> Optional[AnalyticsDaily]:
        result = await self.db.execute(
            select(AnalyticsDaily).where(AnalyticsDaily.date == day).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _daily_out(row: AnalyticsDaily, created: bool) -> DailyStats:
        return DailyStats(
            date=row.date.isoformat(),
            total_votes=row.total_votes,
            unique_voters=row.unique_voters,
            total_xp_earned=row.total_xp_earned,
            popular_questions=row.popular_questions or [],
            created=created,
        )
