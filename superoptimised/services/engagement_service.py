"""Engagement statistics: XP tiers, streaks, leaderboard and milestones."""
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.config import get_settings
from superoptimised.models.analytics_daily import AnalyticsDaily
from superoptimised.models.base import XpActionType
from superoptimised.models.engagement import EngagementStats, XpLedger
from superoptimised.models.voter_token import VoterToken
from superoptimised.schemas.engagement import (
    EngagementResponse,
    GlobalEngagement,
    IdentityEngagement,
    LeaderboardEntry,
    Milestone,
    RecentActivity,
)
from superoptimised.services.identity import Identity, VoterIdentity
from superoptimised.utils.datetime_helpers import ensure_utc
from superoptimised.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)

# (highest vote number in tier, XP per vote)
XP_TIERS = (
    (5, 5),
    (10, 10),
    (25, 15),
    (50, 20),
    (100, 25),
    (250, 50),
)
MAX_XP_PER_VOTE = 100

# (votes required, xp reward, title)
MILESTONES = (
    (10, 50, "Getting Started"),
    (25, 100, "Community Member"),
    (50, 250, "Active Participant"),
    (100, 500, "Community Champion"),
    (250, 1000, "Superoptimised Builder"),
)

LEADERBOARD_SIZE = 10


def calculate_xp_for_vote(vote_number: int) -> int:
    """XP awarded for an identity's ``vote_number``-th vote (1-based)."""
    vote_number = max(1, vote_number)
    for upper_bound, xp in XP_TIERS:
        if vote_number <= upper_bound:
            return xp
    return MAX_XP_PER_VOTE


def next_streak(
    current_streak: int,
    last_activity: Optional[datetime],
    now: datetime,
    window_days: int = 1,
) -> int:
    """Streak after activity at ``now``, counted in UTC calendar days.

    Another vote on the same day keeps the streak; a vote within
    ``window_days`` of the previous active day extends it; anything later
    starts over at 1.
    """
    if last_activity is None or current_streak <= 0:
        return 1

    gap_days = (ensure_utc(now).date() - ensure_utc(last_activity).date()).days
    if gap_days <= 0:
        return current_streak
    if gap_days <= window_days:
        return current_streak + 1
    return 1


@dataclass(frozen=True)
class VoteReward:
    xp_awarded: int
    total_xp: int
    vote_number: int


class EngagementService:
    """Applies vote side effects to ``EngagementStats`` and ``XpLedger``."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def _get_or_create_stats(self, identity: Identity) -> EngagementStats:
        conflict_column = "voter_token_id" if isinstance(identity, VoterIdentity) else "user_id"
        stmt = (
            dialect_insert(self.db, EngagementStats)
            .values(**identity.columns, current_streak=0, longest_streak=0, total_votes=0, total_xp=0)
            .on_conflict_do_nothing(index_elements=[conflict_column])
        )
        await self.db.execute(stmt)

        result = await self.db.execute(
            select(EngagementStats)
            .where(identity.filter_for(EngagementStats))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def record_vote(
        self,
        identity: Identity,
        question_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> VoteReward:
        """Award XP for one accepted vote and advance the identity's streak."""
        now = now or datetime.now(UTC)
        stats = await self._get_or_create_stats(identity)

        vote_number = stats.total_votes + 1
        xp = calculate_xp_for_vote(vote_number)

        stats.current_streak = next_streak(
            stats.current_streak, stats.last_activity, now, self.settings.streak_window_days
        )
        stats.longest_streak = max(stats.longest_streak, stats.current_streak)
        stats.total_votes = vote_number
        stats.total_xp += xp
        stats.last_activity = now

        self.db.add(XpLedger(
            **identity.columns,
            action_type=XpActionType.VOTE.value,
            xp_amount=xp,
            source_question_id=question_id,
            created_at=now,
        ))

        if isinstance(identity, VoterIdentity):
            await self.db.execute(
                update(VoterToken)
                .where(VoterToken.voter_token_id == identity.voter_token_id)
                .values(vote_count=VoterToken.vote_count + 1, last_active=now)
                .execution_options(synchronize_session=False)
            )

        await self.db.commit()
        logger.info(f"Awarded {xp} XP to {identity.key} for vote #{vote_number}")
        return VoteReward(xp_awarded=xp, total_xp=stats.total_xp, vote_number=vote_number)

    async def get_stats(self, identity: Identity) -> Optional[EngagementStats]:
        result = await self.db.execute(
            select(EngagementStats).where(identity.filter_for(EngagementStats))
        )
        return result.scalar_one_or_none()

    async def get_total_xp(self, identity: Identity) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(XpLedger.xp_amount), 0)).where(identity.filter_for(XpLedger))
        )
        return int(result.scalar_one())

    async def _get_identity_engagement(self, identity: Identity) -> Optional[IdentityEngagement]:
        stats = await self.get_stats(identity)
        if stats is None:
            return None

        xp_result = await self.db.execute(
            select(
                func.coalesce(func.sum(XpLedger.xp_amount), 0),
                func.count(XpLedger.entry_id),
            ).where(identity.filter_for(XpLedger))
        )
        total_xp, transactions = xp_result.one()

        ahead_result = await self.db.execute(
            select(func.count(EngagementStats.stats_id)).where(EngagementStats.total_votes > stats.total_votes)
        )
        rank = int(ahead_result.scalar_one()) + 1

        # A streak is only current if the last active day is inside the window
        current_streak = stats.current_streak
        last_activity = ensure_utc(stats.last_activity)
        if last_activity is not None:
            gap_days = (datetime.now(UTC).date() - last_activity.date()).days
            if gap_days > self.settings.streak_window_days:
                current_streak = 0

        return IdentityEngagement(
            total_xp=int(total_xp),
            total_votes=stats.total_votes,
            current_streak=current_streak,
            longest_streak=stats.longest_streak,
            xp_transactions=int(transactions),
            rank=rank,
            last_activity=last_activity,
        )

    async def get_engagement(self, identity: Optional[Identity] = None) -> EngagementResponse:
        """Community totals, leaderboard and milestones, plus the caller's own numbers."""
        totals_result = await self.db.execute(
            select(func.coalesce(func.sum(XpLedger.xp_amount), 0), func.count(XpLedger.entry_id))
        )
        total_xp, total_transactions = totals_result.one()

        recent_result = await self.db.execute(
            select(AnalyticsDaily).order_by(AnalyticsDaily.date.desc()).limit(7)
        )
        recent_activity = [
            RecentActivity(
                date=row.date.isoformat(),
                total_votes=row.total_votes,
                unique_voters=row.unique_voters,
            )
            for row in recent_result.scalars()
        ]

        leaders_result = await self.db.execute(
            select(EngagementStats)
            .order_by(EngagementStats.total_votes.desc(), EngagementStats.created_at)
            .limit(LEADERBOARD_SIZE)
        )
        leaderboard = [
            LeaderboardEntry(
                rank=index,
                vote_count=row.total_votes,
                total_xp=row.total_xp,
                current_streak=row.current_streak,
                member_since=row.created_at,
            )
            for index, row in enumerate(leaders_result.scalars(), start=1)
        ]

        user_stats = await self._get_identity_engagement(identity) if identity is not None else None
        votes_so_far = user_stats.total_votes if user_stats else 0

        milestones = [
            Milestone(votes=votes, xp_reward=reward, title=title, achieved=votes_so_far >= votes)
            for votes, reward, title in MILESTONES
        ]

        return EngagementResponse(
            global_stats=GlobalEngagement(
                total_xp_earned=int(total_xp),
                total_xp_transactions=int(total_transactions),
                recent_activity=recent_activity,
                leaderboard=leaderboard,
            ),
            user=user_stats,
            milestones=milestones,
            last_updated=datetime.now(UTC),
        )
