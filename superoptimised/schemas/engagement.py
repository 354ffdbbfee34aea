"""Engagement and XP schemas."""
from datetime import datetime
from typing import Optional

from pydantic import Field

from superoptimised.schemas.base import BaseSchema


class LeaderboardEntry(BaseSchema):
    rank: int
    vote_count: int
    total_xp: int
    current_streak: int
    member_since: datetime


class RecentActivity(BaseSchema):
    date: str
    total_votes: int
    unique_voters: int


class GlobalEngagement(BaseSchema):
    total_xp_earned: int
    total_xp_transactions: int
    recent_activity: list[RecentActivity]
    leaderboard: list[LeaderboardEntry]


class IdentityEngagement(BaseSchema):
    total_xp: int
    total_votes: int
    current_streak: int
    longest_streak: int
    xp_transactions: int
    rank: Optional[int] = None
    last_activity: Optional[datetime] = None


class Milestone(BaseSchema):
    votes: int
    xp_reward: int
    title: str
    achieved: bool


class EngagementResponse(BaseSchema):
    global_stats: GlobalEngagement = Field(alias="global")
    user: Optional[IdentityEngagement] = None
    milestones: list[Milestone]
    last_updated: datetime
