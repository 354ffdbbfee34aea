"""Analytics dashboard schemas.

Chart payloads mirror what the dashboard's charting library consumes, so the
dataset styling keys travel as-is.
"""
from typing import Optional, Union
from uuid import UUID

from pydantic import Field

from superoptimised.schemas.base import BaseSchema


class ChartDataset(BaseSchema):
    label: Optional[str] = None
    data: list[Union[int, float]]
    border_color: Optional[str] = None
    background_color: Union[str, list[str], None] = None
    tension: Optional[float] = None
    fill: Optional[bool] = None
    border_width: Optional[int] = None


class ChartData(BaseSchema):
    labels: list[str] = Field(default_factory=list)
    datasets: list[ChartDataset] = Field(default_factory=list)


class VotingSummary(BaseSchema):
    total_votes: int = 0
    unique_voters: int = 0
    avg_votes_per_hour: float = 0.0
    peak_bucket: str = ""
    peak_votes: int = 0


class VotingAnalytics(BaseSchema):
    summary: VotingSummary = Field(default_factory=VotingSummary)
    chart_data: ChartData = Field(default_factory=ChartData)
    question_type_breakdown: dict[str, int] = Field(default_factory=dict)
    degraded: bool = False


class CommunityMetrics(BaseSchema):
    total_active_users: int = 0
    avg_current_streak: float = 0.0
    longest_streak: int = 0
    total_xp_awarded: int = 0
    retention_rate: int = 0


class CommunityEngagement(BaseSchema):
    metrics: CommunityMetrics = Field(default_factory=CommunityMetrics)
    xp_trend_data: ChartData = Field(default_factory=ChartData)
    streak_distribution: ChartData = Field(default_factory=ChartData)
    degraded: bool = False


class QuestionMetric(BaseSchema):
    id: UUID
    title: str
    type: str
    total_responses: int
    category: str


class PerformanceSummary(BaseSchema):
    total_questions: int = 0
    total_responses: int = 0


class QuestionPerformance(BaseSchema):
    top_performing: list[QuestionMetric] = Field(default_factory=list)
    summary: PerformanceSummary = Field(default_factory=PerformanceSummary)
    performance_trend: ChartData = Field(default_factory=ChartData)
    category_breakdown: dict[str, int] = Field(default_factory=dict)
    degraded: bool = False


class ExportResult(BaseSchema):
    format: str = "csv"
    filename: str
    content: str
    record_count: int
    degraded: bool = False


class DailyStats(BaseSchema):
    date: str
    total_votes: int
    unique_voters: int
    total_xp_earned: int
    popular_questions: list[dict]
    created: bool
    degraded: bool = False
