"""Admin analytics endpoints."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_admin_user
from superoptimised.models.user import User
from superoptimised.schemas.analytics import (
    CommunityEngagement,
    ExportResult,
    QuestionPerformance,
    VotingAnalytics,
)
from superoptimised.services.analytics_service import AnalyticsService, ExportRange, TimeRange

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/voting", response_model=VotingAnalytics)
async def voting_analytics(
    time_range: TimeRange = Query(default=TimeRange.LAST_7D, alias="timeRange"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await AnalyticsService(db).get_voting_analytics(time_range)


@router.get("/community", response_model=CommunityEngagement)
async def community_engagement(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await AnalyticsService(db).get_community_engagement()


@router.get("/questions", response_model=QuestionPerformance)
async def question_performance(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await AnalyticsService(db).get_question_performance()


@router.get("/export", response_model=ExportResult)
async def export_voting_data(
    time_range: ExportRange = Query(default=ExportRange.LAST_30D, alias="timeRange"),
    include_responses: bool = Query(default=True, alias="includeResponses"),
    include_voter_info: bool = Query(default=False, alias="includeVoterInfo"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """CSV export wrapped in JSON with its suggested filename."""
    return await AnalyticsService(db).export_voting_data(time_range, include_responses, include_voter_info)


@router.get("/export/download")
async def download_voting_data(
    time_range: ExportRange = Query(default=ExportRange.LAST_30D, alias="timeRange"),
    include_responses: bool = Query(default=True, alias="includeResponses"),
    include_voter_info: bool = Query(default=False, alias="includeVoterInfo"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """Same export served as a file attachment."""
    export = await AnalyticsService(db).export_voting_data(time_range, include_responses, include_voter_info)
    return PlainTextResponse(
        export.content,
        media_type="text/csv" if not export.degraded else "text/plain",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
