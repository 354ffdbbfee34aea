"""Admin maintenance triggers."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_admin_user
from superoptimised.models.user import User
from superoptimised.schemas.analytics import DailyStats
from superoptimised.services import AnalyticsService, RateLimitService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/maintenance", tags=["admin"])


@router.post("/cleanup-rate-limits")
async def cleanup_rate_limits(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """Run the expired rate-limit sweep now instead of waiting for the background cycle."""
    deleted = await RateLimitService(db).cleanup_expired()
    logger.info(f"Admin {admin.user_id} removed {deleted} expired rate limit rows")
    return {"success": True, "deleted": deleted}


@router.post("/aggregate-daily", response_model=DailyStats)
async def aggregate_daily(
    day: Optional[date] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await AnalyticsService(db).aggregate_daily_stats(day)
