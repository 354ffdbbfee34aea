"""Health check endpoint."""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from superoptimised.config import get_settings
from superoptimised.database import engine
from superoptimised.version import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "detail": "Database connection failed"},
        )

    return {
        "status": "ok",
        "database": "connected",
    }


@router.get("/status")
async def app_status():
    """Version and environment, for display on the frontend."""
    settings = get_settings()
    return {
        "version": APP_VERSION,
        "environment": settings.environment,
    }
