"""FastAPI application entry point."""
import os

# Force UTC before any module caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from superoptimised.config import get_settings
from superoptimised.version import APP_VERSION
from superoptimised.routers import analytics, auth, blog, health, maintenance, questionnaires, questions, votes
from superoptimised.utils.exceptions import RateLimitExceededError, VotingError
from superoptimised.utils.log_sanitizer import log_internal_error

logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "superoptimised.log"
sql_log_file = logs_dir / "superoptimised_sql.log"
api_log_file = logs_dir / "superoptimised_api.log"

# 1 MB per file, 5 backups
rotating_handler = RotatingFileHandler(
    log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

sql_rotating_handler = RotatingFileHandler(
    sql_log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
sql_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# 2 MB per file, 15 backups
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# force=True overrides any configuration uvicorn installed first
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

api_logger = logging.getLogger("superoptimised.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    def filter(self, record):
        if record.levelno == logging.INFO and hasattr(record, 'getMessage'):
            message = record.getMessage()

            if any(keyword in message for keyword in ['ROLLBACK', 'BEGIN', 'COMMIT', 'generated in']):
                return False

            # Collapse multi-line statements onto one line
            if any([kw in message for kw in ['SELECT', 'DELETE', 'INSERT', 'UPDATE']]):
                record.msg = ' '.join(message.split())
                record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


async def cleanup_cycle():
    """
    Background task that sweeps expired rate-limit rows.

    Runs every ``cleanup_interval_minutes`` after a short startup delay.
    """
    from superoptimised.database import AsyncSessionLocal
    from superoptimised.services.rate_limit_service import RateLimitService

    startup_delay = settings.cleanup_startup_delay_seconds
    logger.info(f"Cleanup cycle starting in {startup_delay}s")
    await asyncio.sleep(startup_delay)

    logger.info("Cleanup cycle starting main loop")

    while True:
        try:
            async with AsyncSessionLocal() as db:
                deleted = await RateLimitService(db).cleanup_expired()
                logger.info(f"Cleanup cycle removed {deleted} expired rate limit rows")

        except Exception as e:
            logger.error(f"Cleanup cycle error: {e}")

        await asyncio.sleep(settings.cleanup_interval_minutes * 60)


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info("Superoptimised API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info("=" * 60)

    cleanup_task = None
    try:
        cleanup_task = asyncio.create_task(cleanup_cycle())
        logger.info(f"Cleanup cycle task started (runs every {settings.cleanup_interval_minutes} minutes)")
    except Exception as e:
        logger.error(f"Failed to start cleanup cycle: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down background tasks...")

        if cleanup_task:
            cleanup_task.cancel()
            try:
                await asyncio.wait_for(cleanup_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Cleanup task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Cleanup task did not cancel within timeout, forcing shutdown")
            except Exception as e:
                logger.error(f"Error cancelling cleanup task: {e}")

        logger.info("Superoptimised API Shutting Down... Goodbye!")


app = FastAPI(
    title="Superoptimised API",
    description="Community questions, voting and build journal backend",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        msg = error.get("msg", "Validation error")
        error_type = error.get("type", "unknown")

        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": msg,
            "type": error_type
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors
        }
    )


@app.exception_handler(VotingError)
async def voting_error_handler(request: Request, exc: VotingError):
    """Translate domain errors to their HTTP status with the client-safe message."""
    content = {"detail": exc.message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
        content["constraint"] = exc.constraint

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log_internal_error(logger, f"Unhandled error on {request.method} {request.url.path}", exc)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Request logging middleware writing START/COMPLETE/EXCEPTION lines with
    timing, status code and client IP to the dedicated API log.
    """
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")

    method = request.method
    path = request.url.path
    query_params = str(request.query_params) if request.query_params else ""

    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip} | UA: {user_agent[:50]}...")

    if query_params:
        api_logger.info(f">> {request_id} | QUERY | {query_params}")

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        api_logger.info(
            f"<< {request_id} | COMPLETE | {method} {path} | "
            f"Status: {response.status_code} | "
            f"Time: {process_time:.3f}s | "
            f"IP: {client_ip}"
        )

        if response.status_code >= 400:
            content_type = response.headers.get("content-type", "unknown")
            api_logger.warning(
                f"<< {request_id} | ERROR_RESPONSE | "
                f"Content-Type: {content_type}"
            )

        return response

    except Exception as e:
        process_time = time.time() - start_time

        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | "
            f"Time: {process_time:.3f}s | "
            f"IP: {client_ip}"
        )
        raise


allowed_origins = list(settings.cors_origins)
if settings.frontend_url and settings.frontend_url not in allowed_origins:
    allowed_origins.append(settings.frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(questions.router)
app.include_router(questions.admin_router)
app.include_router(questionnaires.router)
app.include_router(questionnaires.admin_router)
app.include_router(votes.router)
app.include_router(analytics.router)
app.include_router(blog.router)
app.include_router(blog.admin_router)
app.include_router(maintenance.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Superoptimised API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
