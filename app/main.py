"""Main FastAPI application for the Lesson Pacer service."""
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from app.routers import schedule, progress, metrics
from app.db.init_db import init_db
from app.db.database import get_db
from app.logging_config import setup_logging, get_logger
from app.config import settings

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup.

    Creates tables and seeds the default scoring metrics.
    """
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="Lesson Pacer API",
    description="""
    Lesson scheduling and progress scoring for a language-learning course.

    ## Features

    - **Deadlines**: Turn an enrollment start date and weekly schedule into per-lesson due dates
    - **Progress**: Completion percentages with one-time milestone bonuses
    - **Bonuses**: Streak and first-practice coin bonuses
    - **Daily Streaks**: Consecutive practice day tracking
    - **Scoring Weights**: Per-metric weights and thresholds for pronunciation scoring

    ## Scoring Metrics

    Volume, speech rate, acceleration, response time and pause management each
    carry a weight from 0 to 100. Weights of enabled metrics should total 100;
    an unbalanced total is reported, never silently corrected.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "schedule",
            "description": "Lesson deadline calculation"
        },
        {
            "name": "progress",
            "description": "Lesson progress, bonuses and daily streaks"
        },
        {
            "name": "metrics",
            "description": "Scoring metric weights and thresholds"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

logger.info(
    f"Rate limiting {'enabled' if settings.RATE_LIMIT_ENABLED else 'disabled'}: "
    f"default {settings.RATE_LIMIT_DEFAULT} per IP"
)

app.include_router(schedule.router)
app.include_router(progress.router)
app.include_router(metrics.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed
    """
    timestamp = datetime.utcnow().isoformat() + "Z"

    try:
        db.execute(text("SELECT 1"))
        logger.debug("Health check passed")

        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": timestamp,
            "environment": settings.ENVIRONMENT
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp
            }
        )


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness check for container orchestration.

    Returns:
        200 OK: Service is ready
        503 Service Unavailable: Service is not ready
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.utcnow().isoformat() + "Z"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
