# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
#
# - GET /health           - Liveness: process is up
# - GET /health/detailed  - Dependencies: database, redis, vector index, AI
#                           provider; 503 when the database is unreachable
# =============================================================================

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.dependencies import SupabaseDep
from lib.supabase_client import SupabaseClientError
from lib.utils import utc_now_iso
from lib.vector_store import vector_store

logger = logging.getLogger(__name__)

router = APIRouter()

STARTED_AT = time.monotonic()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    uptime: float
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual service checks."""
    database: str
    redis: str
    vector_store: str
    ai_provider: str


class DetailedHealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    environment: str
    version: str
    checks: ChecksResponse
    vector_index: dict[str, int]


def _uptime() -> float:
    return round(time.monotonic() - STARTED_AT, 1)


def _check_redis() -> str:
    if not settings.REDIS_URL:
        return "not_configured"

    import redis

    try:
        client = redis.Redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        client.ping()
        return "healthy"
    except redis.RedisError as e:
        return f"unhealthy: {str(e)[:50]}"


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=utc_now_iso(),
        uptime=_uptime(),
        environment=settings.ENVIRONMENT,
        version=settings.APP_VERSION,
    )


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(db: SupabaseDep):
    """
    Dependency health.

    The database is required; redis and the AI provider are reported but
    don't degrade the status.
    """
    try:
        db.ping()
        database = "healthy"
    except SupabaseClientError as e:
        logger.error(f"Health check database failure: {e}")
        database = f"unhealthy: {e.message[:50]}"

    checks = ChecksResponse(
        database=database,
        redis=_check_redis(),
        vector_store="healthy",
        ai_provider="configured" if settings.OPENAI_API_KEY else "not_configured",
    )

    healthy = database == "healthy"
    body = DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=utc_now_iso(),
        uptime=_uptime(),
        environment=settings.ENVIRONMENT,
        version=settings.APP_VERSION,
        checks=checks,
        vector_index=vector_store.stats(),
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
