# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the AI Life Coach API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.exceptions import (
    LifeCoachException,
    database_exception_handler,
    http_exception_handler,
    lifecoach_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.middleware import (
    BodySizeLimitMiddleware,
    ContentTypeMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SuspiciousActivityMiddleware,
)
from app.routers import analytics, chat, goals, health, users
from app.auth import routes as auth_routes
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
if settings.LOG_FILE:
    file_handler = logging.FileHandler(settings.LOG_FILE)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logging.getLogger().addHandler(file_handler)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Log configuration, warn about missing optional services
    - Shutdown: Log
    """
    # Startup
    logger.info(f"Starting AI Life Coach API v{settings.APP_VERSION} in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set - chat will use fallback replies")
    if not settings.RATE_LIMIT_ENABLED:
        logger.warning("Rate limiting is disabled")

    yield

    # Shutdown
    logger.info("Shutting down AI Life Coach API")


# Create FastAPI application
app = FastAPI(
    title="AI Life Coach API",
    description="""
## Goal Tracking with an AI Coach

Set goals, track progress and talk them through with an AI coach that knows
your goals, your recent progress and what you've discussed before.

### How It Works

1. **Register** - Create an account and get a bearer token
2. **Create Goals** - Add goals with categories, target dates and milestones
3. **Track Progress** - Report progress and record check-ins
4. **Chat** - Ask the coach for help; replies use your goals as context
5. **Review** - Dashboards, trends and insights over your goals and chats

### Quick Start

```bash
# 1. Register
curl -X POST http://localhost:8000/api/auth/register \\
  -H "Content-Type: application/json" \\
  -d '{"name": "Ada Lovelace", "email": "ada@example.com", "password": "Engine@1843"}'

# 2. Create a goal
curl -X POST http://localhost:8000/api/goals \\
  -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
  -d '{"title": "Run a half marathon", "category": "fitness", "type": "long-term"}'

# 3. Talk to the coach
curl -X POST http://localhost:8000/api/chat/message \\
  -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
  -d '{"message": "How should I structure my training?"}'
```
""",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Register, log in and verify tokens",
        },
        {
            "name": "Users",
            "description": "Profile, preferences, avatar, stats and data export",
        },
        {
            "name": "Goals",
            "description": "Goals, progress updates, check-ins and milestones",
        },
        {
            "name": "Chat",
            "description": "Conversation with the AI coach",
        },
        {
            "name": "Analytics",
            "description": "Dashboards, trends and insights",
        },
        {
            "name": "Health",
            "description": "API health and dependency checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================
# Starlette runs the last-added middleware first. Listed here outermost
# first: CORS, gzip, security headers, request logging, body size, content
# type, suspicious activity, rate limiting.

def register_middleware(application: FastAPI) -> None:
    application.add_middleware(RateLimitMiddleware)
    application.add_middleware(SuspiciousActivityMiddleware)
    application.add_middleware(ContentTypeMiddleware)
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(GZipMiddleware, minimum_size=1024)
    # CORS middleware - allows cross-origin requests
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
        allow_credentials=settings.is_production,
        allow_methods=["*"],
        allow_headers=["*"],
    )


register_middleware(app)


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(LifeCoachException, lifecoach_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(SupabaseClientError, database_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/auth",
    tags=["Auth"]
)

# User profile endpoints
app.include_router(
    users.router,
    prefix="/api/users",
    tags=["Users"]
)

# Goal endpoints
app.include_router(
    goals.router,
    prefix="/api/goals",
    tags=["Goals"]
)

# Coach chat endpoints
app.include_router(
    chat.router,
    prefix="/api/chat",
    tags=["Chat"]
)

# Analytics endpoints
app.include_router(
    analytics.router,
    prefix="/api/analytics",
    tags=["Analytics"]
)

# Health check endpoints
app.include_router(
    health.router,
    tags=["Health"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "AI Life Coach API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
