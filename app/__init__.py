# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# The HTTP side of the life coach API:
# - main.py: App entry point, middleware order, error handlers
# - config.py: Settings from environment / .env
# - auth/: Bearer tokens, register and login
# - middleware/: Security headers, request checks, rate limits
# - routers/: Users, goals, chat, analytics and health endpoints
#
# Routes stay thin and delegate to core/services.
# =============================================================================
