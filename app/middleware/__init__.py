# =============================================================================
# app/middleware/ - HTTP Middleware
# =============================================================================
# - security.py: Security headers, request logging, body size and content
#   type checks, suspicious-activity detection
# - rate_limit.py: Fixed-window rate limits per client IP
#
# Registered in main.py; order matters (see register_middleware).
# =============================================================================

from app.middleware.rate_limit import (
    RateLimitMiddleware,
    client_ip,
    limiter,
)
from app.middleware.security import (
    BodySizeLimitMiddleware,
    ContentTypeMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SuspiciousActivityMiddleware,
)

__all__ = [
    "BodySizeLimitMiddleware",
    "ContentTypeMiddleware",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "SuspiciousActivityMiddleware",
    "client_ip",
    "limiter",
]
