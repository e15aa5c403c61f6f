# =============================================================================
# app/middleware/rate_limit.py - Request Rate Limiting
# =============================================================================
# Fixed-window rate limits keyed by client IP, built on the `limits` library.
#
# Three budgets:
# - general: every /api request
# - chat: /api/chat requests (on top of general)
# - auth: register/login responses of 400 or above; successful ones are free
#
# The client IP is the socket peer unless TRUSTED_PROXY_COUNT proxies sit in
# front of the API, in which case it is the X-Forwarded-For entry that many
# hops from the right. Entries further left are client-supplied.
#
# Counters live in RATE_LIMIT_STORAGE_URL ("memory://" keeps them in-process,
# "redis://..." shares them between instances).
# =============================================================================

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

GENERAL_MESSAGE = "Too many requests from this IP, please try again later."
CHAT_MESSAGE = "Too many chat messages, please slow down."
AUTH_MESSAGE = "Too many authentication attempts, please try again later."

AUTH_PATHS = ("/api/auth/register", "/api/auth/login")


def client_ip(request: Request) -> str:
    """Client address as seen by the nearest trusted hop."""
    peer = request.client.host if request.client else "unknown"
    hops = settings.TRUSTED_PROXY_COUNT
    forwarded = request.headers.get("x-forwarded-for")
    if not hops or not forwarded:
        return peer

    entries = [entry.strip() for entry in forwarded.split(",") if entry.strip()]
    if not entries:
        return peer
    return entries[-hops] if len(entries) >= hops else entries[0]


class RateLimiter:
    """
    Named fixed-window budgets over one storage backend.

    Example:
        limiter.hit("auth", "10.0.0.1")        # False once the budget is spent
        limiter.retry_after("auth", "10.0.0.1")  # seconds until the window resets
    """

    def __init__(self, storage_url: str | None = None):
        self.storage = storage_from_string(storage_url or settings.RATE_LIMIT_STORAGE_URL)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.limits: dict[str, RateLimitItem] = {
            "general": parse(settings.RATE_LIMIT_GENERAL),
            "chat": parse(settings.RATE_LIMIT_CHAT),
            "auth": parse(settings.RATE_LIMIT_AUTH),
        }

    def hit(self, scope: str, key: str) -> bool:
        """Consume one unit; False when the window was already exhausted."""
        return self.strategy.hit(self.limits[scope], scope, key)

    def test(self, scope: str, key: str) -> bool:
        """True while there is budget left, without consuming any."""
        return self.strategy.test(self.limits[scope], scope, key)

    def retry_after(self, scope: str, key: str) -> int:
        stats = self.strategy.get_window_stats(self.limits[scope], scope, key)
        return max(int(stats.reset_time - time.time()), 1)

    def exceeded(self, scope: str, key: str, message: str) -> RateLimitExceededError:
        return RateLimitExceededError(message, retry_after=self.retry_after(scope, key))

    def reset(self) -> None:
        """Clear every counter."""
        self.storage.reset()


limiter = RateLimiter()


# =============================================================================
# Middleware
# =============================================================================

def _limited(scope: str, key: str, message: str, path: str) -> JSONResponse:
    exc = limiter.exceeded(scope, key, message)
    logger.warning(f"Rate limit '{scope}' exceeded for {key} on {path}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Apply the general and chat budgets to /api routes, and the auth budget
    to register/login.

    Auth attempts are counted from the response, so request validation
    failures count the same as wrong credentials.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not settings.RATE_LIMIT_ENABLED or not path.startswith("/api"):
            return await call_next(request)

        key = client_ip(request)
        checks = [("general", GENERAL_MESSAGE)]
        if path.startswith("/api/chat"):
            checks.append(("chat", CHAT_MESSAGE))

        for scope, message in checks:
            if not limiter.hit(scope, key):
                return _limited(scope, key, message, path)

        is_auth_attempt = request.method == "POST" and path.rstrip("/") in AUTH_PATHS
        if is_auth_attempt and not limiter.test("auth", key):
            return _limited("auth", key, AUTH_MESSAGE, path)

        response = await call_next(request)

        if is_auth_attempt and response.status_code >= 400:
            limiter.hit("auth", key)
            logger.info(f"Failed auth attempt from {key} on {path} ({response.status_code})")

        return response
