# =============================================================================
# app/middleware/security.py - Security Middleware
# =============================================================================
# Request hardening applied before any route runs:
# - SecurityHeadersMiddleware: standard security headers on every response
# - RequestLoggingMiddleware: one log line per request with timing
# - BodySizeLimitMiddleware: reject bodies over MAX_BODY_SIZE_MB (413)
# - ContentTypeMiddleware: POST/PUT/PATCH bodies must be JSON or multipart (415)
# - SuspiciousActivityMiddleware: reject obvious injection probes (400)
#
# Exceptions raised inside middleware never reach the app's exception
# handlers, so each middleware renders its own error envelope.
# =============================================================================

import logging
import re
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.exceptions import (
    LifeCoachException,
    PayloadTooLargeError,
    SuspiciousRequestError,
    UnsupportedMediaTypeError,
)
from app.middleware.rate_limit import client_ip

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": "default-src 'self'; img-src 'self' data: https:; frame-ancestors 'none'",
}

SUSPICIOUS_PATTERNS = [
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"\bunion\b\s+(all\s+)?\bselect\b", re.IGNORECASE),
    re.compile(r";\s*(drop|truncate|alter)\s+table\b", re.IGNORECASE),
    re.compile(r"'\s*or\s+'?\d+'?\s*=\s*'?\d+", re.IGNORECASE),
    re.compile(r"\.\.[/\\]"),
    re.compile(r"%(3c|3e|27|22)", re.IGNORECASE),
]

BODY_METHODS = {"POST", "PUT", "PATCH"}
ALLOWED_CONTENT_TYPES = ("application/json", "multipart/form-data")


def _error_response(exc: LifeCoachException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


def is_suspicious(text: str) -> bool:
    """True when the text matches a known attack pattern."""
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


def _has_body(request: Request) -> bool:
    length = request.headers.get("content-length")
    if length is not None:
        return length.strip() not in ("", "0")
    return "transfer-encoding" in request.headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, duration and client IP for every request."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.1f}ms ip={client_ip(request)}"
        )
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose Content-Length exceeds MAX_BODY_SIZE_MB."""

    async def dispatch(self, request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_size_bytes:
            logger.warning(f"Rejected {length}-byte body on {request.url.path}")
            return _error_response(PayloadTooLargeError(int(length), settings.max_body_size_bytes))
        return await call_next(request)


class ContentTypeMiddleware(BaseHTTPMiddleware):
    """Require JSON or multipart bodies on POST/PUT/PATCH."""

    async def dispatch(self, request: Request, call_next):
        if request.method in BODY_METHODS and _has_body(request):
            content_type = request.headers.get("content-type")
            if not content_type or not content_type.lower().startswith(ALLOWED_CONTENT_TYPES):
                logger.warning(f"Unsupported content type {content_type!r} on {request.url.path}")
                return _error_response(UnsupportedMediaTypeError(content_type))
        return await call_next(request)


class SuspiciousActivityMiddleware(BaseHTTPMiddleware):
    """
    Reject requests that look like XSS, SQL injection or path traversal.

    The raw path, the query string and JSON bodies are checked. Multipart
    bodies (avatar uploads) are binary and skipped.
    """

    async def dispatch(self, request: Request, call_next):
        raw_path = request.scope.get("raw_path") or request.url.path.encode()
        targets = [
            raw_path.decode("latin-1"),
            request.url.query,
        ]

        content_type = (request.headers.get("content-type") or "").lower()
        if request.method in BODY_METHODS and content_type.startswith("application/json"):
            body = await request.body()
            targets.append(body.decode("utf-8", errors="ignore"))

        if any(is_suspicious(target) for target in targets if target):
            logger.warning(
                f"Suspicious request blocked: {request.method} {request.url.path} ip={client_ip(request)}"
            )
            return _error_response(SuspiciousRequestError())

        return await call_next(request)
