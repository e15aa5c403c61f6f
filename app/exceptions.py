# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error leaves the API in the same envelope:
#   {"success": false, "error": "...", "code": "...", "suggestion": ..., "details": ...}
#
# Operational errors (bad input, missing resources, auth failures) are shown
# to the client as-is. Anything else is logged with request context and
# masked behind a generic 500.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong on our end. Please try again later."


class LifeCoachException(Exception):
    """
    Base exception for the Life Coach API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "LIFECOACH_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: Any = None,
        is_operational: bool = True,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details
        self.is_operational = is_operational
        self.headers = headers

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Request Exceptions
# =============================================================================

class ValidationFailedError(LifeCoachException):
    """Raised when request data fails validation."""

    def __init__(self, details: list[dict[str, Any]] | None = None, message: str = "Validation failed"):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            suggestion="Fix the listed fields and resend the request",
            details=details or [],
        )


class InvalidUpdateError(LifeCoachException):
    """Raised when a PATCH body contains fields that may not be changed."""

    def __init__(self, fields: list[str], allowed: list[str]):
        super().__init__(
            message="Invalid updates",
            code="INVALID_UPDATES",
            status_code=400,
            suggestion=f"Only these fields can be updated: {', '.join(allowed)}",
            details={"rejected_fields": fields, "allowed_fields": allowed},
        )


class SuspiciousRequestError(LifeCoachException):
    """Raised when a request matches a known attack pattern."""

    def __init__(self):
        super().__init__(
            message="Invalid request format.",
            code="SUSPICIOUS_REQUEST",
            status_code=400,
        )


class UnsupportedMediaTypeError(LifeCoachException):
    """Raised when a body-carrying request is neither JSON nor multipart."""

    def __init__(self, content_type: str | None):
        super().__init__(
            message="Content-Type must be application/json or multipart/form-data",
            code="UNSUPPORTED_MEDIA_TYPE",
            status_code=415,
            suggestion="Send the body as JSON with 'Content-Type: application/json'",
            details={"content_type": content_type},
        )


class PayloadTooLargeError(LifeCoachException):
    """Raised when the request body exceeds MAX_BODY_SIZE_MB."""

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            message="Request entity too large",
            code="PAYLOAD_TOO_LARGE",
            status_code=413,
            suggestion=f"Keep request bodies under {max_bytes // (1024 * 1024)}MB",
            details={"size_bytes": size_bytes, "max_bytes": max_bytes},
        )


class RateLimitExceededError(LifeCoachException):
    """Raised when a client exhausts its request budget for the window."""

    def __init__(self, message: str, retry_after: int):
        super().__init__(
            message=message,
            code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            suggestion=f"Wait {retry_after} seconds before retrying",
            details={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class RouteNotFoundError(LifeCoachException):
    """Raised for paths that no router handles."""

    def __init__(self, path: str):
        super().__init__(
            message=f"Can't find {path} on this server!",
            code="ROUTE_NOT_FOUND",
            status_code=404,
        )


# =============================================================================
# Auth Exceptions
# =============================================================================

class AuthenticationError(LifeCoachException):
    """Raised when a bearer token is missing or invalid."""

    def __init__(self, message: str = "Invalid token."):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            suggestion="Log in again to obtain a fresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AccountDisabledError(LifeCoachException):
    """Raised when a suspended or deleted account tries to authenticate."""

    def __init__(self, status: str):
        super().__init__(
            message=f"Account is {status}.",
            code="ACCOUNT_DISABLED",
            status_code=403,
            suggestion="Contact support to restore access",
            details={"status": status},
        )


class UserAlreadyExistsError(LifeCoachException):
    """Raised when registering with an email that is already taken."""

    def __init__(self, email: str):
        super().__init__(
            message="User already exists",
            code="USER_EXISTS",
            status_code=400,
            suggestion="Log in instead, or register with a different email",
            details={"email": email},
        )


class InvalidCredentialsError(LifeCoachException):
    """Raised on a bad email/password combination."""

    def __init__(self):
        super().__init__(
            message="Invalid credentials",
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


class IncorrectPasswordError(LifeCoachException):
    """Raised when a password confirmation for a sensitive action is wrong."""

    def __init__(self, message: str = "Current password is incorrect"):
        super().__init__(
            message=message,
            code="INCORRECT_PASSWORD",
            status_code=400,
        )


# =============================================================================
# Resource Exceptions
# =============================================================================

class UserNotFoundError(LifeCoachException):
    """Raised when a user ID doesn't exist."""

    def __init__(self, user_id: str):
        super().__init__(
            message="User not found",
            code="USER_NOT_FOUND",
            status_code=404,
            details={"user_id": user_id},
        )


class GoalNotFoundError(LifeCoachException):
    """Raised when a goal doesn't exist or belongs to another user."""

    def __init__(self, goal_id: str):
        super().__init__(
            message="Goal not found",
            code="GOAL_NOT_FOUND",
            status_code=404,
            suggestion="Check that the goal_id is correct and the goal hasn't been deleted",
            details={"goal_id": goal_id},
        )


class MilestoneNotFoundError(LifeCoachException):
    """Raised when a milestone ID isn't part of the goal."""

    def __init__(self, goal_id: str, milestone_id: str):
        super().__init__(
            message="Milestone not found",
            code="MILESTONE_NOT_FOUND",
            status_code=404,
            details={"goal_id": goal_id, "milestone_id": milestone_id},
        )


class MessageNotFoundError(LifeCoachException):
    """Raised when a chat message doesn't exist or belongs to another user."""

    def __init__(self, message_id: str):
        super().__init__(
            message="Message not found",
            code="MESSAGE_NOT_FOUND",
            status_code=404,
            details={"message_id": message_id},
        )


class ConversationNotFoundError(LifeCoachException):
    """Raised when a conversation has no messages for the user."""

    def __init__(self, conversation_id: str):
        super().__init__(
            message="Conversation not found",
            code="CONVERSATION_NOT_FOUND",
            status_code=404,
            details={"conversation_id": conversation_id},
        )


# =============================================================================
# Upload Exceptions
# =============================================================================

class InvalidFileTypeError(LifeCoachException):
    """Raised when uploaded file type is not allowed."""

    def __init__(self, content_type: str | None, allowed: list[str]):
        super().__init__(
            message="Only image files (JPEG, PNG, GIF) are allowed",
            code="INVALID_FILE_TYPE",
            status_code=400,
            suggestion=f"Only these file types are supported: {', '.join(allowed)}",
            details={"content_type": content_type, "allowed_types": allowed},
        )


class FileTooLargeError(LifeCoachException):
    """Raised when uploaded file exceeds size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": round(size_mb, 2), "max_mb": max_mb},
        )


class StorageUploadError(LifeCoachException):
    """Raised when file upload to storage fails."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            is_operational=False,
        )


# =============================================================================
# AI Exceptions
# =============================================================================

class AIServiceError(LifeCoachException):
    """
    Raised when the AI provider rejects a request.

    Provider status codes are mapped to what the client can act on:
    400 -> 400, 401 -> 500 (our key, not theirs), 429 -> 429, 5xx -> 503.
    """

    STATUS_MAP = {400: 400, 401: 500, 429: 429}

    def __init__(self, provider_status: int | None, error: str):
        if provider_status in self.STATUS_MAP:
            status_code = self.STATUS_MAP[provider_status]
        elif provider_status is not None and provider_status >= 500:
            status_code = 503
        else:
            status_code = 500

        messages = {
            400: "The AI service could not process this request",
            429: "AI service is busy. Please try again shortly.",
            503: "AI service is temporarily unavailable",
        }
        super().__init__(
            message=messages.get(status_code, "AI service error"),
            code="AI_SERVICE_ERROR",
            status_code=status_code,
            details={"provider_status": provider_status},
            is_operational=status_code != 500,
        )
        self.error = error


# =============================================================================
# Exception Handlers
# =============================================================================

def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def lifecoach_exception_handler(
    request: Request,
    exc: LifeCoachException
) -> JSONResponse:
    """
    Convert LifeCoachException to JSON response.

    4xx errors are logged as warnings, 5xx as errors. Non-operational errors
    are masked outside development.
    """
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code} on {request.method} {request.url.path} "
            f"from {_client_ip(request)}: {exc.message}"
        )
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    if not exc.is_operational and not settings.is_development:
        content = {
            "success": False,
            "error": GENERIC_ERROR_MESSAGE,
            "code": "INTERNAL_ERROR",
        }
    else:
        content = exc.to_dict()

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=exc.headers,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Flattens each error into {field, message, value} and answers 400.
    """
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value"),
            "value": error.get("input"),
        })

    logger.warning(f"Validation failed on {request.method} {request.url.path}: {len(details)} error(s)")
    return await lifecoach_exception_handler(request, ValidationFailedError(details))


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (unknown routes, bad methods) in the envelope."""
    if exc.status_code == 404:
        return await lifecoach_exception_handler(request, RouteNotFoundError(request.url.path))

    return await lifecoach_exception_handler(
        request,
        LifeCoachException(
            message=str(exc.detail),
            code="HTTP_ERROR",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        ),
    )


async def database_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Database failures are never operational: log them and mask the detail."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")

    content: dict[str, Any] = {
        "success": False,
        "error": GENERIC_ERROR_MESSAGE,
        "code": "DATABASE_ERROR",
    }
    if settings.is_development:
        content["debug"] = {"type": type(exc).__name__, "message": str(exc)}

    return JSONResponse(status_code=500, content=content)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full traceback with request context. The client only gets the
    generic message, plus the exception text when running in development.
    """
    logger.exception(
        f"Unexpected error on {request.method} {request.url.path} "
        f"from {_client_ip(request)}: {exc}"
    )

    content: dict[str, Any] = {
        "success": False,
        "error": GENERIC_ERROR_MESSAGE,
        "code": "INTERNAL_ERROR",
    }
    if settings.is_development:
        content["debug"] = {"type": type(exc).__name__, "message": str(exc)}

    return JSONResponse(status_code=500, content=content)
