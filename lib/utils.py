# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application: UUID and timestamp helpers,
# timeframe parsing, and the base error class for non-HTTP layers.
# =============================================================================

from datetime import datetime, timezone
from typing import Any
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Example:
        goal_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        goal_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Time Utilities
# =============================================================================
# Supabase returns timestamptz columns as ISO strings ("...Z" or "+00:00").
# Everything we compute with is timezone-aware UTC.

def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current time as an ISO string, the format stored in the database."""
    return utc_now().isoformat()


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse a database timestamp into an aware UTC datetime.

    Accepts datetimes, ISO strings (with "Z" or an offset) and None.
    Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except (ValueError, TypeError):
        return None


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime for storage (None passes through)."""
    return ensure_utc(value).isoformat() if value else None


# =============================================================================
# Timeframes
# =============================================================================

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def parse_timeframe_days(timeframe: str, default: int = 30) -> int:
    """
    Convert a timeframe like "7d", "30d", "90d" or "1y" into days.

    Anything else falls back to `default`.

    Example:
        parse_timeframe_days("90d")  # 90
        parse_timeframe_days("1y")   # 365
    """
    return TIMEFRAME_DAYS.get(timeframe, default)


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors outside the HTTP layer.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Example:
        class CoachError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="COACH_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
