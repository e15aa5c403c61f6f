# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.user import UserResponse


class AuthUser(BaseModel):
    """
    Authenticated user resolved from a bearer token.

    Carries the full user row so routes that need preferences or metrics
    don't have to fetch it again.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    status: str = "active"
    record: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AuthUser":
        return cls(
            id=str(row["id"]),
            email=row.get("email"),
            name=row.get("name"),
            status=row.get("status") or "active",
            record=row,
        )


class TokenPayload(BaseModel):
    """Decoded access token claims."""
    sub: str  # User ID
    email: Optional[str] = None
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp


class AuthResponse(BaseModel):
    """Returned by register and login."""
    success: bool = True
    token: str
    user: UserResponse
