# =============================================================================
# core/models/user.py - User Account Schemas
# =============================================================================
# These models define the API contract for accounts:
# - RegisterRequest / LoginRequest: credentials coming in
# - UserPreferences / UserMetrics: the JSONB documents stored on the user
# - UserResponse: what clients get back (never the password hash)
#
# Password and name rules live here so every endpoint that accepts them
# validates them the same way.
# =============================================================================

import re
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


# At least one lower, one upper, one digit and one symbol from @$!%*?&;
# only those characters allowed.
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")
NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")


def validate_password_strength(value: str) -> str:
    """Raise ValueError unless the password satisfies PASSWORD_PATTERN."""
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must be at least 8 characters and contain at least one uppercase letter, "
            "one lowercase letter, one number, and one special character (@$!%*?&)"
        )
    return value


def validate_name(value: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def clean_focus_areas(value: list[str]) -> list[str]:
    cleaned = [area.strip() for area in value]
    if any(not 1 <= len(area) <= 50 for area in cleaned):
        raise ValueError("Each focus area must be between 1 and 50 characters")
    return cleaned


class UserStatus(str, Enum):
    """
    Account states.

    - active: normal access
    - suspended: blocked by an administrator, data retained
    - deleted: soft-deleted, blocked
    """
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class CoachingStyle(str, Enum):
    SUPPORTIVE = "supportive"
    DIRECT = "direct"
    ANALYTICAL = "analytical"


class ReminderFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"


# =============================================================================
# Embedded Documents
# =============================================================================

class UserPreferences(BaseModel):
    """Coaching preferences stored in users.preferences."""

    timezone: str = Field(default="UTC", max_length=64, description="IANA timezone name")
    coaching_style: CoachingStyle = Field(
        default=CoachingStyle.SUPPORTIVE,
        description="Tone the coach should use"
    )
    reminder_frequency: ReminderFrequency = Field(
        default=ReminderFrequency.WEEKLY,
        description="How often progress reminders are generated"
    )
    focus_areas: list[str] = Field(
        default_factory=list,
        max_length=20,
        description="Life areas the user wants to focus on"
    )

    @field_validator("focus_areas")
    @classmethod
    def check_focus_areas(cls, value: list[str]) -> list[str]:
        return clean_focus_areas(value)


class UserPreferencesUpdate(BaseModel):
    """Partial preferences; only the provided keys are merged."""

    model_config = {"extra": "forbid"}

    timezone: str | None = Field(default=None, max_length=64)
    coaching_style: CoachingStyle | None = None
    reminder_frequency: ReminderFrequency | None = None
    focus_areas: list[str] | None = Field(default=None, max_length=20)

    @field_validator("focus_areas")
    @classmethod
    def check_focus_areas(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return clean_focus_areas(value)


class UserMetrics(BaseModel):
    """Aggregates cached on the user row, recalculated from goals."""

    total_goals: int = 0
    completed_goals: int = 0
    average_progress: float = 0.0
    streak_days: int = 0
    last_active: datetime | None = None


# =============================================================================
# Requests
# =============================================================================

class RegisterRequest(BaseModel):
    """
    Registration payload.

    Example:
        {
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "password": "Engine@1843",
            "confirm_password": "Engine@1843"
        }
    """

    name: str = Field(..., description="Display name (letters and spaces)")
    email: EmailStr = Field(..., description="Login email, stored lower-cased")
    password: str = Field(..., max_length=128, description="Strong password")
    confirm_password: str | None = Field(default=None, description="Must equal password when sent")

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return validate_name(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)

    @model_validator(mode="after")
    def check_confirmation(self) -> "RegisterRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Password confirmation does not match password")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile."""

    model_config = {"extra": "forbid"}

    name: str | None = None
    preferences: UserPreferencesUpdate | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str | None) -> str | None:
        return validate_name(value) if value is not None else value


class PasswordUpdateRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., max_length=128)
    confirm_password: str | None = None

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return validate_password_strength(value)

    @model_validator(mode="after")
    def check_confirmation(self) -> "PasswordUpdateRequest":
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("Password confirmation does not match new password")
        return self


class DeleteAccountRequest(BaseModel):
    password: str | None = Field(default=None, description="Required only to double-check intent")


# =============================================================================
# Responses
# =============================================================================

class UserResponse(BaseModel):
    """
    Public view of a user.

    Built from a users row via from_row(), which drops the password hash and
    storage internals.
    """

    id: UUID
    email: str
    name: str
    avatar_url: str | None = None
    status: UserStatus = UserStatus.ACTIVE
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    metrics: UserMetrics = Field(default_factory=UserMetrics)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserResponse":
        return cls(
            id=row["id"],
            email=row["email"],
            name=row.get("name") or "",
            avatar_url=row.get("avatar_url"),
            status=row.get("status") or UserStatus.ACTIVE,
            preferences=UserPreferences.model_validate(row.get("preferences") or {}),
            metrics=UserMetrics.model_validate(row.get("metrics") or {}),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
