# =============================================================================
# core/models/goal.py - Goal Schemas
# =============================================================================
# These models define the API contract for goals:
# - GoalCreate / GoalUpdate: incoming goal data
# - ProgressUpdate / CheckInCreate / MilestoneCreate: goal sub-records
# - GoalCategory, GoalType, GoalStatus, GoalPriority: enums shared with services
#
# Goals are stored as single rows; milestones, progress history and check-ins
# live in JSONB arrays on the row.
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from lib.utils import ensure_utc, utc_now


class GoalCategory(str, Enum):
    FITNESS = "fitness"
    CAREER = "career"
    PERSONAL = "personal"
    LEARNING = "learning"
    RELATIONSHIPS = "relationships"
    FINANCE = "finance"
    HEALTH = "health"


class GoalType(str, Enum):
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class GoalStatus(str, Enum):
    """
    Goal states.

    A goal is completed exactly when its progress is 100; services keep the
    two in step.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _future_date(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    value = ensure_utc(value)
    if value <= utc_now():
        raise ValueError("Target date must be in the future")
    return value


def _clean_tags(value: list[str]) -> list[str]:
    tags = [tag.strip() for tag in value if tag and tag.strip()]
    if any(len(tag) > 50 for tag in tags):
        raise ValueError("Each tag must be at most 50 characters")
    return tags


# =============================================================================
# Sub-records
# =============================================================================

class MilestoneCreate(BaseModel):
    text: str = Field(..., min_length=3, max_length=200, description="What marks this milestone")
    due_date: datetime | None = Field(default=None, description="Optional due date")

    @field_validator("text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Milestone text must be between 3 and 200 characters")
        return value


class ProgressUpdate(BaseModel):
    """
    Progress report for a goal.

    Values outside 0-100 are accepted and clamped by the service.
    """
    progress: float = Field(..., description="New progress percentage (clamped to 0-100)")
    note: str | None = Field(default=None, max_length=500, description="What changed")


class CheckInCreate(BaseModel):
    """Periodic self-report against a goal."""

    mood: int | None = Field(default=None, ge=1, le=5, description="1 (low) to 5 (great)")
    confidence: int | None = Field(default=None, ge=1, le=5, description="1 (unsure) to 5 (certain)")
    obstacles: list[str] = Field(default_factory=list, max_length=20)
    wins: list[str] = Field(default_factory=list, max_length=20)
    note: str | None = Field(default=None, max_length=1000)

    @field_validator("obstacles", "wins")
    @classmethod
    def check_items(cls, value: list[str]) -> list[str]:
        items = [item.strip() for item in value]
        if any(not 1 <= len(item) <= 200 for item in items):
            raise ValueError("Each item must be between 1 and 200 characters")
        return items


# =============================================================================
# Goals
# =============================================================================

class GoalCreate(BaseModel):
    """
    Schema for creating a goal.

    Example:
        {
            "title": "Run a half marathon",
            "category": "fitness",
            "type": "long-term",
            "target_date": "2027-04-01T00:00:00Z",
            "milestones": [{"text": "Run 10k without stopping"}]
        }
    """

    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: GoalCategory
    type: GoalType
    priority: GoalPriority = GoalPriority.MEDIUM
    target_date: datetime | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)
    milestones: list[MilestoneCreate] = Field(default_factory=list, max_length=50)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Title must be between 3 and 200 characters")
        return value

    @field_validator("target_date")
    @classmethod
    def check_target_date(cls, value: datetime | None) -> datetime | None:
        return _future_date(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: list[str]) -> list[str]:
        return _clean_tags(value)


class GoalUpdate(BaseModel):
    """Partial goal update. Progress has its own endpoint."""

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: GoalCategory | None = None
    type: GoalType | None = None
    status: GoalStatus | None = None
    priority: GoalPriority | None = None
    target_date: datetime | None = None
    tags: list[str] | None = Field(default=None, max_length=20)

    @field_validator("title", "category", "type", "status", "priority", "tags", mode="before")
    @classmethod
    def reject_null(cls, value):
        # Only description and target_date can be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Title must be between 3 and 200 characters")
        return value

    @field_validator("target_date")
    @classmethod
    def check_target_date(cls, value: datetime | None) -> datetime | None:
        return _future_date(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: list[str] | None) -> list[str] | None:
        return _clean_tags(value) if value is not None else value
