# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - user.py: Registration, login, profile, preferences and metrics
# - goal.py: Goals, progress updates, check-ins and milestones
# - message.py: Chat messages and feedback
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# User Models - Accounts and profiles
# -----------------------------------------------------------------------------
from .user import (
    CoachingStyle,
    DeleteAccountRequest,
    LoginRequest,
    PasswordUpdateRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ReminderFrequency,
    UserMetrics,
    UserPreferences,
    UserPreferencesUpdate,
    UserResponse,
    UserStatus,
)

# -----------------------------------------------------------------------------
# Goal Models - Goals and their sub-records
# -----------------------------------------------------------------------------
from .goal import (
    CheckInCreate,
    GoalCategory,
    GoalCreate,
    GoalPriority,
    GoalStatus,
    GoalType,
    GoalUpdate,
    MilestoneCreate,
    ProgressUpdate,
)

# -----------------------------------------------------------------------------
# Message Models - Coach chat
# -----------------------------------------------------------------------------
from .message import (
    OPENAI_ROLES,
    ChatMessageRequest,
    FeedbackRequest,
    MessageType,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # User
    "CoachingStyle",
    "DeleteAccountRequest",
    "LoginRequest",
    "PasswordUpdateRequest",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "ReminderFrequency",
    "UserMetrics",
    "UserPreferences",
    "UserPreferencesUpdate",
    "UserResponse",
    "UserStatus",
    # Goal
    "CheckInCreate",
    "GoalCategory",
    "GoalCreate",
    "GoalPriority",
    "GoalStatus",
    "GoalType",
    "GoalUpdate",
    "MilestoneCreate",
    "ProgressUpdate",
    # Message
    "OPENAI_ROLES",
    "ChatMessageRequest",
    "FeedbackRequest",
    "MessageType",
]
