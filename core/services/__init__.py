# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .storage_service import StorageService
from .user_service import UserService
from .goal_service import GoalService
from .goal_analysis import GoalAnalysisService
from .chat_service import ChatService
from .analytics_service import AnalyticsService

__all__ = [
    "StorageService",
    "UserService",
    "GoalService",
    "GoalAnalysisService",
    "ChatService",
    "AnalyticsService",
]
