# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - users.py: Profile, password, avatar, stats, export, deletion
# - goals.py: Goals, progress, check-ins, milestones
# - chat.py: Coach conversation endpoints
# - analytics.py: Dashboard and analytics endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import users
from . import goals
from . import chat
from . import analytics

__all__ = [
    "health",
    "users",
    "goals",
    "chat",
    "analytics",
]
