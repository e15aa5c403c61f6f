# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the AI Life Coach API:
# - test_models.py: Pydantic model validation
# - test_goal_analysis.py / test_analytics.py: Progress analysis and dashboards
# - test_coach.py / test_memory.py / test_vector_store.py: Coach and its context
# - test_auth.py, test_users_api.py, test_goals_api.py, test_chat_api.py:
#   Endpoint tests against an in-memory database
# - test_security.py / test_exceptions.py / test_health.py: Middleware,
#   error envelopes and health checks
# - test_tasks.py: Celery tasks, called synchronously
#
# Run tests with: pytest
# =============================================================================
