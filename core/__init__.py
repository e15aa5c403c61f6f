# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the domain logic:
# - models/: Pydantic schemas for data validation
# - services/: Accounts, goals, chat, goal analysis, analytics, avatar storage
#
# Code in this package should NOT import from FastAPI or Celery.
# Errors are raised as app.exceptions types so routes can stay thin.
# =============================================================================
