# =============================================================================
# app/routers/analytics.py - Analytics Endpoints
# =============================================================================
# Read-only aggregations over goals and chat activity.
#
# Endpoints (mounted at /api/analytics):
# - GET /dashboard             - Overview, categories, 7-day trend, activity
# - GET /goals                 - Analysis, weekly report, velocity, categories
# - GET /progress/{goal_id}    - Velocity, estimate and consistency for one goal
# - GET /chat                  - Message counts, topics, response time, rating
# - GET /export                - Aggregate export as JSON or CSV
# - GET /insights              - Prioritised insights (max 10)
# =============================================================================

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Path, Query
from fastapi.responses import Response

from app.dependencies import CurrentUser
from core.models.goal import GoalCategory
from core.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter()

Timeframe = Annotated[
    Literal["7d", "30d", "90d", "1y"],
    Query(description="Look-back window"),
]


@router.get("/dashboard")
async def dashboard(user: CurrentUser, timeframe: Timeframe = "30d"):
    return {"success": True, **AnalyticsService.dashboard(user.record, timeframe=timeframe)}


@router.get("/goals")
async def goal_analytics(
    user: CurrentUser,
    timeframe: Timeframe = "30d",
    category: GoalCategory | None = None,
):
    data = AnalyticsService.goal_analytics(
        user.id,
        timeframe=timeframe,
        category=category.value if category else None,
    )
    return {"success": True, **data}


@router.get("/progress/{goal_id}")
async def goal_progress(
    goal_id: Annotated[str, Path(description="Goal UUID")],
    user: CurrentUser,
):
    return {"success": True, **AnalyticsService.goal_progress(user.id, goal_id)}


@router.get("/chat")
async def chat_analytics(user: CurrentUser, timeframe: Timeframe = "30d"):
    return {"success": True, **AnalyticsService.chat_analytics(user.id, timeframe=timeframe)}


@router.get("/export")
async def export_analytics(
    user: CurrentUser,
    format: Literal["json", "csv"] = "json",
):
    """
    Export aggregate statistics.

    CSV is a two-column Metric,Value table.
    """
    summary = AnalyticsService.export_summary(user.record)

    if format == "csv":
        return Response(
            content=AnalyticsService.summary_to_csv(summary),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="analytics-export.csv"'},
        )

    return {"success": True, "data": summary}


@router.get("/insights")
async def insights(user: CurrentUser):
    items = AnalyticsService.insights(user.id)
    return {"success": True, "insights": items, "total": len(items)}
