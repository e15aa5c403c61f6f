# =============================================================================
# core/services/analytics_service.py - Analytics Aggregations
# =============================================================================
# Dashboard, goal, progress and chat analytics plus the aggregate export.
#
# Goals and messages are loaded once per request and aggregated with pandas.
# Goal-level reasoning (trends, insights, recommendations) is delegated to
# GoalAnalysisService so the two never disagree.
#
# Usage:
#   from core.services.analytics_service import AnalyticsService
#   dashboard = AnalyticsService.dashboard(user, timeframe="30d")
# =============================================================================

import logging
import math
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import pandas as pd

from core.models.goal import GoalStatus
from core.models.message import MessageType
from core.services.goal_analysis import GoalAnalysisService
from core.services.goal_service import GoalService
from core.services.user_service import UserService
from lib.supabase_client import SupabaseClient
from lib.utils import parse_datetime, parse_timeframe_days, utc_now

logger = logging.getLogger(__name__)

TREND_DAYS = 7
RECENT_ACHIEVEMENTS = 5
RECENT_CHECK_INS = 5
MAX_INSIGHTS = 10
LOW_ENGAGEMENT_MESSAGES = 5
STALE_GOAL_DAYS = 14

TOPIC_KEYWORDS = {
    "motivation": ["motivat", "stuck", "give up", "lazy", "unmotivated"],
    "progress": ["progress", "update", "how am i doing", "track"],
    "goals": ["goal", "target", "plan", "milestone"],
    "advice": ["advice", "should i", "how to", "how do i", "help"],
    "celebration": ["completed", "finished", "achieved", "did it", "success"],
}


# =============================================================================
# Frames
# =============================================================================

def _history_frame(goals: list[dict[str, Any]]) -> pd.DataFrame:
    """Every progress entry across goals: goal_id, date (UTC), progress."""
    rows = []
    for goal in goals:
        for entry in goal.get("progress_history") or []:
            when = parse_datetime(entry.get("date"))
            if when is not None:
                rows.append({
                    "goal_id": str(goal.get("id")),
                    "date": when,
                    "progress": float(entry.get("progress") or 0),
                })

    df = pd.DataFrame(rows, columns=["goal_id", "date", "progress"])
    df["date"] = pd.to_datetime(df["date"], utc=True)
    return df.sort_values("date", kind="stable").reset_index(drop=True)


def _goals_frame(goals: list[dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "id": str(g.get("id")),
                "category": g.get("category") or "uncategorized",
                "status": g.get("status") or GoalStatus.ACTIVE.value,
                "progress": float(g.get("progress") or 0),
            }
            for g in goals
        ],
        columns=["id", "category", "status", "progress"],
    )
    df["is_completed"] = df["status"] == GoalStatus.COMPLETED.value
    return df


def _messages_frame(messages: list[dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "id": m.get("id"),
                "conversation_id": m.get("conversation_id"),
                "type": m.get("type"),
                "content": m.get("content") or "",
                "rating": (m.get("metadata") or {}).get("user_rating"),
                "created_at": parse_datetime(m.get("created_at")),
            }
            for m in messages
        ],
        columns=["id", "conversation_id", "type", "content", "rating", "created_at"],
    )
    df = df.dropna(subset=["created_at"])
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    return df.sort_values("created_at", kind="stable").reset_index(drop=True)


def _round(value: float, digits: int = 1) -> float:
    return round(float(value), digits) if value == value else 0.0  # NaN check


# =============================================================================
# Analytics Service
# =============================================================================

class AnalyticsService:
    """
    Read-only aggregations over a user's goals and messages.

    All methods take `now` for deterministic tests.
    """

    # -------------------------------------------------------------------------
    # Building blocks (pure)
    # -------------------------------------------------------------------------

    @staticmethod
    def progress_trend(
        goals: list[dict[str, Any]],
        days: int = TREND_DAYS,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        Average progress per day over the last `days` days.

        Each goal contributes its latest known progress as of the end of the
        day; goals with no history yet are left out of that day's average.

        Example:
            [{"date": "2026-10-13", "progress": 42.5}, ...]
        """
        now = now or utc_now()
        today = pd.Timestamp(now).normalize()
        window = pd.date_range(end=today, periods=days, freq="D")

        history = _history_frame(goals)
        history = history.loc[history["date"] <= pd.Timestamp(now)]

        if history.empty:
            daily_average = pd.Series(0.0, index=window)
        else:
            history = history.assign(day=history["date"].dt.normalize())
            per_goal = history.pivot_table(index="day", columns="goal_id", values="progress", aggfunc="last")
            full_range = pd.date_range(start=min(per_goal.index.min(), window[0]), end=today, freq="D")
            per_goal = per_goal.reindex(full_range).ffill()
            daily_average = per_goal.reindex(window).mean(axis=1).fillna(0.0)

        return [
            {"date": day.date().isoformat(), "progress": _round(value)}
            for day, value in daily_average.items()
        ]

    @staticmethod
    def completion_velocity(goals: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Goals completed per calendar month, oldest month first."""
        dates = [
            parse_datetime(g.get("completed_date"))
            for g in goals
            if g.get("status") == GoalStatus.COMPLETED.value
        ]
        months = pd.Series([d.strftime("%Y-%m") for d in dates if d is not None], dtype="object")
        counts = months.value_counts().sort_index()
        return [{"month": month, "completed": int(count)} for month, count in counts.items()]

    @staticmethod
    def category_analysis(goals: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Per-category totals, completion count, average progress and success rate."""
        df = _goals_frame(goals)
        if df.empty:
            return {}

        grouped = df.groupby("category").agg(
            total=("id", "count"),
            completed=("is_completed", "sum"),
            avg_progress=("progress", "mean"),
        )
        return {
            str(category): {
                "total": int(row["total"]),
                "completed": int(row["completed"]),
                "avg_progress": _round(row["avg_progress"]),
                "success_rate": _round(row["completed"] / row["total"] * 100),
            }
            for category, row in grouped.iterrows()
        }

    @staticmethod
    def progress_consistency(values: list[float]) -> str:
        """Standard deviation of progress values: <10 High, <20 Medium, else Low."""
        if len(values) < 3:
            return "N/A"
        deviation = float(pd.Series(values, dtype="float64").std(ddof=0))
        if deviation < 10:
            return "High"
        if deviation < 20:
            return "Medium"
        return "Low"

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    @staticmethod
    def dashboard(user: dict[str, Any], timeframe: str = "30d", now: datetime | None = None) -> dict[str, Any]:
        now = now or utc_now()
        user_id = str(user["id"])
        start = now - timedelta(days=parse_timeframe_days(timeframe))
        goals = SupabaseClient.fetch_goals(user_id)
        df = _goals_frame(goals)

        overview = {
            "total_goals": len(goals),
            "active_goals": int((df["status"] == GoalStatus.ACTIVE.value).sum()),
            "completed_goals": int(df["is_completed"].sum()),
            "paused_goals": int((df["status"] == GoalStatus.PAUSED.value).sum()),
            "average_progress": _round(df["progress"].mean()) if not df.empty else 0.0,
        }

        completed = [
            g for g in goals
            if g.get("status") == GoalStatus.COMPLETED.value and parse_datetime(g.get("completed_date"))
        ]
        completed.sort(key=lambda g: parse_datetime(g["completed_date"]), reverse=True)
        recent_achievements = [
            {
                "goal_id": g.get("id"),
                "title": g.get("title"),
                "category": g.get("category"),
                "completed_date": g.get("completed_date"),
            }
            for g in completed[:RECENT_ACHIEVEMENTS]
        ]

        joined = parse_datetime(user.get("created_at"))
        activity_stats = {
            "messages_this_period": SupabaseClient.count_messages(user_id, since=start.isoformat()),
            "days_since_joined": (now - joined).days if joined else 0,
            "current_streak": UserService.compute_streak(goals, now=now),
        }

        return {
            "overview": overview,
            "categories": {str(k): int(v) for k, v in df["category"].value_counts().items()},
            "trends": AnalyticsService.progress_trend(goals, now=now),
            "recent_achievements": recent_achievements,
            "activity_stats": activity_stats,
            "timeframe": timeframe,
        }

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    @staticmethod
    def goal_analytics(
        user_id: str | UUID,
        timeframe: str = "30d",
        category: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utc_now()
        goals = SupabaseClient.fetch_goals(user_id, category=category)
        days = parse_timeframe_days(timeframe)

        return {
            "analysis": GoalAnalysisService.analyze_goal_progress(goals, timeframe=days, now=now),
            "weekly_report": GoalAnalysisService.generate_weekly_report(str(user_id), goals, now=now),
            "velocity_data": AnalyticsService.completion_velocity(goals),
            "category_analysis": AnalyticsService.category_analysis(goals),
            "total_goals": len(goals),
            "timeframe": timeframe,
        }

    @staticmethod
    def goal_progress(user_id: str | UUID, goal_id: str, now: datetime | None = None) -> dict[str, Any]:
        """
        Detailed progress analytics for one goal.

        Raises:
            GoalNotFoundError: If the goal doesn't exist or isn't the user's
        """
        now = now or utc_now()
        goal = GoalService.get_goal(goal_id, user_id)
        history = _history_frame([goal])
        values = history["progress"].tolist()
        progress = float(goal.get("progress") or 0)

        velocity = 0.0
        if len(values) >= 2:
            span_days = max((history["date"].iloc[-1] - history["date"].iloc[0]).total_seconds() / 86400, 1)
            velocity = round((values[-1] - values[0]) / span_days, 2)

        if goal.get("status") == GoalStatus.COMPLETED.value:
            estimated_completion = goal.get("completed_date")
        elif velocity > 0:
            remaining_days = math.ceil((100 - progress) / velocity)
            estimated_completion = (now + timedelta(days=remaining_days)).isoformat()
        else:
            estimated_completion = None

        check_ins = sorted(
            goal.get("check_ins") or [],
            key=lambda c: parse_datetime(c.get("date")) or now,
        )
        created = parse_datetime(goal.get("created_at")) or now
        if check_ins:
            every = max(round((now - created).days / len(check_ins)), 1)
            check_in_frequency = f"Every {every} days"
        else:
            check_in_frequency = "No check-ins yet"

        milestones = goal.get("milestones") or []
        sorted_history = sorted(
            goal.get("progress_history") or [],
            key=lambda e: parse_datetime(e.get("date")) or now,
        )

        return {
            "goal": goal,
            "analytics": {
                "current_progress": progress,
                "velocity": velocity,
                "estimated_completion": estimated_completion,
                "consistency": AnalyticsService.progress_consistency(values),
                "check_in_frequency": check_in_frequency,
                "total_updates": len(values),
                "total_check_ins": len(check_ins),
                "milestones_completed": sum(1 for m in milestones if m.get("completed")),
                "total_milestones": len(milestones),
            },
            "progress_history": sorted_history,
            "recent_check_ins": list(reversed(check_ins[-RECENT_CHECK_INS:])),
        }

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    @staticmethod
    def chat_analytics(user_id: str | UUID, timeframe: str = "30d", now: datetime | None = None) -> dict[str, Any]:
        now = now or utc_now()
        days = parse_timeframe_days(timeframe)
        start = now - timedelta(days=days)
        df = _messages_frame(SupabaseClient.fetch_messages(user_id, since=start.isoformat()))
        total = SupabaseClient.count_messages(user_id, since=start.isoformat())

        user_messages = df.loc[df["type"] == MessageType.USER.value]
        ai_messages = df.loc[df["type"] == MessageType.AI.value]

        overview = {
            "total_messages": total,
            "user_messages": len(user_messages),
            "ai_messages": len(ai_messages),
            "conversations_started": int(df["conversation_id"].nunique()),
            "avg_messages_per_day": round(total / days, 1) if days else 0.0,
        }

        daily = df["created_at"].dt.strftime("%Y-%m-%d").value_counts().sort_index()
        lowered = user_messages["content"].str.lower()
        topic_breakdown = {
            topic: int(lowered.apply(lambda text, kws=keywords: any(k in text for k in kws)).sum())
            for topic, keywords in TOPIC_KEYWORDS.items()
        }

        # User message directly followed by an AI reply in the same conversation
        grouped = df.groupby("conversation_id")
        pairs = df.assign(
            next_type=grouped["type"].shift(-1),
            next_at=grouped["created_at"].shift(-1),
        )
        pairs = pairs.loc[(pairs["type"] == MessageType.USER.value) & (pairs["next_type"] == MessageType.AI.value)]
        response_seconds = pd.Series(dtype="float64")
        if not pairs.empty:
            response_seconds = (pairs["next_at"] - pairs["created_at"]).dt.total_seconds()

        ratings = pd.to_numeric(df["rating"], errors="coerce").dropna()

        engagement = {
            "daily_activity": [{"date": day, "messages": int(count)} for day, count in daily.items()],
            "topic_breakdown": topic_breakdown,
            "avg_response_time": _round(response_seconds.mean(), 2) if not response_seconds.empty else 0.0,
            "user_satisfaction": _round(ratings.mean(), 2) if not ratings.empty else None,
            "feedback_count": len(ratings),
        }

        return {
            "overview": overview,
            "engagement": engagement,
            "insights": AnalyticsService._chat_insights(df, topic_breakdown, ratings, now),
            "timeframe": timeframe,
        }

    @staticmethod
    def _chat_insights(
        df: pd.DataFrame,
        topic_breakdown: dict[str, int],
        ratings: pd.Series,
        now: datetime,
    ) -> list[dict[str, Any]]:
        insights: list[dict[str, Any]] = []

        if any(topic_breakdown.values()):
            topic = max(topic_breakdown, key=topic_breakdown.get)
            insights.append({
                "type": "topic",
                "message": f"Your most discussed topic is {topic}.",
            })

        this_week = int((df["created_at"] >= pd.Timestamp(now - timedelta(days=7))).sum())
        last_week = int(
            ((df["created_at"] >= pd.Timestamp(now - timedelta(days=14)))
             & (df["created_at"] < pd.Timestamp(now - timedelta(days=7)))).sum()
        )
        if last_week and this_week > last_week:
            increase = round((this_week - last_week) / last_week * 100)
            insights.append({
                "type": "engagement",
                "message": f"Your engagement is up {increase}% compared to last week.",
            })

        if not ratings.empty:
            average = float(ratings.mean())
            if average >= 4:
                insights.append({"type": "satisfaction", "message": "You're finding the coaching sessions helpful."})
            elif average < 3:
                insights.append({
                    "type": "satisfaction",
                    "message": "Coaching replies could be more useful. Try telling the coach what kind of help you want.",
                })

        return insights

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    @staticmethod
    def export_summary(user: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        """Aggregate export of goal and chat statistics."""
        now = now or utc_now()
        user_id = str(user["id"])
        goals = SupabaseClient.fetch_goals(user_id)
        df = _goals_frame(goals)
        messages = _messages_frame(SupabaseClient.fetch_messages(user_id))
        ratings = pd.to_numeric(messages["rating"], errors="coerce").dropna()

        total = len(goals)
        completed = int(df["is_completed"].sum())
        summary = {
            "user": {
                "id": user_id,
                "name": user.get("name"),
                "email": user.get("email"),
                "member_since": user.get("created_at"),
            },
            "goals": {
                "total": total,
                "completed": completed,
                "active": int((df["status"] == GoalStatus.ACTIVE.value).sum()),
                "average_progress": _round(df["progress"].mean()) if total else 0.0,
                "completion_rate": _round(completed / total * 100) if total else 0.0,
                "by_category": AnalyticsService.category_analysis(goals),
            },
            "chat": {
                "total_messages": SupabaseClient.count_messages(user_id),
                "user_messages": int((messages["type"] == MessageType.USER.value).sum()),
                "ai_messages": int((messages["type"] == MessageType.AI.value).sum()),
                "average_rating": _round(ratings.mean(), 2) if not ratings.empty else None,
            },
            "export_date": now.isoformat(),
        }
        logger.info(f"Analytics export for user {user_id}")
        return summary

    @staticmethod
    def summary_to_csv(summary: dict[str, Any]) -> str:
        """Render an export summary as a two-column Metric,Value CSV."""
        goals = summary["goals"]
        chat = summary["chat"]
        rows = [
            ("Total Goals", goals["total"]),
            ("Completed Goals", goals["completed"]),
            ("Active Goals", goals["active"]),
            ("Average Progress %", goals["average_progress"]),
            ("Completion Rate %", goals["completion_rate"]),
            ("Total Messages", chat["total_messages"]),
            ("User Messages", chat["user_messages"]),
            ("AI Messages", chat["ai_messages"]),
        ]
        if chat.get("average_rating") is not None:
            rows.append(("Average Rating", chat["average_rating"]))

        # object dtype keeps counts as ints instead of upcasting them to float
        frame = pd.DataFrame(rows, columns=["Metric", "Value"], dtype=object)
        return frame.to_csv(index=False, lineterminator="\n")

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    @staticmethod
    def insights(user_id: str | UUID, now: datetime | None = None) -> list[dict[str, Any]]:
        """Goal insights, top recommendations and engagement nudges, at most 10."""
        now = now or utc_now()
        goals = SupabaseClient.fetch_goals(user_id)

        insights = list(GoalAnalysisService.generate_insights(goals, now=now))
        for recommendation in GoalAnalysisService.generate_recommendations(goals, now=now)[:3]:
            insights.append({
                "type": "recommendation",
                "title": recommendation["type"].capitalize(),
                "message": recommendation["message"],
                "priority": recommendation["priority"],
            })

        recent_messages = SupabaseClient.count_messages(
            user_id,
            message_type=MessageType.USER.value,
            since=(now - timedelta(days=30)).isoformat(),
        )
        if recent_messages < LOW_ENGAGEMENT_MESSAGES:
            insights.append({
                "type": "engagement",
                "title": "Talk to your coach",
                "message": "Regular conversations with your coach help keep goals on track.",
            })

        stale_cutoff = now - timedelta(days=STALE_GOAL_DAYS)
        stale = []
        for goal in goals:
            if goal.get("status") != GoalStatus.ACTIVE.value:
                continue
            dates = [parse_datetime(e.get("date")) for e in goal.get("progress_history") or []]
            dates = [d for d in dates if d is not None]
            last_update = max(dates) if dates else parse_datetime(goal.get("created_at"))
            if last_update is not None and last_update < stale_cutoff:
                stale.append(goal)
        if stale:
            insights.append({
                "type": "stagnation",
                "title": "Goals need an update",
                "message": f"{len(stale)} goal(s) haven't had a progress update in {STALE_GOAL_DAYS} days.",
                "goal_ids": [g.get("id") for g in stale],
            })

        return insights[:MAX_INSIGHTS]
