# =============================================================================
# core/services/goal_analysis.py - Goal Analysis
# =============================================================================
# Aggregate arithmetic over a user's goals: overall progress, per-goal
# trends, insights, recommendations and the weekly report.
#
# Everything here is pure - goals come in as database rows (dicts) and the
# results are plain dicts ready for JSON. `now` can be injected for tests.
#
# Usage:
#   from core.services.goal_analysis import GoalAnalysisService
#   analysis = GoalAnalysisService.analyze_goal_progress(goals)
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from statistics import mean
from typing import Any

from core.models.goal import GoalStatus
from lib.utils import parse_datetime, utc_now

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def _history(goal: dict[str, Any]) -> list[dict[str, Any]]:
    """Progress history sorted by date, entries without a date dropped."""
    entries = [
        entry for entry in goal.get("progress_history") or []
        if parse_datetime(entry.get("date")) is not None
    ]
    return sorted(entries, key=lambda entry: parse_datetime(entry["date"]))


def _mean_abs_step(values: list[float]) -> float:
    steps = [abs(b - a) for a, b in zip(values, values[1:])]
    return mean(steps) if steps else 0.0


class GoalAnalysisService:
    """
    Stateless goal analytics.

    Thresholds map an average progress to a status label:
    80+ excellent, 60+ good, 40+ fair, else needs_attention. The label is
    taken from the unrounded average.
    """

    EXCELLENT = 80
    GOOD = 60
    FAIR = 40

    TREND_THRESHOLD = 5
    STAGNANT_WINDOW = 7
    STAGNANT_TOLERANCE = 2
    CHECKIN_STALE_DAYS = 7
    MAX_ACTIVE_GOALS = 5

    # -------------------------------------------------------------------------
    # Overall Progress
    # -------------------------------------------------------------------------

    @classmethod
    def progress_status(cls, average: float) -> str:
        if average >= cls.EXCELLENT:
            return "excellent"
        if average >= cls.GOOD:
            return "good"
        if average >= cls.FAIR:
            return "fair"
        return "needs_attention"

    @classmethod
    def calculate_overall_progress(cls, goals: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Average progress over active goals.

        With no active goals the result is 100 / all_completed when the user
        has finished something, otherwise 0 / no_goals.
        """
        active = [g for g in goals if g.get("status") == GoalStatus.ACTIVE.value]
        completed = [g for g in goals if g.get("status") == GoalStatus.COMPLETED.value]

        if not active:
            if completed:
                return {
                    "average": 100,
                    "status": "all_completed",
                    "active_goals": 0,
                    "completed_goals": len(completed),
                }
            return {"average": 0, "status": "no_goals", "active_goals": 0, "completed_goals": 0}

        average = mean(float(g.get("progress") or 0) for g in active)
        return {
            "average": round(average),
            "status": cls.progress_status(average),
            "active_goals": len(active),
            "completed_goals": len(completed),
        }

    # -------------------------------------------------------------------------
    # Trends
    # -------------------------------------------------------------------------

    @classmethod
    def consistency_label(cls, values: list[float]) -> str:
        """Mean absolute step between entries: <3 high, <8 medium, else low."""
        if len(values) < 3:
            return "insufficient_data"
        step = _mean_abs_step(values)
        if step < 3:
            return "high"
        if step < 8:
            return "medium"
        return "low"

    @classmethod
    def analyze_trends(
        cls,
        goals: list[dict[str, Any]],
        days: int = 30,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Direction of progress per goal over the last `days` days.

        Only goals with at least two history entries inside the window are
        reported.
        """
        now = now or utc_now()
        cutoff = now - timedelta(days=days)
        by_goal = []

        for goal in goals:
            entries = [e for e in _history(goal) if parse_datetime(e["date"]) >= cutoff]
            if len(entries) < 2:
                continue

            values = [float(e.get("progress") or 0) for e in entries]
            change = values[-1] - values[0]
            if change > cls.TREND_THRESHOLD:
                direction = "improving"
            elif change < -cls.TREND_THRESHOLD:
                direction = "declining"
            else:
                direction = "stable"

            by_goal.append({
                "goal_id": goal.get("id"),
                "title": goal.get("title"),
                "change": round(change, 1),
                "direction": direction,
                "consistency": cls.consistency_label(values),
                "data_points": len(values),
            })

        counts = defaultdict(int)
        for trend in by_goal:
            counts[trend["direction"]] += 1

        return {
            "period_days": days,
            "goals": by_goal,
            "improving": counts["improving"],
            "declining": counts["declining"],
            "stable": counts["stable"],
        }

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    @classmethod
    def is_stagnant(cls, goal: dict[str, Any]) -> bool:
        """Last (up to 7) entries, at least 3, all less than 2 points from the first."""
        values = [float(e.get("progress") or 0) for e in _history(goal)[-cls.STAGNANT_WINDOW:]]
        if len(values) < 3:
            return False
        return all(abs(v - values[0]) < cls.STAGNANT_TOLERANCE for v in values)

    @classmethod
    def generate_insights(
        cls,
        goals: list[dict[str, Any]],
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        now = now or utc_now()
        insights: list[dict[str, Any]] = []

        active = [g for g in goals if g.get("status") == GoalStatus.ACTIVE.value]

        by_category: dict[str, list[float]] = defaultdict(list)
        for goal in active:
            if goal.get("category"):
                by_category[goal["category"]].append(float(goal.get("progress") or 0))

        if by_category:
            best, values = max(by_category.items(), key=lambda item: mean(item[1]))
            insights.append({
                "type": "strength",
                "title": "Strongest area",
                "message": f"You're making the most progress in {best} ({round(mean(values))}% average).",
                "category": best,
            })

        overdue = [
            g for g in active
            if parse_datetime(g.get("target_date")) and parse_datetime(g["target_date"]) < now
        ]
        if overdue:
            insights.append({
                "type": "warning",
                "title": "Overdue goals",
                "message": f"{len(overdue)} goal(s) are past their target date. Consider adjusting timelines.",
                "goal_ids": [g.get("id") for g in overdue],
            })

        stagnant = [g for g in active if cls.is_stagnant(g)]
        if stagnant:
            insights.append({
                "type": "action",
                "title": "Stalled progress",
                "message": f"{len(stagnant)} goal(s) haven't moved recently. Try breaking them into smaller steps.",
                "goal_ids": [g.get("id") for g in stagnant],
            })

        return insights

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------

    @classmethod
    def _last_check_in(cls, goal: dict[str, Any]) -> datetime | None:
        dates = [parse_datetime(c.get("date")) for c in goal.get("check_ins") or []]
        dates = [d for d in dates if d is not None]
        return max(dates) if dates else None

    @classmethod
    def generate_recommendations(
        cls,
        goals: list[dict[str, Any]],
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Actionable suggestions, highest priority first."""
        now = now or utc_now()
        active = [g for g in goals if g.get("status") == GoalStatus.ACTIVE.value]
        recommendations: list[dict[str, Any]] = []

        if len(active) > cls.MAX_ACTIVE_GOALS:
            recommendations.append({
                "type": "focus",
                "priority": "high",
                "message": (
                    f"You have {len(active)} active goals. Focusing on your top "
                    f"{cls.MAX_ACTIVE_GOALS} usually leads to better results."
                ),
            })

        stale_cutoff = now - timedelta(days=cls.CHECKIN_STALE_DAYS)
        stale = [
            g for g in active
            if (cls._last_check_in(g) or datetime.min.replace(tzinfo=now.tzinfo)) < stale_cutoff
        ]
        if stale:
            recommendations.append({
                "type": "checkin",
                "priority": "medium",
                "message": f"{len(stale)} goal(s) haven't had a check-in this week. A quick reflection keeps momentum.",
                "goal_ids": [g.get("id") for g in stale],
            })

        unstructured = [
            g for g in active
            if not g.get("milestones") and float(g.get("progress") or 0) < 50
        ]
        if unstructured:
            recommendations.append({
                "type": "structure",
                "priority": "medium",
                "message": f"Add milestones to {len(unstructured)} goal(s) to make progress easier to see.",
                "goal_ids": [g.get("id") for g in unstructured],
            })

        recommendations.sort(key=lambda r: PRIORITY_ORDER.get(r["priority"], 3))
        return recommendations

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    @classmethod
    def analyze_goal_progress(
        cls,
        goals: list[dict[str, Any]],
        timeframe: int = 30,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Full analysis: overall progress, trends, insights and recommendations."""
        now = now or utc_now()
        logger.debug(f"Analyzing {len(goals)} goals over {timeframe} days")
        return {
            "overall": cls.calculate_overall_progress(goals),
            "trends": cls.analyze_trends(goals, days=timeframe, now=now),
            "insights": cls.generate_insights(goals, now=now),
            "recommendations": cls.generate_recommendations(goals, now=now),
            "generated_at": now.isoformat(),
        }

    @classmethod
    def generate_weekly_report(
        cls,
        user_id: str,
        goals: list[dict[str, Any]],
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utc_now()
        week_start = now - timedelta(days=7)
        overall = cls.calculate_overall_progress(goals)

        completed_this_week = [
            g for g in goals
            if g.get("status") == GoalStatus.COMPLETED.value
            and parse_datetime(g.get("completed_date"))
            and parse_datetime(g["completed_date"]) >= week_start
        ]

        return {
            "user_id": str(user_id),
            "week_start": week_start.date().isoformat(),
            "week_end": now.date().isoformat(),
            "summary": {
                "goals_reviewed": len(goals),
                "average_progress": overall["average"],
                "status": overall["status"],
                "completed_this_week": len(completed_this_week),
            },
            "trends": cls.analyze_trends(goals, days=7, now=now),
            "highlights": cls.generate_insights(goals, now=now),
            "recommendations": cls.generate_recommendations(goals, now=now)[:3],
        }

    @classmethod
    def format_weekly_report(cls, report: dict[str, Any]) -> str:
        """Plain-text rendering used for reminder messages."""
        summary = report["summary"]
        lines = [
            f"Your weekly check-in ({report['week_start']} to {report['week_end']})",
            f"- Goals reviewed: {summary['goals_reviewed']}",
            f"- Average progress on active goals: {summary['average_progress']}%",
            f"- Completed this week: {summary['completed_this_week']}",
        ]
        for recommendation in report["recommendations"]:
            lines.append(f"- Tip: {recommendation['message']}")
        return "\n".join(lines)
