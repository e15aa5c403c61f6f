# =============================================================================
# tests/test_goal_analysis.py - Goal Arithmetic Tests
# =============================================================================
# Tests for the pure parts of goal handling:
# - GoalService.apply_progress (clamping, completion, reopening)
# - GoalAnalysisService (overall progress, trends, insights, recommendations)
# - UserService.compute_streak / compute_metrics
#
# Run with: pytest tests/test_goal_analysis.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from core.services.goal_analysis import GoalAnalysisService
from core.services.goal_service import GoalService, clamp_progress
from core.services.user_service import UserService
from tests.conftest import make_goal

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Progress Transitions
# =============================================================================

class TestApplyProgress:

    @pytest.mark.parametrize("value,expected", [(-10, 0), (0, 0), (55.5, 55.5), (100, 100), (250, 100)])
    def test_clamp(self, value, expected):
        assert clamp_progress(value) == expected

    def test_appends_history_entry(self):
        goal = make_goal(progress=10, history=[(3, 10)], now=NOW)

        changes = GoalService.apply_progress(goal, 40, note="Ran twice", now=NOW)

        assert changes["progress"] == 40
        assert len(changes["progress_history"]) == 2
        assert changes["progress_history"][-1] == {"date": NOW.isoformat(), "progress": 40, "note": "Ran twice"}
        assert "status" not in changes

    def test_original_history_not_mutated(self):
        goal = make_goal(progress=10, history=[(3, 10)], now=NOW)
        GoalService.apply_progress(goal, 40, now=NOW)
        assert len(goal["progress_history"]) == 1

    def test_reaching_100_completes(self):
        changes = GoalService.apply_progress(make_goal(progress=90), 130, now=NOW)

        assert changes["progress"] == 100
        assert changes["status"] == "completed"
        assert changes["completed_date"] == NOW.isoformat()

    def test_dropping_below_100_reopens(self):
        goal = make_goal(progress=100, status="completed", completed_date=NOW.isoformat())

        changes = GoalService.apply_progress(goal, 80, now=NOW)

        assert changes["status"] == "active"
        assert changes["completed_date"] is None

    def test_completed_goal_staying_at_100(self):
        goal = make_goal(progress=100, status="completed")
        changes = GoalService.apply_progress(goal, 100, now=NOW)
        assert "status" not in changes


# =============================================================================
# Overall Progress
# =============================================================================

class TestOverallProgress:

    def test_no_goals(self):
        result = GoalAnalysisService.calculate_overall_progress([])
        assert result == {"average": 0, "status": "no_goals", "active_goals": 0, "completed_goals": 0}

    def test_all_completed(self):
        result = GoalAnalysisService.calculate_overall_progress([make_goal(100, status="completed")])
        assert result["average"] == 100
        assert result["status"] == "all_completed"
        assert result["completed_goals"] == 1

    def test_average_of_active_only(self):
        goals = [make_goal(60), make_goal(80), make_goal(100, status="completed"), make_goal(0, status="paused")]

        result = GoalAnalysisService.calculate_overall_progress(goals)

        assert result["average"] == 70
        assert result["status"] == "good"
        assert result["active_goals"] == 2

    def test_status_uses_unrounded_average(self):
        goals = [make_goal(39), make_goal(40), make_goal(40.5)]

        result = GoalAnalysisService.calculate_overall_progress(goals)

        assert result["average"] == 40
        assert result["status"] == "needs_attention"


    @pytest.mark.parametrize("average,label", [
        (95, "excellent"), (80, "excellent"), (60, "good"), (40, "fair"), (39.9, "needs_attention"), (10, "needs_attention"), (0, "needs_attention"),
    ])
    def test_status_thresholds(self, average, label):
        assert GoalAnalysisService.progress_status(average) == label


# =============================================================================
# Trends
# =============================================================================

class TestTrends:

    def test_directions(self):
        improving = make_goal(history=[(10, 10), (5, 30), (1, 50)], now=NOW)
        declining = make_goal(history=[(10, 60), (1, 40)], now=NOW)
        stable = make_goal(history=[(10, 50), (1, 52)], now=NOW)
        too_little = make_goal(history=[(1, 50)], now=NOW)

        trends = GoalAnalysisService.analyze_trends([improving, declining, stable, too_little], days=30, now=NOW)

        directions = {t["goal_id"]: t["direction"] for t in trends["goals"]}
        assert directions == {improving["id"]: "improving", declining["id"]: "declining", stable["id"]: "stable"}
        assert (trends["improving"], trends["declining"], trends["stable"]) == (1, 1, 1)

    def test_window_excludes_old_entries(self):
        goal = make_goal(history=[(40, 0), (35, 90), (2, 91)], now=NOW)
        trends = GoalAnalysisService.analyze_trends([goal], days=30, now=NOW)
        assert trends["goals"] == []

    def test_consistency_label(self):
        assert GoalAnalysisService.consistency_label([10, 12]) == "insufficient_data"
        assert GoalAnalysisService.consistency_label([10, 12, 14]) == "high"
        assert GoalAnalysisService.consistency_label([10, 15, 20]) == "medium"
        assert GoalAnalysisService.consistency_label([10, 40, 70]) == "low"


# =============================================================================
# Insights and Recommendations
# =============================================================================

class TestInsights:

    def test_strongest_category(self):
        goals = [make_goal(80, category="career"), make_goal(20, category="fitness")]

        insights = GoalAnalysisService.generate_insights(goals, now=NOW)

        assert insights[0]["type"] == "strength"
        assert insights[0]["category"] == "career"

    def test_overdue_and_stagnant(self):
        overdue = make_goal(30, target_date=(NOW - timedelta(days=1)).isoformat())
        stagnant = make_goal(30, history=[(6, 30), (4, 31), (2, 30)], now=NOW)

        insights = GoalAnalysisService.generate_insights([overdue, stagnant], now=NOW)
        by_type = {i["type"]: i for i in insights}

        assert by_type["warning"]["goal_ids"] == [overdue["id"]]
        assert by_type["action"]["goal_ids"] == [stagnant["id"]]

    def test_is_stagnant_needs_three_entries(self):
        assert not GoalAnalysisService.is_stagnant(make_goal(history=[(2, 30), (1, 30)], now=NOW))

    def test_strongest_category_ignores_finished_goals(self):
        goals = [make_goal(100, status="completed", category="career"), make_goal(70, category="fitness")]

        insights = GoalAnalysisService.generate_insights(goals, now=NOW)

        assert insights[0]["category"] == "fitness"

    def test_no_strength_without_active_goals(self):
        goals = [make_goal(100, status="completed", category="career")]
        assert GoalAnalysisService.generate_insights(goals, now=NOW) == []

    def test_two_point_spread_is_not_stagnant(self):
        moving = make_goal(12, history=[(6, 10), (4, 12), (2, 12)], now=NOW)
        flat = make_goal(11, history=[(6, 10), (4, 11), (2, 11)], now=NOW)

        assert not GoalAnalysisService.is_stagnant(moving)
        assert GoalAnalysisService.is_stagnant(flat)



class TestRecommendations:

    def test_focus_recommendation_first(self):
        goals = [make_goal(60, check_in_days_ago=[1], milestones=[{"id": "m"}], now=NOW) for _ in range(6)]

        recommendations = GoalAnalysisService.generate_recommendations(goals, now=NOW)

        assert [r["type"] for r in recommendations] == ["focus"]
        assert recommendations[0]["priority"] == "high"

    def test_stale_check_ins_and_structure(self):
        fresh = make_goal(70, check_in_days_ago=[2], now=NOW)
        stale = make_goal(10, check_in_days_ago=[20], now=NOW)

        recommendations = GoalAnalysisService.generate_recommendations([fresh, stale], now=NOW)
        by_type = {r["type"]: r for r in recommendations}

        assert by_type["checkin"]["goal_ids"] == [stale["id"]]
        assert by_type["structure"]["goal_ids"] == [stale["id"]]

    def test_no_active_goals(self):
        assert GoalAnalysisService.generate_recommendations([make_goal(100, status="completed")], now=NOW) == []


class TestWeeklyReport:

    def test_report_summary(self):
        done = make_goal(100, status="completed", completed_date=(NOW - timedelta(days=2)).isoformat())
        old = make_goal(100, status="completed", completed_date=(NOW - timedelta(days=30)).isoformat())
        active = make_goal(40)

        report = GoalAnalysisService.generate_weekly_report("user-1", [done, old, active], now=NOW)

        assert report["week_end"] == "2026-10-19"
        assert report["week_start"] == "2026-10-12"
        assert report["summary"]["completed_this_week"] == 1
        assert report["summary"]["average_progress"] == 40
        assert len(report["recommendations"]) <= 3

    def test_format(self):
        report = GoalAnalysisService.generate_weekly_report("user-1", [make_goal(40)], now=NOW)
        text = GoalAnalysisService.format_weekly_report(report)

        assert text.startswith("Your weekly check-in (2026-10-12 to 2026-10-19)")
        assert "Average progress on active goals: 40%" in text


# =============================================================================
# User Metrics
# =============================================================================

class TestMetrics:

    def test_streak_counts_consecutive_days(self):
        goal = make_goal(history=[(0, 10), (1, 20)], check_in_days_ago=[2], now=NOW)
        assert UserService.compute_streak([goal], now=NOW) == 3

    def test_streak_may_end_yesterday(self):
        goal = make_goal(history=[(1, 10), (2, 20)], now=NOW)
        assert UserService.compute_streak([goal], now=NOW) == 2

    def test_streak_broken(self):
        goal = make_goal(history=[(2, 10), (3, 20)], now=NOW)
        assert UserService.compute_streak([goal], now=NOW) == 0

    def test_compute_metrics(self):
        goals = [make_goal(50), make_goal(100, status="completed"), make_goal(0, status="archived")]

        metrics = UserService.compute_metrics(goals, last_active="2026-10-19T00:00:00+00:00", now=NOW)

        assert metrics["total_goals"] == 3
        assert metrics["completed_goals"] == 1
        assert metrics["average_progress"] == 75.0
        assert metrics["last_active"] == "2026-10-19T00:00:00+00:00"
