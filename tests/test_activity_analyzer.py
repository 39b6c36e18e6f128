"""Tests for narrative generation and its deterministic fallbacks."""

from __future__ import annotations

import asyncio
import json

import pytest

from reflection_weekly.analyzers.activity_analyzer import (
    KEEP_FILLER,
    KEEP_RECORDS,
    KEEP_TIME_TRACKING,
    PROBLEM_FEW_DAYS,
    PROBLEM_FILLER,
    PROBLEM_NO_ACTIVITY,
    TRY_FEW_DAYS,
    TRY_FILLER,
    TRY_NO_ACTIVITY,
    ActivityAnalyzer,
    build_daily_analyses,
    build_insights,
    build_trend,
    extract_highlights,
    fallback_suggestions,
    fallback_summary,
)
from reflection_weekly.core.errors import ServiceUnavailable


class StubProvider:
    def __init__(self, summary="LLM summary of the week", suggestions=None, fail=None):
        self.summary = summary
        self.suggestions = suggestions
        self.fail = fail or set()
        self.summary_inputs = []
        self.suggestion_inputs = []

    async def generate_summary(self, data):
        self.summary_inputs.append(data)
        if "summary" in self.fail:
            raise ServiceUnavailable("model offline", "openai")
        return self.summary

    async def generate_suggestions(self, data):
        self.suggestion_inputs.append(data)
        if "suggestions" in self.fail:
            raise ServiceUnavailable("model offline", "openai")
        return self.suggestions


def _analyze(provider, data, previous_try_items=None):
    return asyncio.run(ActivityAnalyzer(provider).analyze(data, previous_try_items))


def test_fallback_summary_describes_the_week(week_data):
    assert fallback_summary(week_data) == (
        "Period: 2024-01-08 - 2024-01-14\n"
        "Pull requests: 3 (2 repositories)\n"
        "Work time: 3.0h (2 projects)\n"
        "Active days: 3"
    )


def test_fallback_summary_for_empty_week(empty_data):
    assert fallback_summary(empty_data) == (
        "Period: 2024-01-08 - 2024-01-14\nPull requests: none\nWork time: not recorded\nActive days: 0"
    )


def test_insights(week_data):
    assert build_insights(week_data) == [
        "Total pull requests this week: 3",
        "Total work time this week: 3.0h",
        "Pull requests per hour of work: 1.00",
        "Most active day: Mon 2024-01-08 (1 pull requests, 1.5h)",
        "Projects involved: 4",
    ]


def test_insights_empty_week(empty_data):
    assert build_insights(empty_data) == []


def test_daily_analyses_consolidate_time_entries(week_data):
    daily = build_daily_analyses(week_data)

    assert [analysis.date for analysis in daily] == ["2024-01-08", "2024-01-09", "2024-01-10"]
    monday = daily[0]
    assert monday.summary == "1 pull requests / 1.5h of work / Projects: Alpha, o/api"
    assert monday.highlights == ("o/api: Add login", "Alpha: Coding (1.5h)")
    assert daily[2].summary == "1 pull requests / Projects: o/web"


def test_highlights_pick_largest_pull_requests_and_longest_entries(week_data):
    assert extract_highlights(week_data) == [
        "o/web: Landing page (+300/-10, 12 files)",
        "o/api: Add login (+120/-30, 5 files)",
        "o/api: Fix bug (+5/-2, 1 files)",
        "Beta: Review (1.5h)",
        "Alpha: Coding (1.0h)",
        "Alpha: Coding (0.5h)",
    ]


def test_trend_is_sorted_by_share(week_data):
    trend = build_trend(week_data)

    assert [share.name for share in trend.project_distribution] == ["o/api", "Alpha", "Beta", "o/web"]
    assert sum(share.percentage for share in trend.project_distribution) == pytest.approx(100.0)
    assert trend.project_distribution[0].percentage == pytest.approx(100 * 2 / 6)


def test_trend_absent_without_activity(empty_data):
    assert build_trend(empty_data) is None


def test_fallback_suggestions_for_active_week(week_data):
    suggestions = fallback_suggestions(week_data)

    assert suggestions.keep == (KEEP_RECORDS, KEEP_TIME_TRACKING)
    assert suggestions.problem == (PROBLEM_FILLER,)
    assert suggestions.try_items == (TRY_FILLER,)


def test_fallback_suggestions_for_empty_week(empty_data):
    suggestions = fallback_suggestions(empty_data)

    assert suggestions.keep == (KEEP_FILLER,)
    assert suggestions.problem == (PROBLEM_NO_ACTIVITY, PROBLEM_FEW_DAYS)
    assert suggestions.try_items == (TRY_NO_ACTIVITY, TRY_FEW_DAYS)


def test_analyze_without_provider_uses_templates(week_data):
    result = _analyze(None, week_data)

    assert result.ai_enabled is False
    assert result.suggestions_ai_enabled is False
    assert result.week_summary == fallback_summary(week_data)
    assert result.suggestions == fallback_suggestions(week_data)
    assert len(result.daily_summaries) == 3
    assert result.trend is not None


def test_analyze_uses_model_output(week_data):
    provider = StubProvider(
        summary="  Shipped login and a landing page.  ",
        suggestions=json.dumps({"keep": ["Small PRs"], "problem": [], "try": ["Pair on reviews", 3]}),
    )

    result = _analyze(provider, week_data, previous_try_items=["Write tests first"])

    assert result.ai_enabled is True
    assert result.suggestions_ai_enabled is True
    assert result.week_summary == "Shipped login and a landing page."
    assert result.suggestions.keep == ("Small PRs",)
    assert result.suggestions.problem == (PROBLEM_FILLER,)
    assert result.suggestions.try_items == ("Pair on reviews",)

    summary_input = provider.summary_inputs[0]
    assert summary_input.period_start == "2024-01-08"
    assert len(summary_input.pull_requests) == 3
    suggestion_input = provider.suggestion_inputs[0]
    assert suggestion_input.week_summary == "Shipped login and a landing page."
    assert suggestion_input.previous_try_items == ["Write tests first"]


def test_summary_failure_falls_back_but_suggestions_still_use_model(week_data):
    provider = StubProvider(
        suggestions='{"keep": ["a"], "problem": ["b"], "try": ["c"]}',
        fail={"summary"},
    )

    result = _analyze(provider, week_data)

    assert result.ai_enabled is False
    assert result.week_summary == fallback_summary(week_data)
    assert result.suggestions_ai_enabled is True
    assert provider.suggestion_inputs[0].week_summary == fallback_summary(week_data)


def test_blank_summary_falls_back(week_data):
    provider = StubProvider(summary="   ", suggestions="{}")

    result = _analyze(provider, week_data)

    assert result.ai_enabled is False
    assert result.week_summary == fallback_summary(week_data)


def test_malformed_suggestions_fall_back(week_data):
    provider = StubProvider(suggestions="I would suggest keeping things as they are.")

    result = _analyze(provider, week_data)

    assert result.ai_enabled is True
    assert result.suggestions_ai_enabled is False
    assert result.suggestions == fallback_suggestions(week_data)


def test_suggestion_failure_falls_back(week_data):
    provider = StubProvider(fail={"suggestions"})

    result = _analyze(provider, week_data)

    assert result.suggestions == fallback_suggestions(week_data)
    assert all(result.suggestions.keep)
    assert result.suggestions.problem
    assert result.suggestions.try_items
