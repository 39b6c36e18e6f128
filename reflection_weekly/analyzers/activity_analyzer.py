"""
Narrative generation for a week of integrated activity.

The analyzer turns IntegratedData into daily summaries, insights, a
week summary and Keep/Problem/Try suggestions. The two generative
sub-steps fall back independently to deterministic text, so analyze()
always returns a usable NarrativeResult.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Protocol

from ..core.types import (
    ActivityTrend,
    DailyAnalysis,
    IntegratedData,
    NarrativeResult,
    ProjectShare,
    Suggestions,
    date_key,
)
from ..llm.parsing import MalformedSuggestions, parse_suggestions
from ..llm.prompts import SuggestionInput, SummaryInput
from ..utils.logging import log_event

KEEP_RECORDS = "Pull requests kept a steady record of the work"
KEEP_TIME_TRACKING = "Time tracking in Toggl was kept up"
KEEP_FILLER = "Running a weekly reflection is a good habit"
PROBLEM_NO_ACTIVITY = "No activity data was recorded this week"
PROBLEM_FEW_DAYS = "Activity was concentrated on only a few days"
PROBLEM_FILLER = "No major problems stood out this week"
TRY_NO_ACTIVITY = "Record daily work through pull requests and Toggl entries"
TRY_FEW_DAYS = "Spread the work across more days of the week"
TRY_FILLER = "Keep recording activity next week"

MIN_ACTIVE_DAYS = 3
HIGHLIGHT_LIMIT = 3


class NarrativeBackend(Protocol):
    async def generate_summary(self, data: SummaryInput) -> str: ...

    async def generate_suggestions(self, data: SuggestionInput) -> str: ...


class ActivityAnalyzer:
    """Build the narrative for a reflection page."""

    def __init__(self, provider: NarrativeBackend | None, logger: logging.Logger | None = None):
        self.provider = provider
        self.logger = logger

    async def analyze(
        self,
        data: IntegratedData,
        previous_try_items: list[str] | None = None,
    ) -> NarrativeResult:
        """Analyze integrated data. Never raises for backend failures."""
        daily = build_daily_analyses(data)
        insights = build_insights(data)

        week_summary, ai_enabled = await self._week_summary(data)
        suggestions, suggestions_ai = await self._suggestions(data, week_summary, previous_try_items)

        return NarrativeResult(
            daily_summaries=tuple(daily),
            week_summary=week_summary,
            insights=tuple(insights),
            suggestions=suggestions,
            trend=build_trend(data),
            ai_enabled=ai_enabled,
            suggestions_ai_enabled=suggestions_ai,
        )

    async def _week_summary(self, data: IntegratedData) -> tuple[str, bool]:
        if self.provider is None:
            return fallback_summary(data), False
        try:
            text = (await self.provider.generate_summary(build_summary_input(data))).strip()
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                "Week summary generation failed, using template",
                event="summary_fallback",
                error=str(exc),
                level=logging.WARNING,
            )
            return fallback_summary(data), False
        if not text:
            return fallback_summary(data), False
        return text, True

    async def _suggestions(
        self,
        data: IntegratedData,
        week_summary: str,
        previous_try_items: list[str] | None,
    ) -> tuple[Suggestions, bool]:
        if self.provider is None:
            return fallback_suggestions(data), False
        request = SuggestionInput(
            week_summary=week_summary,
            highlights=extract_highlights(data),
            previous_try_items=list(previous_try_items) if previous_try_items else None,
        )
        try:
            content = await self.provider.generate_suggestions(request)
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                "Suggestion generation failed, using rule-based suggestions",
                event="suggestions_fallback",
                error=str(exc),
                level=logging.WARNING,
            )
            return fallback_suggestions(data), False

        parsed = parse_suggestions(content)
        if isinstance(parsed, MalformedSuggestions):
            log_event(
                self.logger,
                "Suggestion response could not be parsed, using rule-based suggestions",
                event="suggestions_fallback",
                error=parsed.reason,
                level=logging.WARNING,
            )
            return fallback_suggestions(data), False
        return fill_empty_categories(parsed.suggestions), True


def build_daily_analyses(data: IntegratedData) -> list[DailyAnalysis]:
    analyses = []
    for bucket in data.daily_buckets:
        highlights = [
            f"{record.repository}: {record.title}"
            for record in data.records
            if date_key(record.created_at) == bucket.date
        ]

        consolidated: dict[tuple[str, str], float] = {}
        for entry in data.time_entries:
            if date_key(entry.start) != bucket.date:
                continue
            key = (entry.project_name, entry.description)
            consolidated[key] = consolidated.get(key, 0.0) + entry.hours
        for (project, description), hours in sorted(consolidated.items(), key=lambda kv: kv[1], reverse=True):
            highlights.append(f"{project}: {description} ({hours:.1f}h)")

        analyses.append(
            DailyAnalysis(
                date=bucket.date,
                summary=day_summary(bucket.record_count, bucket.work_hours, bucket.projects),
                highlights=tuple(highlights),
            )
        )
    return analyses


def day_summary(record_count: int, work_hours: float, projects: list[str]) -> str:
    parts = []
    if record_count > 0:
        parts.append(f"{record_count} pull requests")
    if work_hours > 0:
        parts.append(f"{work_hours:.1f}h of work")
    if projects:
        parts.append(f"Projects: {', '.join(projects)}")
    return " / ".join(parts)


def build_insights(data: IntegratedData) -> list[str]:
    insights = []
    total_records = len(data.records)
    total_hours = data.total_work_hours

    if total_records > 0:
        insights.append(f"Total pull requests this week: {total_records}")
    if total_hours > 0:
        insights.append(f"Total work time this week: {total_hours:.1f}h")
    if total_records > 0 and total_hours > 0:
        insights.append(f"Pull requests per hour of work: {total_records / total_hours:.2f}")

    if data.daily_buckets:
        # max() keeps the earliest day on ties.
        busiest = max(data.daily_buckets, key=lambda b: b.record_count + b.work_hours)
        weekday = date.fromisoformat(busiest.date).strftime("%a")
        insights.append(
            f"Most active day: {weekday} {busiest.date} "
            f"({busiest.record_count} pull requests, {busiest.work_hours:.1f}h)"
        )

    project_names = {bucket.name for bucket in data.project_buckets}
    if len(project_names) > 1:
        insights.append(f"Projects involved: {len(project_names)}")
    return insights


def build_summary_input(data: IntegratedData) -> SummaryInput:
    return SummaryInput(
        pull_requests=[
            {
                "title": record.title,
                "repository": record.repository,
                "date": date_key(record.created_at),
            }
            for record in data.records
        ],
        time_entries=[
            {
                "description": entry.description,
                "project_name": entry.project_name,
                "duration_hours": entry.hours,
            }
            for entry in data.time_entries
        ],
        period_start=data.date_range.start_key,
        period_end=data.date_range.end_key,
    )


def extract_highlights(data: IntegratedData) -> list[str]:
    """Top pull requests by size and longest time entries, one line each."""
    highlights = []
    largest = sorted(data.records, key=lambda r: r.size, reverse=True)[:HIGHLIGHT_LIMIT]
    for record in largest:
        highlights.append(
            f"{record.repository}: {record.title} "
            f"(+{record.additions}/-{record.deletions}, {record.changed_files} files)"
        )
    longest = sorted(data.time_entries, key=lambda e: e.duration_seconds, reverse=True)[:HIGHLIGHT_LIMIT]
    for entry in longest:
        highlights.append(f"{entry.project_name}: {entry.description} ({entry.hours:.1f}h)")
    return highlights


def fallback_summary(data: IntegratedData) -> str:
    """Deterministic week summary used when the LLM is unavailable."""
    lines = [f"Period: {data.date_range.start_key} - {data.date_range.end_key}"]

    if data.records:
        repositories = {record.repository for record in data.records}
        lines.append(f"Pull requests: {len(data.records)} ({len(repositories)} repositories)")
    else:
        lines.append("Pull requests: none")

    total_hours = data.total_work_hours
    if total_hours > 0:
        projects = {entry.project_name for entry in data.time_entries}
        lines.append(f"Work time: {total_hours:.1f}h ({len(projects)} projects)")
    else:
        lines.append("Work time: not recorded")

    lines.append(f"Active days: {len(data.daily_buckets)}")
    return "\n".join(lines)


def fallback_suggestions(data: IntegratedData) -> Suggestions:
    """Rule-based Keep/Problem/Try set; every category ends up non-empty."""
    keep: list[str] = []
    problem: list[str] = []
    try_items: list[str] = []

    total_records = len(data.records)
    total_hours = data.total_work_hours

    if total_records > 0:
        keep.append(KEEP_RECORDS)
    if total_hours > 0:
        keep.append(KEEP_TIME_TRACKING)
    if total_records == 0 and total_hours == 0:
        problem.append(PROBLEM_NO_ACTIVITY)
        try_items.append(TRY_NO_ACTIVITY)
    if len(data.daily_buckets) < MIN_ACTIVE_DAYS:
        problem.append(PROBLEM_FEW_DAYS)
        try_items.append(TRY_FEW_DAYS)

    return fill_empty_categories(Suggestions(tuple(keep), tuple(problem), tuple(try_items)))


def fill_empty_categories(suggestions: Suggestions) -> Suggestions:
    return Suggestions(
        keep=suggestions.keep or (KEEP_FILLER,),
        problem=suggestions.problem or (PROBLEM_FILLER,),
        try_items=suggestions.try_items or (TRY_FILLER,),
    )


def build_trend(data: IntegratedData) -> ActivityTrend | None:
    total = sum(bucket.activity for bucket in data.project_buckets)
    if total <= 0:
        return None
    shares = [
        ProjectShare(name=bucket.name, percentage=bucket.activity / total * 100)
        for bucket in data.project_buckets
        if bucket.activity > 0
    ]
    shares.sort(key=lambda share: share.percentage, reverse=True)
    return ActivityTrend(project_distribution=tuple(shares))
