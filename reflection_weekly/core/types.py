"""
Core data types for the weekly reflection pipeline.

This module defines the structures passed between pipeline stages:
- DateRange: Inclusive UTC period a report covers
- PullRequestRecord / TimeEntryRecord: Raw activity fetched from GitHub and Toggl
- DailyBucket / ProjectBucket: Aggregates built by the integrator
- IntegratedData: Output of data collection, input of analysis and publishing
- NarrativeResult: Week summary, insights and Keep/Problem/Try suggestions
- PublishResult / ReflectionResult: Outcome of publishing and of a whole run

Everything here is created fresh for a run and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Literal


@dataclass(frozen=True)
class DateRange:
    """Inclusive period covered by a reflection.

    Attributes:
        start: First instant of the period (timezone-aware, UTC)
        end: Last instant of the period (timezone-aware, UTC)
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    @property
    def start_key(self) -> str:
        return date_key(self.start)

    @property
    def end_key(self) -> str:
        return date_key(self.end)


def date_key(value: datetime) -> str:
    """Return the UTC calendar date of an instant as YYYY-MM-DD."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date().isoformat()


PullRequestState = Literal["open", "closed", "merged"]


@dataclass(frozen=True)
class PullRequestRecord:
    """A pull request fetched from GitHub.

    The pulls list endpoint does not return diff statistics, so
    additions, deletions and changed_files default to zero unless the
    payload carries them.
    """

    number: int
    title: str
    description: str
    created_at: datetime
    repository: str
    url: str
    state: PullRequestState
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0

    @property
    def size(self) -> tuple[int, int]:
        return (self.changed_files, self.additions + self.deletions)


@dataclass(frozen=True)
class TimeEntryRecord:
    """A completed Toggl time entry with its project name resolved."""

    id: int
    description: str
    project_name: str
    start: datetime
    end: datetime
    duration_seconds: int
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")

    @property
    def hours(self) -> float:
        return self.duration_seconds / 3600


@dataclass
class DailyBucket:
    """Activity accumulated for one UTC calendar date."""

    date: str
    record_count: int = 0
    work_seconds: int = 0
    projects: list[str] = field(default_factory=list)

    @property
    def work_hours(self) -> float:
        return self.work_seconds / 3600

    @property
    def is_empty(self) -> bool:
        return self.record_count == 0 and self.work_seconds == 0


BucketKind = Literal["origin_group", "project"]


@dataclass(frozen=True)
class BucketKey:
    """Key of a project bucket.

    Repository names and Toggl project names live in separate
    keyspaces, so a repository and a project sharing a name stay apart.
    """

    kind: BucketKind
    name: str

    @classmethod
    def origin_group(cls, name: str) -> "BucketKey":
        return cls("origin_group", name)

    @classmethod
    def project(cls, name: str) -> "BucketKey":
        return cls("project", name)


@dataclass
class ProjectBucket:
    key: BucketKey
    record_count: int = 0
    work_seconds: int = 0

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def work_hours(self) -> float:
        return self.work_seconds / 3600

    @property
    def activity(self) -> float:
        return self.record_count + self.work_hours


WarningKind = Literal["no_records", "no_time_entries", "partial_source"]


@dataclass(frozen=True)
class DataWarning:
    """Non-fatal note produced during data collection."""

    kind: WarningKind
    message: str
    source: str | None = None


@dataclass(frozen=True)
class IntegratedData:
    """Output of the data collection stage."""

    date_range: DateRange
    records: tuple[PullRequestRecord, ...] = ()
    time_entries: tuple[TimeEntryRecord, ...] = ()
    daily_buckets: tuple[DailyBucket, ...] = ()
    project_buckets: tuple[ProjectBucket, ...] = ()
    warnings: tuple[DataWarning, ...] = ()

    @property
    def total_work_seconds(self) -> int:
        return sum(entry.duration_seconds for entry in self.time_entries)

    @property
    def total_work_hours(self) -> float:
        return self.total_work_seconds / 3600


@dataclass(frozen=True)
class DailyAnalysis:
    date: str
    summary: str
    highlights: tuple[str, ...] = ()


@dataclass(frozen=True)
class Suggestions:
    """Keep/Problem/Try suggestion set."""

    keep: tuple[str, ...] = ()
    problem: tuple[str, ...] = ()
    try_items: tuple[str, ...] = ()

    def all_items(self) -> list[str]:
        return [*self.keep, *self.problem, *self.try_items]


@dataclass(frozen=True)
class ProjectShare:
    name: str
    percentage: float


@dataclass(frozen=True)
class ActivityTrend:
    project_distribution: tuple[ProjectShare, ...] = ()


@dataclass(frozen=True)
class NarrativeResult:
    """Output of the analysis stage.

    Attributes:
        daily_summaries: Per-day summary and highlight lines
        week_summary: Natural-language summary of the whole period
        insights: Statistics-derived sentences
        suggestions: Keep/Problem/Try suggestion set
        trend: Project distribution, absent when there was no activity
        ai_enabled: True only when the week summary came from the LLM
        suggestions_ai_enabled: True when the suggestion set came from the LLM
    """

    daily_summaries: tuple[DailyAnalysis, ...]
    week_summary: str
    insights: tuple[str, ...]
    suggestions: Suggestions
    trend: ActivityTrend | None = None
    ai_enabled: bool = False
    suggestions_ai_enabled: bool = False


@dataclass(frozen=True)
class PublishResult:
    """Outcome of the publish step.

    At most one of remote_url and local_path is set. Neither is set for
    a dry run.
    """

    title: str
    remote_url: str | None = None
    local_path: str | None = None
    page_id: str | None = None


ProgressStage = Literal["config", "data-collection", "analysis", "publish"]
ProgressStatus = Literal["start", "complete", "error"]


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    status: ProgressStatus
    message: str | None = None


ProgressCallback = Callable[[ProgressEvent], None]

OutputType = Literal["notion", "markdown", "preview"]


@dataclass(frozen=True)
class ExecutionSummary:
    date_range: DateRange
    record_count: int
    time_entry_count: int
    total_work_hours: float
    ai_enabled: bool
    output_type: OutputType


@dataclass(frozen=True)
class ReflectionResult:
    """Successful outcome of a full run, possibly degraded."""

    summary: ExecutionSummary
    warnings: tuple[str, ...] = ()
    remote_url: str | None = None
    local_path: str | None = None
    preview: str | None = None
