"""Data collection stage: fetch both sources and bucket their records."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, timedelta
import logging
from typing import Protocol

from ..core.errors import AllSourcesFailedError, SourceError
from ..core.types import (
    BucketKey,
    DailyBucket,
    DataWarning,
    DateRange,
    IntegratedData,
    ProjectBucket,
    PullRequestRecord,
    TimeEntryRecord,
    date_key,
)
from ..fetch.base import SourceResult
from ..utils.logging import log_event

NO_PULL_REQUESTS_MESSAGE = "No pull requests found in the period"
NO_TIME_ENTRIES_MESSAGE = "No time entries found in the period"


class PullRequestSource(Protocol):
    async def fetch(self, repositories: list[str], date_range: DateRange) -> SourceResult[PullRequestRecord]: ...


class TimeEntrySource(Protocol):
    async def fetch(self, date_range: DateRange, workspace_id: int | None = None) -> SourceResult[TimeEntryRecord]: ...


@dataclass
class SourceConfig:
    """Which scopes to read from each source.

    Attributes:
        repositories: GitHub repositories as owner/repo
        workspace_id: Optional Toggl workspace for project name lookup
    """

    repositories: list[str] = field(default_factory=list)
    workspace_id: int | None = None


class DataIntegrator:
    """Collect pull requests and time entries and integrate them.

    Both sources are read concurrently. One failing source becomes a
    warning; only the failure of both is fatal.
    """

    def __init__(
        self,
        github_reader: PullRequestSource,
        toggl_reader: TimeEntrySource,
        logger: logging.Logger | None = None,
    ) -> None:
        self.github_reader = github_reader
        self.toggl_reader = toggl_reader
        self.logger = logger

    async def collect_and_integrate(self, date_range: DateRange, source_config: SourceConfig) -> IntegratedData:
        """Fetch both sources and build daily and project buckets.

        Raises:
            AllSourcesFailedError: When both sources failed
        """
        pr_result, entry_result = await asyncio.gather(
            self.github_reader.fetch(list(source_config.repositories), date_range),
            self.toggl_reader.fetch(date_range, source_config.workspace_id),
        )

        warnings: list[DataWarning] = []
        errors: list[SourceError] = []

        records: list[PullRequestRecord] = []
        if pr_result.ok:
            records = list(pr_result.items)
            if not records:
                warnings.append(DataWarning("no_records", NO_PULL_REQUESTS_MESSAGE, "github"))
        else:
            errors.append(SourceError("github", pr_result.error or "unknown error"))
            warnings.append(
                DataWarning(
                    "partial_source",
                    f"Failed to fetch GitHub data: {pr_result.error}",
                    "github",
                )
            )

        entries: list[TimeEntryRecord] = []
        if entry_result.ok:
            entries = list(entry_result.items)
            if not entries:
                warnings.append(DataWarning("no_time_entries", NO_TIME_ENTRIES_MESSAGE, "toggl"))
        else:
            errors.append(SourceError("toggl", entry_result.error or "unknown error"))
            warnings.append(
                DataWarning(
                    "partial_source",
                    f"Failed to fetch Toggl data: {entry_result.error}",
                    "toggl",
                )
            )

        if not pr_result.ok and not entry_result.ok:
            log_event(
                self.logger,
                "All data sources failed",
                event="all_sources_failed",
                errors=[f"{e.source}: {e.message}" for e in errors],
                level=logging.ERROR,
            )
            raise AllSourcesFailedError(errors)

        for warning in warnings:
            log_event(
                self.logger,
                warning.message,
                event="data_warning",
                warning_kind=warning.kind,
                source=warning.source,
                level=logging.WARNING,
            )

        return IntegratedData(
            date_range=date_range,
            records=tuple(records),
            time_entries=tuple(entries),
            daily_buckets=tuple(build_daily_buckets(date_range, records, entries)),
            project_buckets=tuple(build_project_buckets(records, entries)),
            warnings=tuple(warnings),
        )


def seed_dates(date_range: DateRange) -> list[str]:
    """Return every UTC calendar date in the range, inclusive."""
    current = date.fromisoformat(date_range.start_key)
    last = date.fromisoformat(date_range.end_key)
    dates = []
    while current <= last:
        dates.append(current.isoformat())
        current += timedelta(days=1)
    return dates


def build_daily_buckets(
    date_range: DateRange,
    records: list[PullRequestRecord],
    entries: list[TimeEntryRecord],
) -> list[DailyBucket]:
    """Bucket activity by UTC date.

    Every date in the range is seeded first; days that end up with no
    activity are dropped only after all records have been counted.
    """
    buckets = {key: DailyBucket(date=key) for key in seed_dates(date_range)}
    projects: dict[str, set[str]] = {key: set() for key in buckets}

    for record in records:
        key = date_key(record.created_at)
        bucket = buckets.get(key)
        if bucket is None:
            continue
        bucket.record_count += 1
        projects[key].add(record.repository)

    for entry in entries:
        key = date_key(entry.start)
        bucket = buckets.get(key)
        if bucket is None:
            continue
        bucket.work_seconds += entry.duration_seconds
        projects[key].add(entry.project_name)

    result = []
    for key, bucket in buckets.items():
        if bucket.is_empty:
            continue
        bucket.projects = sorted(projects[key])
        result.append(bucket)
    return sorted(result, key=lambda b: b.date)


def build_project_buckets(
    records: list[PullRequestRecord],
    entries: list[TimeEntryRecord],
) -> list[ProjectBucket]:
    """Aggregate activity per repository and per Toggl project."""
    buckets: dict[BucketKey, ProjectBucket] = {}

    for record in records:
        key = BucketKey.origin_group(record.repository)
        buckets.setdefault(key, ProjectBucket(key)).record_count += 1

    for entry in entries:
        key = BucketKey.project(entry.project_name)
        buckets.setdefault(key, ProjectBucket(key)).work_seconds += entry.duration_seconds

    return list(buckets.values())
