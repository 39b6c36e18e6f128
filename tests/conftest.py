"""Shared fixtures: one small week of GitHub and Toggl activity."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from reflection_weekly.analyzers.integrator import build_daily_buckets, build_project_buckets
from reflection_weekly.core.types import DateRange, IntegratedData, PullRequestRecord, TimeEntryRecord

WEEK = DateRange(
    start=datetime(2024, 1, 8, tzinfo=timezone.utc),
    end=datetime(2024, 1, 14, 23, 59, 59, tzinfo=timezone.utc),
)


def make_pr(number, title, repository, created_at, additions=0, deletions=0, changed_files=0):
    return PullRequestRecord(
        number=number,
        title=title,
        description="",
        created_at=created_at,
        repository=repository,
        url=f"https://github.com/{repository}/pull/{number}",
        state="merged",
        additions=additions,
        deletions=deletions,
        changed_files=changed_files,
    )


def make_entry(entry_id, project, description, start, seconds):
    return TimeEntryRecord(
        id=entry_id,
        description=description,
        project_name=project,
        start=start,
        end=start + timedelta(seconds=seconds),
        duration_seconds=seconds,
    )


def integrate(records, entries, date_range=WEEK, warnings=()):
    return IntegratedData(
        date_range=date_range,
        records=tuple(records),
        time_entries=tuple(entries),
        daily_buckets=tuple(build_daily_buckets(date_range, list(records), list(entries))),
        project_buckets=tuple(build_project_buckets(list(records), list(entries))),
        warnings=tuple(warnings),
    )


@pytest.fixture
def week_data() -> IntegratedData:
    records = [
        make_pr(1, "Add login", "o/api", datetime(2024, 1, 8, 10, tzinfo=timezone.utc), 120, 30, 5),
        make_pr(2, "Fix bug", "o/api", datetime(2024, 1, 9, 9, tzinfo=timezone.utc), 5, 2, 1),
        make_pr(3, "Landing page", "o/web", datetime(2024, 1, 10, 12, tzinfo=timezone.utc), 300, 10, 12),
    ]
    entries = [
        make_entry(1, "Alpha", "Coding", datetime(2024, 1, 8, 1, tzinfo=timezone.utc), 3600),
        make_entry(2, "Alpha", "Coding", datetime(2024, 1, 8, 5, tzinfo=timezone.utc), 1800),
        make_entry(3, "Beta", "Review", datetime(2024, 1, 9, 2, tzinfo=timezone.utc), 5400),
    ]
    return integrate(records, entries)


@pytest.fixture
def empty_data() -> IntegratedData:
    return integrate([], [])
