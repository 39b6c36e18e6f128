"""Tests for the Toggl time entry reader."""

from __future__ import annotations

import asyncio
import base64
from datetime import datetime, timedelta, timezone

import httpx

from reflection_weekly.core.types import DateRange
from reflection_weekly.fetch.toggl import NO_PROJECT, UNKNOWN_PROJECT, ProjectNameCache, TogglReader

WEEK = DateRange(
    start=datetime(2024, 1, 8, tzinfo=timezone.utc),
    end=datetime(2024, 1, 14, 23, 59, 59, 999999, tzinfo=timezone.utc),
)

ENTRIES = [
    {
        "id": 1,
        "workspace_id": 77,
        "project_id": 10,
        "description": "Coding",
        "start": "2024-01-08T01:00:00Z",
        "stop": "2024-01-08T02:00:00Z",
        "duration": 3600,
        "tags": ["dev"],
    },
    {
        "id": 2,
        "workspace_id": 77,
        "project_id": None,
        "description": "Email",
        "start": "2024-01-09T03:00:00Z",
        "stop": "2024-01-09T03:30:00Z",
        "duration": 1800,
    },
    {
        "id": 3,
        "workspace_id": 77,
        "project_id": 99,
        "description": "Mystery",
        "start": "2024-01-10T03:00:00Z",
        "duration": 900,
    },
    {
        "id": 4,
        "workspace_id": 77,
        "project_id": 10,
        "description": "Still running",
        "start": "2024-01-11T03:00:00Z",
        "duration": -1704942000,
    },
]


async def _no_sleep(_delay: float) -> None:
    return None


def _reader(http: httpx.AsyncClient, **kwargs) -> TogglReader:
    return TogglReader("toggl-token-abc", http, sleep=_no_sleep, **kwargs)


def _run(handler, workspace_id=None, **kwargs):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await _reader(http, **kwargs).fetch(WEEK, workspace_id)

    return asyncio.run(_go())


def _default_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/me/time_entries"):
        return httpx.Response(200, json=ENTRIES)
    if request.url.path.endswith("/workspaces/77/projects"):
        return httpx.Response(200, json=[{"id": 10, "name": "Alpha"}])
    return httpx.Response(404)


def test_drops_running_entries_and_resolves_project_names():
    result = _run(_default_handler)

    assert result.ok
    assert [entry.id for entry in result.items] == [1, 2, 3]
    names = {entry.id: entry.project_name for entry in result.items}
    assert names == {1: "Alpha", 2: NO_PROJECT, 3: UNKNOWN_PROJECT}


def test_maps_entry_fields_and_derives_missing_stop():
    result = _run(_default_handler)

    first, _, third = result.items
    assert first.description == "Coding"
    assert first.duration_seconds == 3600
    assert first.tags == ("dev",)
    assert first.end == datetime(2024, 1, 8, 2, tzinfo=timezone.utc)
    assert third.end == third.start + timedelta(seconds=900)


def test_sends_period_and_basic_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _default_handler(request)

    _run(handler)

    entries_request = seen[0]
    assert entries_request.url.params["start_date"] == "2024-01-08T00:00:00Z"
    assert entries_request.url.params["end_date"].startswith("2024-01-14T23:59:59")
    expected = base64.b64encode(b"toggl-token-abc:api_token").decode()
    assert entries_request.headers["Authorization"] == f"Basic {expected}"


def test_explicit_workspace_is_used_for_project_lookup():
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.endswith("/workspaces/5/projects"):
            return httpx.Response(200, json=[{"id": 10, "name": "Beta"}])
        return _default_handler(request)

    result = _run(handler, workspace_id=5)

    assert "/api/v9/workspaces/5/projects" in paths
    assert result.items[0].project_name == "Beta"


def test_project_lookup_failure_is_not_fatal():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/projects"):
            return httpx.Response(403, json={"error": "forbidden"})
        return _default_handler(request)

    result = _run(handler)

    assert result.ok
    assert {entry.project_name for entry in result.items} == {UNKNOWN_PROJECT, NO_PROJECT}


def test_invalid_token_fails_the_source():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Unauthorized")

    result = _run(handler)

    assert not result.ok
    assert result.error == "unauthorized: Invalid API token"


def test_project_cache_is_reused_across_fetches():
    project_calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/projects"):
            project_calls["count"] += 1
        return _default_handler(request)

    async def _go():
        cache = ProjectNameCache()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            reader = _reader(http, project_cache=cache)
            await reader.fetch(WEEK)
            return await reader.fetch(WEEK)

    result = asyncio.run(_go())

    assert result.ok
    assert project_calls["count"] == 1


def test_empty_period_is_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    result = _run(handler)

    assert result.ok
    assert result.items == []
