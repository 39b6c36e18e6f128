"""
Time entry reader for the Toggl Track API v9.

Running entries (negative duration) are dropped. Project names are
resolved through a ProjectNameCache that belongs to a single run.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
import logging
from typing import Any, Awaitable, Callable, Iterable

import httpx

from ..core.errors import ClientError, NetworkError, RateLimited, Unauthorized
from ..core.types import DateRange, TimeEntryRecord
from ..utils.logging import log_event
from .base import SourceResult, format_timestamp, parse_retry_after, parse_timestamp, response_message
from .retry import RetryPolicy, execute_with_retry

SERVICE = "toggl"
NO_PROJECT = "No Project"
UNKNOWN_PROJECT = "Unknown Project"


def classify_toggl_error(exc: Exception) -> ClientError:
    """Map an httpx failure from the Toggl API onto the client taxonomy."""
    if isinstance(exc, ClientError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = response.status_code
        if status in (401, 403):
            return Unauthorized("Invalid API token", SERVICE)
        if status == 429:
            return RateLimited(
                response_message(response) or "Too many requests",
                SERVICE,
                retry_after=parse_retry_after(response),
            )
        return NetworkError(f"HTTP {status}: {response_message(response)}", SERVICE)
    return NetworkError(f"{type(exc).__name__}: {exc}", SERVICE)


def _is_completed(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    duration = entry.get("duration")
    return isinstance(duration, (int, float)) and duration >= 0


class ProjectNameCache:
    """Project id to name mapping, scoped to one pipeline run."""

    def __init__(self) -> None:
        self._names: dict[int, str] = {}
        self._workspaces: set[int] = set()

    def has_workspace(self, workspace_id: int) -> bool:
        return workspace_id in self._workspaces

    def add_workspace(self, workspace_id: int, projects: Iterable[dict[str, Any]]) -> None:
        for project in projects:
            if project.get("id") is None:
                continue
            self._names[int(project["id"])] = str(project.get("name") or UNKNOWN_PROJECT)
        self._workspaces.add(workspace_id)

    def resolve(self, project_id: int | None) -> str:
        if project_id is None:
            return NO_PROJECT
        return self._names.get(int(project_id), UNKNOWN_PROJECT)


class TogglReader:
    """Fetch completed time entries within a period."""

    def __init__(
        self,
        api_token: str,
        http: httpx.AsyncClient,
        base_url: str = "https://api.track.toggl.com/api/v9",
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        project_cache: ProjectNameCache | None = None,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_token = api_token
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.project_cache = project_cache if project_cache is not None else ProjectNameCache()
        self.logger = logger
        self._sleep = sleep

    async def fetch(self, date_range: DateRange, workspace_id: int | None = None) -> SourceResult[TimeEntryRecord]:
        """Fetch time entries with project names resolved.

        Failing to load a workspace's project list is not fatal: the
        affected entries are labelled "Unknown Project".
        """
        try:
            raw_entries = await self._get_time_entries(date_range)
        except ClientError as exc:
            return SourceResult(error=str(exc))

        if workspace_id is not None:
            workspace_ids = [workspace_id]
        else:
            workspace_ids = sorted({int(e["workspace_id"]) for e in raw_entries if e.get("workspace_id") is not None})

        for ws_id in workspace_ids:
            if self.project_cache.has_workspace(ws_id):
                continue
            try:
                projects = await self._get_projects(ws_id)
            except ClientError as exc:
                log_event(
                    self.logger,
                    "Project list unavailable",
                    event="toggl_projects_failed",
                    workspace_id=ws_id,
                    error=str(exc),
                    level=logging.WARNING,
                )
                continue
            self.project_cache.add_workspace(ws_id, projects)

        try:
            entries = [self._map_entry(raw) for raw in raw_entries]
        except (KeyError, TypeError, ValueError) as exc:
            return SourceResult(error=str(NetworkError(f"Malformed time entry payload: {exc}", SERVICE)))

        log_event(self.logger, "Time entries fetched", event="toggl_fetched", count=len(entries))
        return SourceResult(items=entries)

    async def _get_time_entries(self, date_range: DateRange) -> list[dict[str, Any]]:
        params = {
            "start_date": format_timestamp(date_range.start),
            "end_date": format_timestamp(date_range.end),
        }
        data = await self._get("/me/time_entries", params=params, description="toggl time entries")
        if not isinstance(data, list):
            raise NetworkError("Unexpected response shape from time entries endpoint", SERVICE)
        # Running entries carry a negative duration.
        return [entry for entry in data if _is_completed(entry)]

    async def _get_projects(self, workspace_id: int) -> list[dict[str, Any]]:
        data = await self._get(
            f"/workspaces/{workspace_id}/projects",
            description=f"toggl projects {workspace_id}",
        )
        if not isinstance(data, list):
            return []
        return [project for project in data if isinstance(project, dict)]

    async def _get(self, path: str, params: dict[str, Any] | None = None, description: str = "toggl") -> Any:
        url = f"{self.base_url}{path}"

        async def _request() -> httpx.Response:
            resp = await self.http.get(
                url,
                params=params,
                auth=httpx.BasicAuth(self.api_token, "api_token"),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp

        try:
            resp = await execute_with_retry(
                _request,
                policy=self.retry_policy,
                sleep=self._sleep,
                logger=self.logger,
                description=description,
            )
        except httpx.HTTPError as exc:
            raise classify_toggl_error(exc) from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise NetworkError(f"Malformed response: {exc}", SERVICE) from exc

    def _map_entry(self, raw: dict[str, Any]) -> TimeEntryRecord:
        start = parse_timestamp(raw["start"])
        duration = int(raw["duration"])
        stop = raw.get("stop")
        end = parse_timestamp(stop) if stop else start + timedelta(seconds=duration)
        return TimeEntryRecord(
            id=int(raw.get("id", 0)),
            description=str(raw.get("description") or ""),
            project_name=self.project_cache.resolve(raw.get("project_id")),
            start=start,
            end=end,
            duration_seconds=duration,
            tags=tuple(raw.get("tags") or ()),
        )
