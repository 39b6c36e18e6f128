"""
Pull request reader for the GitHub REST API.

The pulls endpoint cannot filter by creation date, so pages are
requested newest-first and filtered client-side. Paging stops as soon
as a page reaches back past the start of the period, when the Link
header has no next page, or when a page comes back short.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Awaitable, Callable

import httpx

from ..core.errors import ClientError, NetworkError, NotFound, RateLimited, Unauthorized
from ..core.types import DateRange, PullRequestRecord
from ..utils.logging import log_event
from .base import SourceResult, parse_retry_after, parse_timestamp, response_message
from .retry import RetryPolicy, execute_with_retry

SERVICE = "github"


def classify_github_error(exc: Exception, repository: str) -> ClientError:
    """Map an httpx failure from the GitHub API onto the client taxonomy."""
    if isinstance(exc, ClientError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = response.status_code
        message = response_message(response) or str(exc)
        if status == 401:
            return Unauthorized(message, SERVICE)
        if status == 403:
            if "rate limit" in message.lower():
                return RateLimited(message, SERVICE, reset_at=_rate_limit_reset(response))
            return Unauthorized(message, SERVICE)
        if status == 429:
            return RateLimited(message, SERVICE, retry_after=parse_retry_after(response))
        if status == 404:
            return NotFound(repository, SERVICE)
        return NetworkError(f"HTTP {status}: {message}", SERVICE)
    return NetworkError(f"{type(exc).__name__}: {exc}", SERVICE)


def _rate_limit_reset(response: httpx.Response) -> datetime:
    header = response.headers.get("x-ratelimit-reset")
    if header:
        try:
            return datetime.fromtimestamp(int(header), tz=timezone.utc)
        except ValueError:
            pass
    return datetime.now(timezone.utc) + timedelta(hours=1)


def is_valid_repository(repository: str) -> bool:
    parts = repository.split("/")
    return len(parts) == 2 and all(parts)


class GitHubReader:
    """Fetch pull requests created within a period across repositories."""

    def __init__(
        self,
        token: str,
        http: httpx.AsyncClient,
        base_url: str = "https://api.github.com",
        per_page: int = 100,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.token = token
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger
        self._sleep = sleep

    async def fetch(self, repositories: list[str], date_range: DateRange) -> SourceResult[PullRequestRecord]:
        """Fetch pull requests from every repository concurrently.

        Repositories that fail are dropped as long as at least one
        succeeds; the source fails only when every repository failed.
        """
        if not repositories:
            return SourceResult(items=[])

        results = await asyncio.gather(
            *(self._fetch_scope(repo, date_range) for repo in repositories)
        )

        records: list[PullRequestRecord] = []
        errors: list[str] = []
        for repo, (repo_records, error) in zip(repositories, results):
            if error is None:
                records.extend(repo_records)
                continue
            errors.append(f"{repo}: {error}")
            log_event(
                self.logger,
                "Repository fetch failed",
                event="github_repository_failed",
                repository=repo,
                error=str(error),
                level=logging.WARNING,
            )

        if len(errors) == len(repositories):
            return SourceResult(error="; ".join(errors))
        return SourceResult(items=records)

    async def _fetch_scope(
        self, repository: str, date_range: DateRange
    ) -> tuple[list[PullRequestRecord], ClientError | None]:
        try:
            return await self.fetch_repository(repository, date_range), None
        except ClientError as exc:
            return [], exc
        except (KeyError, TypeError, ValueError) as exc:
            return [], NetworkError(f"Malformed pull request payload: {exc}", SERVICE)

    async def fetch_repository(self, repository: str, date_range: DateRange) -> list[PullRequestRecord]:
        """Fetch pull requests of one repository created within date_range.

        Raises:
            ClientError: When the repository cannot be read
        """
        if not is_valid_repository(repository):
            raise NotFound(repository, SERVICE)

        owner, repo = repository.split("/")
        collected: list[PullRequestRecord] = []
        page = 1
        while True:
            raw_items, has_next = await self._fetch_page(owner, repo, page)
            page_records = [self._map_pull_request(raw, repository) for raw in raw_items]

            for record in page_records:
                if date_range.start <= record.created_at <= date_range.end:
                    collected.append(record)

            # Pages are sorted newest first: once the oldest item precedes
            # the period, later pages cannot contain matches.
            if page_records and page_records[-1].created_at < date_range.start:
                break
            if not has_next or len(raw_items) < self.per_page:
                break
            page += 1

        log_event(
            self.logger,
            "Pull requests fetched",
            event="github_fetched",
            repository=repository,
            count=len(collected),
            pages=page,
        )
        return collected

    async def _fetch_page(self, owner: str, repo: str, page: int) -> tuple[list[dict[str, Any]], bool]:
        url = f"{self.base_url}/repos/{owner}/{repo}/pulls"
        params = {
            "state": "all",
            "sort": "created",
            "direction": "desc",
            "per_page": self.per_page,
            "page": page,
        }

        async def _request() -> httpx.Response:
            resp = await self.http.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            return resp

        try:
            resp = await execute_with_retry(
                _request,
                policy=self.retry_policy,
                sleep=self._sleep,
                logger=self.logger,
                description=f"github {owner}/{repo} page {page}",
            )
        except httpx.HTTPError as exc:
            raise classify_github_error(exc, f"{owner}/{repo}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise NetworkError(f"Malformed response: {exc}", SERVICE) from exc
        if not isinstance(data, list):
            raise NetworkError("Unexpected response shape from pulls endpoint", SERVICE)

        has_next = 'rel="next"' in resp.headers.get("link", "")
        return data, has_next

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @staticmethod
    def _map_pull_request(raw: dict[str, Any], repository: str) -> PullRequestRecord:
        if raw.get("merged_at"):
            state = "merged"
        else:
            state = "closed" if raw.get("state") == "closed" else "open"
        return PullRequestRecord(
            number=int(raw.get("number", 0)),
            title=str(raw.get("title") or ""),
            description=str(raw.get("body") or ""),
            created_at=parse_timestamp(raw["created_at"]),
            repository=repository,
            url=str(raw.get("html_url") or raw.get("url") or ""),
            state=state,
            additions=int(raw.get("additions") or 0),
            deletions=int(raw.get("deletions") or 0),
            changed_files=int(raw.get("changed_files") or 0),
        )
