"""
Notion API client for creating reflection pages.

Pages are created in a database with typed properties and a body of
simple blocks. Notion caps rich text at 2000 characters per object and
100 children per request, so long text is chunked and long bodies are
appended in batches after the page exists. Requests are spaced to stay
under the ~3 requests/second integration limit.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import time
from typing import Any, Awaitable, Callable, Literal

import httpx

from ..core.errors import ClientError, NotFound, RateLimited, ServiceUnavailable, Unauthorized, ValidationError
from ..fetch.base import parse_retry_after, response_message
from ..fetch.retry import RetryPolicy, execute_with_retry
from ..utils.logging import log_event

SERVICE = "notion"
MAX_RICH_TEXT_CHARS = 2000
MAX_CHILDREN_PER_REQUEST = 100

BlockType = Literal[
    "heading_1",
    "heading_2",
    "heading_3",
    "paragraph",
    "bulleted_list_item",
    "divider",
]


@dataclass(frozen=True)
class Block:
    """Page body block. `content` is empty for dividers."""

    type: BlockType
    content: str = ""


@dataclass(frozen=True)
class PageProperties:
    week_number: int
    date_range: str
    tags: tuple[str, ...] = ()
    pr_count: int | None = None
    work_hours: float | None = None
    ai_enabled: bool | None = None


@dataclass(frozen=True)
class PageContent:
    title: str
    properties: PageProperties
    blocks: tuple[Block, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NotionPage:
    id: str
    url: str


def classify_notion_error(exc: Exception, resource: str) -> ClientError:
    """Map an httpx failure from the Notion API onto the client taxonomy."""
    if isinstance(exc, ClientError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = response.status_code
        message = response_message(response) or str(exc)
        if status == 401:
            return Unauthorized(message, SERVICE)
        if status == 404:
            return NotFound(resource, SERVICE)
        if status == 400:
            return ValidationError(message, SERVICE)
        if status == 429:
            return RateLimited(message, SERVICE, retry_after=parse_retry_after(response))
        return ServiceUnavailable(f"HTTP {status}: {message}", SERVICE)
    return ServiceUnavailable(f"{type(exc).__name__}: {exc}", SERVICE)


class NotionClient:
    """Thin async client over the Notion pages and blocks endpoints."""

    def __init__(
        self,
        token: str,
        http: httpx.AsyncClient,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        min_interval: float = 0.34,
        retry_policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.token = token
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout
        self.min_interval = min_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    async def create_page(self, content: PageContent, database_id: str) -> NotionPage:
        """Create a page in database_id and append any remaining blocks.

        Raises:
            ClientError: When Notion rejects or fails any request
        """
        children = [convert_block(block) for block in content.blocks]
        body = {
            "parent": {"database_id": database_id},
            "properties": build_properties(content),
            "children": children[:MAX_CHILDREN_PER_REQUEST],
        }
        data = await self._request("POST", "/pages", body, resource=database_id)
        try:
            page = NotionPage(id=str(data["id"]), url=str(data.get("url") or ""))
        except (KeyError, TypeError) as exc:
            raise ServiceUnavailable(f"Malformed page response: {exc}", SERVICE) from exc

        remaining = children[MAX_CHILDREN_PER_REQUEST:]
        try:
            for offset in range(0, len(remaining), MAX_CHILDREN_PER_REQUEST):
                batch = remaining[offset : offset + MAX_CHILDREN_PER_REQUEST]
                await self._request(
                    "PATCH",
                    f"/blocks/{page.id}/children",
                    {"children": batch},
                    resource=page.id,
                )
        except ClientError:
            await self._archive(page.id)
            raise

        log_event(
            self.logger,
            "Notion page created",
            event="notion_page_created",
            page_id=page.id,
            url=page.url,
            blocks=len(children),
        )
        return page

    async def _archive(self, page_id: str) -> None:
        """Archive a partially written page. Failures are logged only."""
        try:
            await self._request("PATCH", f"/pages/{page_id}", {"archived": True}, resource=page_id)
        except ClientError as exc:
            log_event(
                self.logger,
                "Failed to archive partial Notion page",
                event="notion_archive_failed",
                level=logging.WARNING,
                page_id=page_id,
                error=str(exc),
            )
            return
        log_event(self.logger, "Partial Notion page archived", event="notion_page_archived", page_id=page_id)

    async def _request(self, method: str, path: str, body: dict[str, Any], resource: str) -> dict[str, Any]:
        url = f"{self.base_url}{path}"

        async def _send() -> httpx.Response:
            await self._throttle()
            resp = await self.http.request(
                method,
                url,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp

        try:
            resp = await execute_with_retry(
                _send,
                policy=self.retry_policy,
                sleep=self._sleep,
                logger=self.logger,
                description=f"notion {method} {path}",
            )
        except httpx.HTTPError as exc:
            raise classify_notion_error(exc, resource) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ServiceUnavailable(f"Malformed response: {exc}", SERVICE) from exc
        if not isinstance(data, dict):
            raise ServiceUnavailable("Unexpected response shape", SERVICE)
        return data

    async def _throttle(self) -> None:
        async with self._lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_request = self._clock()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Notion-Version": self.notion_version,
        }


def build_properties(content: PageContent) -> dict[str, Any]:
    props = content.properties
    properties: dict[str, Any] = {
        "title": {"title": rich_text(content.title)},
        "Week Number": {"number": props.week_number},
        "Date Range": {"rich_text": rich_text(props.date_range)},
    }
    if props.tags:
        properties["Tags"] = {"multi_select": [{"name": tag} for tag in props.tags]}
    if props.pr_count is not None:
        properties["PR Count"] = {"number": props.pr_count}
    if props.work_hours is not None:
        properties["Work Hours"] = {"number": props.work_hours}
    if props.ai_enabled is not None:
        properties["AI Enabled"] = {"checkbox": props.ai_enabled}
    return properties


def convert_block(block: Block) -> dict[str, Any]:
    if block.type == "divider":
        return {"object": "block", "type": "divider", "divider": {}}
    return {"object": "block", "type": block.type, block.type: {"rich_text": rich_text(block.content)}}


def rich_text(content: str) -> list[dict[str, Any]]:
    """Split content into rich text objects within Notion's length limit."""
    return [
        {"type": "text", "text": {"content": content[start : start + MAX_RICH_TEXT_CHARS]}}
        for start in range(0, len(content), MAX_RICH_TEXT_CHARS)
    ]
