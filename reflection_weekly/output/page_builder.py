"""
Reflection page assembly for Notion and Markdown.

The block sequence is built once and rendered either as a Notion page
or as Markdown, so the dry-run preview and the local fallback file
always follow the same section order as the published page.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Protocol

from ..core.errors import ClientError, PublishError
from ..core.types import IntegratedData, NarrativeResult, PublishResult, date_key
from ..utils.logging import log_event
from .notion import Block, NotionPage, PageContent, PageProperties

PAGE_TAGS = ("weekly-reflection", "auto-generated")

KEEP_HEADING = "Keep (what to continue)"
PROBLEM_HEADING = "Problem (what got in the way)"
TRY_HEADING = "Try (what to attempt next week)"
KEEP_PLACEHOLDER = "Write what you want to keep doing here. The items below are AI suggestions."
PROBLEM_PLACEHOLDER = "Write the problems you ran into here. The items below are AI suggestions."
TRY_PLACEHOLDER = "Write what you will try next week here. The items below are AI suggestions."


class PageStore(Protocol):
    async def create_page(self, content: PageContent, database_id: str) -> NotionPage: ...


@dataclass
class PublishOptions:
    """Options for one publish attempt.

    Attributes:
        dry_run: Skip the Notion call and only compute the title
        database_id: Target Notion database
        previous_try_items: Last week's Try items shown for reference
    """

    dry_run: bool = False
    database_id: str = ""
    previous_try_items: list[str] | None = None


class ReflectionPageBuilder:
    """Build reflection page content and publish it to Notion."""

    def __init__(self, store: PageStore | None, logger: logging.Logger | None = None):
        self.store = store
        self.logger = logger

    async def build_and_publish(
        self,
        narrative: NarrativeResult,
        data: IntegratedData,
        options: PublishOptions,
    ) -> PublishResult:
        """Create the reflection page.

        Returns only the title in dry-run mode. The caller owns the
        Markdown fallback; this method only reports the failure.

        Raises:
            PublishError: When Notion rejects the page
        """
        title = generate_title(data)
        content = build_page_content(title, narrative, data, options.previous_try_items)

        if options.dry_run:
            return PublishResult(title=title)
        if self.store is None:
            raise PublishError("No Notion client configured")

        try:
            page = await self.store.create_page(content, options.database_id)
        except ClientError as exc:
            log_event(
                self.logger,
                "Notion page creation failed",
                event="publish_failed",
                error=str(exc),
                level=logging.ERROR,
            )
            raise PublishError(f"Failed to create Notion page: {exc}") from exc

        return PublishResult(title=title, remote_url=page.url, page_id=page.id)


def week_number(day: date) -> int:
    """ISO 8601 week number (weeks start Monday, week 1 holds the first Thursday)."""
    return day.isocalendar()[1]


def generate_title(data: IntegratedData) -> str:
    start_key = data.date_range.start_key
    number = week_number(date.fromisoformat(start_key))
    return f"Week {number}: {start_key} - {data.date_range.end_key}"


def build_page_content(
    title: str,
    narrative: NarrativeResult,
    data: IntegratedData,
    previous_try_items: list[str] | None = None,
) -> PageContent:
    properties = PageProperties(
        week_number=week_number(date.fromisoformat(data.date_range.start_key)),
        date_range=f"{data.date_range.start_key} - {data.date_range.end_key}",
        tags=PAGE_TAGS,
        pr_count=len(data.records),
        work_hours=round(data.total_work_hours, 1),
        ai_enabled=narrative.ai_enabled,
    )
    return PageContent(
        title=title,
        properties=properties,
        blocks=tuple(build_blocks(narrative, data, previous_try_items)),
    )


def build_blocks(
    narrative: NarrativeResult,
    data: IntegratedData,
    previous_try_items: list[str] | None = None,
) -> list[Block]:
    blocks = [
        Block("heading_1", "Week Summary"),
        Block("paragraph", narrative.week_summary),
        Block("divider"),
    ]

    if narrative.insights:
        blocks.append(Block("heading_2", "Insights"))
        blocks.extend(Block("bulleted_list_item", insight) for insight in narrative.insights)
        blocks.append(Block("divider"))

    blocks.append(Block("heading_1", "GitHub Pull Requests"))
    if data.records:
        by_repository: dict[str, list] = {}
        for record in data.records:
            by_repository.setdefault(record.repository, []).append(record)
        for repository, records in by_repository.items():
            blocks.append(Block("heading_3", repository))
            for record in records:
                blocks.append(
                    Block(
                        "bulleted_list_item",
                        f"#{record.number} {record.title} ({date_key(record.created_at)}) "
                        f"[+{record.additions}/-{record.deletions}]",
                    )
                )
    else:
        blocks.append(Block("paragraph", "No pull requests in this period."))
    blocks.append(Block("divider"))

    blocks.append(Block("heading_1", "Toggl Work Time"))
    if data.time_entries:
        by_project: dict[str, list] = {}
        for entry in data.time_entries:
            by_project.setdefault(entry.project_name, []).append(entry)
        for project, entries in by_project.items():
            total = sum(entry.hours for entry in entries)
            blocks.append(Block("heading_3", f"{project} ({total:.1f}h)"))
            for entry in entries:
                description = entry.description or "(no description)"
                blocks.append(Block("bulleted_list_item", f"{description}: {entry.hours:.1f}h"))
    else:
        blocks.append(Block("paragraph", "No time entries in this period."))
    blocks.append(Block("divider"))

    if previous_try_items:
        blocks.append(Block("heading_2", "Last Week's Try Items (reference)"))
        blocks.extend(Block("bulleted_list_item", item) for item in previous_try_items)
        blocks.append(Block("divider"))

    suggestions = narrative.suggestions
    sections = (
        (KEEP_HEADING, KEEP_PLACEHOLDER, suggestions.keep),
        (PROBLEM_HEADING, PROBLEM_PLACEHOLDER, suggestions.problem),
        (TRY_HEADING, TRY_PLACEHOLDER, suggestions.try_items),
    )
    for index, (heading, placeholder, items) in enumerate(sections):
        if index:
            blocks.append(Block("divider"))
        blocks.append(Block("heading_1", heading))
        blocks.append(Block("paragraph", placeholder))
        blocks.extend(Block("bulleted_list_item", item) for item in items)

    if narrative.daily_summaries:
        blocks.append(Block("divider"))
        blocks.append(Block("heading_1", "Daily Details"))
        for daily in narrative.daily_summaries:
            blocks.append(Block("heading_3", daily.date))
            blocks.append(Block("paragraph", daily.summary))
            blocks.extend(Block("bulleted_list_item", highlight) for highlight in daily.highlights)

    return blocks


def build_markdown(
    narrative: NarrativeResult,
    data: IntegratedData,
    previous_try_items: list[str] | None = None,
) -> str:
    """Render the reflection page as Markdown."""
    lines = [f"# {generate_title(data)}", ""]
    lines.extend(render_markdown_blocks(build_blocks(narrative, data, previous_try_items)))
    return "\n".join(lines).rstrip() + "\n"


def render_markdown_blocks(blocks: list[Block]) -> list[str]:
    lines: list[str] = []
    previous = None
    for block in blocks:
        # Keep list items of one list together.
        if previous == "bulleted_list_item" and block.type != "bulleted_list_item":
            lines.append("")
        if block.type == "heading_1" or block.type == "heading_2":
            lines.extend([f"## {block.content}", ""])
        elif block.type == "heading_3":
            lines.extend([f"### {block.content}", ""])
        elif block.type == "paragraph":
            lines.extend([block.content, ""])
        elif block.type == "bulleted_list_item":
            lines.append(f"- {block.content}")
        elif block.type == "divider":
            lines.extend(["---", ""])
        previous = block.type
    if previous == "bulleted_list_item":
        lines.append("")
    return lines
