"""Prompt loading and rendering helpers for LLM providers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


@dataclass(frozen=True)
class SummaryInput:
    """Structured payload for the week summary request.

    Attributes:
        pull_requests: Dicts with title, repository and date (YYYY-MM-DD)
        time_entries: Dicts with description, project_name and duration_hours
        period_start: First date of the period (YYYY-MM-DD)
        period_end: Last date of the period (YYYY-MM-DD)
    """

    pull_requests: list[dict[str, Any]] = field(default_factory=list)
    time_entries: list[dict[str, Any]] = field(default_factory=list)
    period_start: str = ""
    period_end: str = ""

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SuggestionInput:
    week_summary: str
    highlights: list[str] = field(default_factory=list)
    previous_try_items: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def summary_system_prompt() -> str:
    return _load_template("summary_system")


def suggestions_system_prompt() -> str:
    return _load_template("suggestions_system")


def build_summary_prompt(data: SummaryInput) -> str:
    if data.pull_requests:
        pr_lines: list[str] = []
        for repository, prs in _group(data.pull_requests, "repository").items():
            pr_lines.append(f"### {repository}")
            pr_lines.extend(f"- {pr['title']} ({pr['date']})" for pr in prs)
        pr_block = "\n".join(pr_lines)
    else:
        pr_block = "No pull requests in this period."

    if data.time_entries:
        entry_lines: list[str] = []
        for project, entries in _group(data.time_entries, "project_name").items():
            total = sum(e["duration_hours"] for e in entries)
            entry_lines.append(f"### {project}: {total:.1f}h")
            entry_lines.extend(
                f"- {e['description']}: {e['duration_hours']:.1f}h" for e in entries if e["description"]
            )
        entry_block = "\n".join(entry_lines)
    else:
        entry_block = "No tracked time in this period."

    return _render_template(
        "summary",
        period_start=data.period_start,
        period_end=data.period_end,
        pull_requests=pr_block,
        time_entries=entry_block,
    )


def build_suggestions_prompt(data: SuggestionInput) -> str:
    highlights = "\n".join(f"- {h}" for h in data.highlights) or "- (none)"
    previous_try = ""
    if data.previous_try_items:
        items = "\n".join(f"- {item}" for item in data.previous_try_items)
        previous_try = f"\n## Try items from last week\n{items}\n"
    return _render_template(
        "suggestions",
        week_summary=data.week_summary,
        highlights=highlights,
        previous_try=previous_try,
    )


def _group(items: list[dict[str, Any]], key: str) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        grouped.setdefault(item.get(key) or "Other", []).append(item)
    return grouped
