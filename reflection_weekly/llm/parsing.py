"""Parse Keep/Problem/Try suggestions out of model output."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Union

from ..core.types import Suggestions


@dataclass(frozen=True)
class ParsedSuggestions:
    suggestions: Suggestions


@dataclass(frozen=True)
class MalformedSuggestions:
    reason: str
    raw: str = ""


SuggestionParseResult = Union[ParsedSuggestions, MalformedSuggestions]


def parse_suggestions(content: str) -> SuggestionParseResult:
    """Parse a JSON object with keep/problem/try lists.

    The object may be wrapped in a ```json fence or surrounded by prose.
    Non-string list items are dropped and a missing key yields no items.
    """
    try:
        obj = parse_json_response(content)
    except json.JSONDecodeError as exc:
        return MalformedSuggestions(reason=f"invalid JSON: {exc.msg}", raw=content)
    if not isinstance(obj, dict):
        return MalformedSuggestions(reason="response is not a JSON object", raw=content)

    return ParsedSuggestions(
        Suggestions(
            keep=_string_items(obj.get("keep")),
            problem=_string_items(obj.get("problem")),
            try_items=_string_items(obj.get("try", obj.get("try_items"))),
        )
    )


def parse_json_response(content: str) -> Any:
    if not content or not content.strip():
        raise json.JSONDecodeError("Empty content", content or "", 0)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass
    fence = _extract_fenced_json(content)
    if fence:
        try:
            return json.loads(fence)
        except json.JSONDecodeError:
            pass
    return json.loads(_extract_brace_snippet(content))


def _string_items(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def _extract_brace_snippet(content: str) -> str:
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return content[start : end + 1]


def _extract_fenced_json(content: str) -> str | None:
    lines = content.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        if line.strip().startswith("```"):
            start_idx = idx + 1
            break
    if start_idx is None:
        return None
    for idx in range(start_idx, len(lines)):
        if lines[idx].strip().startswith("```"):
            snippet = "\n".join(lines[start_idx:idx]).strip()
            return snippet or None
    return None
