"""Shared helpers for the source readers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, TypeVar

import httpx

T = TypeVar("T")


@dataclass
class SourceResult(Generic[T]):
    """Result of reading one data source.

    Either items holds the fetched records (success, possibly empty) or
    error holds a message describing why the whole source failed.

    Attributes:
        items: Records fetched from the source
        error: Failure message, or None on success
    """

    items: list[T] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as RFC 3339 in UTC."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def response_message(response: httpx.Response) -> str:
    """Pull a human-readable error message out of an API error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
        if isinstance(error, str) and error:
            return error
    return response.text[:200]


def parse_retry_after(response: httpx.Response, default: int = 60) -> int:
    value = response.headers.get("retry-after")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default
