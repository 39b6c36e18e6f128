"""Local Markdown fallback used when publishing to Notion fails."""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.types import DateRange
from ..utils.logging import log_event


def fallback_filename(date_range: DateRange) -> str:
    return f"reflection-{date_range.start_key}-{date_range.end_key}.md"


def save_markdown_fallback(
    content: str,
    date_range: DateRange,
    output_dir: str | Path,
    logger: logging.Logger | None = None,
) -> str:
    """Write content to <output_dir>/reflection-<start>-<end>.md.

    The intended path is returned even when the write fails, so the
    caller can still tell the user where the file should have been.
    """
    directory = Path(output_dir).expanduser()
    path = directory / fallback_filename(date_range)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        log_event(
            logger,
            "Could not write Markdown fallback",
            event="fallback_write_failed",
            path=str(path),
            error=str(exc),
            level=logging.ERROR,
        )
        return str(path)
    log_event(logger, "Markdown fallback written", event="fallback_written", path=str(path))
    return str(path)
