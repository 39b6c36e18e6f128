"""Failure notification through a Slack-compatible incoming webhook."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import uuid

import httpx

from .utils.logging import log_event, mask_sensitive


@dataclass(frozen=True)
class FailureNotification:
    error_kind: str
    message: str
    execution_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def format_notification_text(notification: FailureNotification) -> str:
    return "\n".join(
        [
            "[reflection-weekly] Run failed",
            f"Execution ID: {notification.execution_id}",
            f"Error type: {notification.error_kind}",
            f"Error: {mask_sensitive(notification.message)}",
            f"Time: {notification.timestamp.isoformat()}",
        ]
    )


def send_failure_notification(
    url: str,
    notification: FailureNotification,
    timeout: float = 5.0,
    logger: logging.Logger | None = None,
    client: httpx.Client | None = None,
) -> bool:
    """Post {"text": ...} to the webhook. Returns False instead of raising."""
    payload = {"text": format_notification_text(notification)}
    try:
        if client is not None:
            resp = client.post(url, json=payload, timeout=timeout)
        else:
            resp = httpx.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        log_event(
            logger,
            "Failure notification could not be sent",
            event="notify_failed",
            error=f"{type(exc).__name__}: {exc}",
            level=logging.WARNING,
        )
        return False
    log_event(logger, "Failure notification sent", event="notify_sent", execution_id=notification.execution_id)
    return True
