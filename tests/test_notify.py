"""Tests for the failure notification webhook."""

from __future__ import annotations

from datetime import datetime, timezone
import json

import httpx

from reflection_weekly.notify import FailureNotification, format_notification_text, send_failure_notification

NOTIFICATION = FailureNotification(
    error_kind="data_collection_failed",
    message="github: unauthorized: token ghp_abcdefghij1234 rejected",
    execution_id="abc123def456",
    timestamp=datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc),
)


def test_format_notification_text_masks_secrets():
    text = format_notification_text(NOTIFICATION)

    assert text.splitlines() == [
        "[reflection-weekly] Run failed",
        "Execution ID: abc123def456",
        "Error type: data_collection_failed",
        "Error: github: unauthorized: token [MASKED] rejected",
        "Time: 2024-01-15T09:00:00+00:00",
    ]


def test_send_failure_notification_posts_text():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        sent = send_failure_notification("https://hooks.example.com/T1", NOTIFICATION, client=client)

    assert sent is True
    assert json.loads(seen[0].content) == {"text": format_notification_text(NOTIFICATION)}


def test_send_failure_notification_returns_false_on_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert send_failure_notification("https://hooks.example.com/T1", NOTIFICATION, client=client) is False


def test_notification_defaults():
    notification = FailureNotification(error_kind="config_invalid", message="missing")

    assert len(notification.execution_id) == 12
    assert notification.timestamp.tzinfo is not None
