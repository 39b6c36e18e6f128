"""
Error taxonomy shared by the outbound clients and the pipeline.

Client errors are raised by the GitHub, Toggl, LLM and Notion clients
after classifying an httpx failure. Pipeline errors are the only
conditions that stop a reflection run.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


class ClientError(Exception):
    """Base class for classified failures of an outbound service."""

    kind = "client_error"

    def __init__(self, message: str, service: str | None = None):
        super().__init__(message)
        self.message = message
        self.service = service

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class Unauthorized(ClientError):
    kind = "unauthorized"


class RateLimited(ClientError):
    kind = "rate_limited"

    def __init__(
        self,
        message: str,
        service: str | None = None,
        reset_at: datetime | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, service)
        self.reset_at = reset_at
        self.retry_after = retry_after


class NotFound(ClientError):
    kind = "not_found"

    def __init__(self, resource: str, service: str | None = None):
        super().__init__(f"{resource} not found", service)
        self.resource = resource


class ValidationError(ClientError):
    kind = "validation_error"


class ContentFiltered(ClientError):
    kind = "content_filtered"


class TokenLimitExceeded(ClientError):
    kind = "token_limit_exceeded"


class ServiceUnavailable(ClientError):
    kind = "service_unavailable"


class NetworkError(ClientError):
    kind = "network_error"


@dataclass(frozen=True)
class SourceError:
    source: str
    message: str


class AllSourcesFailedError(Exception):
    """Raised by the integrator when every data source failed."""

    def __init__(self, errors: list[SourceError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.source}: {e.message}" for e in self.errors))


class PublishError(Exception):
    """Raised by the page builder when the document store rejected the page."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReflectionError(Exception):
    """Base class for fatal pipeline errors."""

    kind = "reflection_error"


class ConfigInvalidError(ReflectionError):
    kind = "config_invalid"

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = list(missing_fields)
        super().__init__("Missing required configuration: " + ", ".join(self.missing_fields))


class DataCollectionFailedError(ReflectionError):
    kind = "data_collection_failed"

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"Data collection failed ({source}): {message}")
