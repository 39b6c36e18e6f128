"""Abstract interface for the generative text backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging

import httpx

from ...config import ProviderConfig
from ...core.errors import (
    ClientError,
    ContentFiltered,
    RateLimited,
    ServiceUnavailable,
    TokenLimitExceeded,
    Unauthorized,
)
from ...fetch.base import parse_retry_after, response_message
from ...fetch.retry import RetryPolicy
from ...utils.logging import log_event, truncate_text
from ..prompts import (
    SuggestionInput,
    SummaryInput,
    build_suggestions_prompt,
    build_summary_prompt,
    suggestions_system_prompt,
    summary_system_prompt,
)


def classify_llm_error(exc: Exception, service: str) -> ClientError:
    """Map an httpx failure from a generative backend onto the client taxonomy."""
    if isinstance(exc, ClientError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = response.status_code
        message = response_message(response) or str(exc)
        if status == 401:
            return Unauthorized(message, service)
        if status == 429:
            return RateLimited(message, service, retry_after=parse_retry_after(response))
        if status == 400:
            lowered = message.lower()
            if "content_filter" in lowered or "content_policy" in lowered:
                return ContentFiltered(message, service)
            if "token" in lowered or "length" in lowered:
                return TokenLimitExceeded(message, service)
        return ServiceUnavailable(f"HTTP {status}: {message}", service)
    return ServiceUnavailable(f"{type(exc).__name__}: {exc}", service)


class ReflectionProvider(ABC):
    """Provider interface for the week summary and suggestion requests.

    Subclasses implement `_complete` for their wire format; the public
    methods return the raw model text and raise ClientError on failure.
    """

    name = "base"

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        retry_policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key for provider {cfg.name}")
        self.cfg = cfg
        self.api_key = api_key
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger
        self.http = http

    async def generate_summary(self, data: SummaryInput) -> str:
        prompt = build_summary_prompt(data)
        return await self._complete(
            summary_system_prompt(),
            prompt,
            temperature=0.7,
            max_output_tokens=self.cfg.summary_max_output_tokens,
            operation="generate_summary",
        )

    async def generate_suggestions(self, data: SuggestionInput) -> str:
        prompt = build_suggestions_prompt(data)
        return await self._complete(
            suggestions_system_prompt(),
            prompt,
            temperature=0.7,
            max_output_tokens=self.cfg.suggestions_max_output_tokens,
            operation="generate_suggestions",
            json_output=True,
        )

    @abstractmethod
    async def _complete(
        self,
        system_prompt: str,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        operation: str,
        json_output: bool = False,
    ) -> str:
        """Send one completion request and return the response text."""
        raise NotImplementedError

    def _log_llm_response(self, operation: str, status: str, content: str) -> None:
        log_event(
            self.logger,
            "LLM response",
            event=f"llm_{operation}",
            status=status,
            provider=self.name,
            model=self.cfg.model,
            raw_response=truncate_text(content, 4000),
            level=logging.INFO if status == "ok" else logging.WARNING,
        )
