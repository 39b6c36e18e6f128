"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

from typing import Any

import httpx

from ...core.errors import ServiceUnavailable
from ...fetch.retry import execute_with_retry
from ..tracing import record_span_error, set_span_output, start_span
from .base import ReflectionProvider, classify_llm_error

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatibleProvider(ReflectionProvider):
    """Chat-completions backend for OpenAI and servers that mimic its API."""

    name = "openai"

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
        payload: dict[str, Any] = {
            "model": self.cfg.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}

        with start_span(
            f"openai.{operation}",
            kind="llm",
            input_value=prompt,
            attributes={"llm.model": self.cfg.model, "llm.provider": self.name},
        ) as span:
            try:
                data = await self._post(payload)
            except (httpx.HTTPError, ValueError) as exc:
                record_span_error(span, exc)
                self._log_llm_response(operation, "provider_error", str(exc))
                raise classify_llm_error(exc, self.name) from exc
            content = _extract_text(data)
            if not content.strip():
                empty = ServiceUnavailable("Empty response from model", self.name)
                record_span_error(span, empty)
                self._log_llm_response(operation, "empty_response", "")
                raise empty
            set_span_output(span, content)
        self._log_llm_response(operation, "ok", content)
        return content

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{(self.cfg.base_url or DEFAULT_BASE_URL).rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async def _request(client: httpx.AsyncClient) -> dict[str, Any]:
            resp = await client.post(url, json=payload, headers=headers, timeout=self.cfg.timeout_seconds)
            resp.raise_for_status()
            return resp.json()

        if self.http is not None:
            return await execute_with_retry(
                lambda: _request(self.http),
                policy=self.retry_policy,
                logger=self.logger,
                description=f"{self.name} chat completion",
            )
        async with httpx.AsyncClient(timeout=self.cfg.timeout_seconds, trust_env=self.cfg.trust_env) as client:
            return await execute_with_retry(
                lambda: _request(client),
                policy=self.retry_policy,
                logger=self.logger,
                description=f"{self.name} chat completion",
            )


def _extract_text(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return str(content or "")
