"""Google Gemini provider for the reflection narrative."""

from __future__ import annotations

from typing import Any

import httpx

from ...core.errors import ServiceUnavailable
from ...fetch.retry import execute_with_retry
from ..tracing import record_span_error, set_span_output, start_span
from .base import ReflectionProvider, classify_llm_error

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"

_SUGGESTIONS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "keep": {"type": "ARRAY", "items": {"type": "STRING"}},
        "problem": {"type": "ARRAY", "items": {"type": "STRING"}},
        "try": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["keep", "problem", "try"],
}


class GeminiProvider(ReflectionProvider):
    """Gemini-backed provider using the generateContent endpoint."""

    name = "gemini"

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
        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        }
        if json_output:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = _SUGGESTIONS_RESPONSE_SCHEMA
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        with start_span(
            f"gemini.{operation}",
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
        base_url = (self.cfg.base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/v1beta/models/{self.cfg.model}:generateContent"
        params = {"key": self.api_key}

        async def _request(client: httpx.AsyncClient) -> dict[str, Any]:
            resp = await client.post(url, params=params, json=payload, timeout=self.cfg.timeout_seconds)
            resp.raise_for_status()
            return resp.json()

        if self.http is not None:
            return await execute_with_retry(
                lambda: _request(self.http),
                policy=self.retry_policy,
                logger=self.logger,
                description="gemini generateContent",
            )
        async with httpx.AsyncClient(timeout=self.cfg.timeout_seconds, trust_env=self.cfg.trust_env) as client:
            return await execute_with_retry(
                lambda: _request(client),
                policy=self.retry_policy,
                logger=self.logger,
                description="gemini generateContent",
            )


def _extract_text(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""

    if not isinstance(parts, list):
        return ""

    answer_chunks: list[str] = []
    all_chunks: list[str] = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        chunk = str(part.get("text") or "")
        if not chunk:
            continue
        all_chunks.append(chunk)
        # Thinking models return their reasoning as separate thought parts.
        if not part.get("thought"):
            answer_chunks.append(chunk)

    return "".join(answer_chunks or all_chunks)
