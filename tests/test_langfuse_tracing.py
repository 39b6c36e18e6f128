"""Tests for Langfuse tracing setup behavior."""

from __future__ import annotations

import sys
import types

from reflection_weekly.config import LangfuseConfig
from reflection_weekly.llm import tracing


class DummySpan:
    def __init__(self):
        self.updates: list[dict] = []

    def update(self, **kwargs):
        self.updates.append(kwargs)


class DummySpanContext:
    def __init__(self, span):
        self.span = span
        self.exited = False

    def __enter__(self):
        return self.span

    def __exit__(self, *exc):
        self.exited = True
        return False


def _reset(monkeypatch):
    monkeypatch.setattr(tracing, "_TRACER", None)
    monkeypatch.setattr(tracing, "_CFG", None)


def test_setup_langfuse_uses_env_keys_and_host(monkeypatch):
    _reset(monkeypatch)
    captured: dict = {}

    class DummyLangfuse:
        def __init__(self, **kwargs):
            captured.update(kwargs)

    fake_module = types.SimpleNamespace(Langfuse=DummyLangfuse)
    monkeypatch.setitem(sys.modules, "langfuse", fake_module)
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-test")
    monkeypatch.setenv("LANGFUSE_HOST", "https://us.cloud.langfuse.com")

    tracing.setup_langfuse(LangfuseConfig(enabled=True, timeout_seconds=45))

    assert captured["public_key"] == "pk-test"
    assert captured["secret_key"] == "sk-test"
    assert captured["host"] == "https://us.cloud.langfuse.com"
    assert captured["timeout"] == 45
    assert isinstance(tracing.get_tracer(), DummyLangfuse)


def test_inline_host_wins_over_env(monkeypatch):
    _reset(monkeypatch)
    captured: dict = {}

    class DummyLangfuse:
        def __init__(self, **kwargs):
            captured.update(kwargs)

    monkeypatch.setitem(sys.modules, "langfuse", types.SimpleNamespace(Langfuse=DummyLangfuse))
    monkeypatch.setenv("LANGFUSE_HOST", "https://ignored.example.com")

    tracing.setup_langfuse(
        LangfuseConfig(enabled=True, public_key="pk", secret_key="sk", host="https://self-hosted.example.com")
    )

    assert captured["host"] == "https://self-hosted.example.com"


def test_setup_langfuse_disables_tracer_when_keys_missing(monkeypatch):
    _reset(monkeypatch)
    monkeypatch.delenv("LANGFUSE_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("LANGFUSE_SECRET_KEY", raising=False)

    tracing.setup_langfuse(LangfuseConfig(enabled=True))

    assert tracing.get_tracer() is None


def test_setup_langfuse_disabled_by_default(monkeypatch):
    _reset(monkeypatch)
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-test")

    tracing.setup_langfuse(LangfuseConfig())

    assert tracing.get_tracer() is None


def test_start_span_without_tracer_yields_none(monkeypatch):
    _reset(monkeypatch)

    with tracing.start_span("openai.generate_summary", kind="llm", input_value="prompt") as span:
        assert span is None
    tracing.set_span_output(span, "ignored")
    tracing.record_span_error(span, RuntimeError("ignored"))


def test_span_payloads_are_masked_and_truncated(monkeypatch):
    _reset(monkeypatch)
    span = DummySpan()
    started: dict = {}

    class DummyTracer:
        def start_as_current_span(self, **kwargs):
            started.update(kwargs)
            return DummySpanContext(span)

    monkeypatch.setattr(tracing, "_TRACER", DummyTracer())
    monkeypatch.setattr(tracing, "_CFG", LangfuseConfig(enabled=True, max_text_chars=40))

    with tracing.start_span(
        "reflection_weekly.run",
        kind="chain",
        input_value="token ghp_abcdefghijklmnop used",
        attributes={"model": "gpt-4o", "skip": None},
    ) as active:
        tracing.set_span_output(active, "x" * 100)
        tracing.record_span_error(active, ValueError("boom"))

    assert started["input"] == "token [MASKED] used"
    assert started["metadata"] == {"model": "gpt-4o", "span.kind": "chain"}
    assert span.updates[0]["output"] == "x" * 40 + "...(truncated)"
    assert span.updates[1] == {"level": "ERROR", "status_message": "boom"}
