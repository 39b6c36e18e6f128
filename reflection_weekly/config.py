"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Secrets are usually supplied through
environment variables (or a .env file loaded by the CLI). Configuration
sections:
- GitHubConfig: Pull request source settings
- TogglConfig: Time entry source settings
- NotionConfig: Document store settings
- ProviderConfig: LLM provider settings
- RetryConfig: Shared retry/backoff policy for every HTTP client
- ReflectionConfig: Reporting period defaults
- OutputConfig: Local Markdown fallback location
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- NotifyConfig: Failure notification webhook
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
import tempfile
from typing import Any

import yaml


@dataclass
class GitHubConfig:
    """Configuration for the GitHub pull request source.

    Attributes:
        token: Personal access token (falls back to GITHUB_TOKEN)
        repositories: Repositories to scan, as owner/repo (falls back to GITHUB_REPOSITORIES)
        base_url: REST API root
        per_page: Page size for the pulls endpoint
        timeout_seconds: Per-request timeout
    """

    token: str | None = None
    repositories: list[str] = field(default_factory=list)
    base_url: str = "https://api.github.com"
    per_page: int = 100
    timeout_seconds: float = 30.0


@dataclass
class TogglConfig:
    """Configuration for the Toggl Track time entry source.

    Attributes:
        api_token: API token (falls back to TOGGL_API_TOKEN)
        workspace_id: Optional workspace used to resolve project names
        base_url: API v9 root
        timeout_seconds: Per-request timeout
    """

    api_token: str | None = None
    workspace_id: int | None = None
    base_url: str = "https://api.track.toggl.com/api/v9"
    timeout_seconds: float = 30.0


@dataclass
class NotionConfig:
    """Configuration for the Notion document store.

    Attributes:
        token: Integration token (falls back to NOTION_TOKEN)
        database_id: Target database (falls back to NOTION_DATABASE_ID)
        base_url: API root
        version: Notion-Version header value
        timeout_seconds: Per-request timeout
        min_interval_seconds: Minimum spacing between requests (Notion allows ~3 req/s)
    """

    token: str | None = None
    database_id: str | None = None
    base_url: str = "https://api.notion.com/v1"
    version: str = "2022-06-28"
    timeout_seconds: float = 30.0
    min_interval_seconds: float = 0.34


@dataclass
class ProviderConfig:
    """Configuration for pluggable LLM providers."""

    name: str = "openai"
    model: str = "gpt-4o"
    api_key_env: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    trust_env: bool = True
    timeout_seconds: float = 60.0
    summary_max_output_tokens: int = 1000
    suggestions_max_output_tokens: int = 800


@dataclass
class RetryConfig:
    """Retry policy shared by every outbound HTTP client.

    Attributes:
        max_retries: Attempts allowed after the first one
        base_delay_seconds: Backoff base; retry n waits base * 2**n
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0


@dataclass
class ReflectionConfig:
    default_period_days: int = 7


@dataclass
class OutputConfig:
    """Configuration for local output.

    Attributes:
        fallback_dir: Directory for Markdown written when publishing fails
            (defaults to <system temp>/reflection-weekly)
    """

    fallback_dir: str | None = None


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        directory: Directory for the log file
        filename: Name of the main log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    directory: str = "~/.reflection-weekly/logs"
    filename: str = "execution.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        timeout_seconds: Timeout for Langfuse ingestion requests
        mask_secrets: Whether to mask secrets in prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    timeout_seconds: int = 30
    mask_secrets: bool = True
    max_text_chars: int = 20000


@dataclass
class NotifyConfig:
    webhook_url: str | None = None
    timeout_seconds: float = 5.0


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    toggl: TogglConfig = field(default_factory=TogglConfig)
    notion: NotionConfig = field(default_factory=NotionConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    reflection: ReflectionConfig = field(default_factory=ReflectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)


DEFAULT_CONFIG = AppConfig()

_SECTIONS: dict[str, type] = {
    "github": GitHubConfig,
    "toggl": TogglConfig,
    "notion": NotionConfig,
    "provider": ProviderConfig,
    "retry": RetryConfig,
    "reflection": ReflectionConfig,
    "output": OutputConfig,
    "logging": LoggingConfig,
    "langfuse": LangfuseConfig,
    "notify": NotifyConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults.

    Values missing from the file are taken from the environment
    afterwards (see _apply_env).
    """
    if not path:
        return _apply_env(_fromdict(_asdict(DEFAULT_CONFIG)))

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _apply_env(_merge_config(DEFAULT_CONFIG, raw))


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            known = data[key]
            known.update({k: v for k, v in value.items() if k in known})
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    data: dict[str, Any] = {}
    for name in _SECTIONS:
        section = getattr(cfg, name)
        values = dict(vars(section))
        for key, value in values.items():
            if isinstance(value, list):
                values[key] = list(value)
        data[name] = values
    return data


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    sections = {}
    for name, section_cls in _SECTIONS.items():
        sections[name] = section_cls(**(data.get(name) or {}))
    cfg = AppConfig(**sections)
    cfg.github.repositories = _parse_repositories(cfg.github.repositories)
    return cfg


def _apply_env(cfg: AppConfig) -> AppConfig:
    """Fill values left empty by the YAML file from environment variables."""
    cfg.github.token = cfg.github.token or os.getenv("GITHUB_TOKEN")
    if not cfg.github.repositories:
        cfg.github.repositories = _parse_repositories(os.getenv("GITHUB_REPOSITORIES"))
    cfg.toggl.api_token = cfg.toggl.api_token or os.getenv("TOGGL_API_TOKEN")
    if cfg.toggl.workspace_id is None:
        cfg.toggl.workspace_id = _parse_int(os.getenv("TOGGL_WORKSPACE_ID"))
    cfg.notion.token = cfg.notion.token or os.getenv("NOTION_TOKEN")
    cfg.notion.database_id = cfg.notion.database_id or os.getenv("NOTION_DATABASE_ID")
    model = os.getenv("OPENAI_MODEL")
    if model and cfg.provider.name.lower() != "gemini":
        cfg.provider.model = model
    period = _parse_int(os.getenv("REFLECTION_DEFAULT_PERIOD_DAYS"))
    if period:
        cfg.reflection.default_period_days = period
    cfg.notify.webhook_url = cfg.notify.webhook_url or os.getenv("REFLECTION_WEBHOOK_URL")
    return cfg


def validate_config(cfg: AppConfig) -> list[str]:
    """Return the names of required fields that are missing.

    An empty list means the configuration can run a reflection.
    """
    missing: list[str] = []
    if not cfg.github.token:
        missing.append("github.token")
    if not cfg.github.repositories:
        missing.append("github.repositories")
    if not cfg.toggl.api_token:
        missing.append("toggl.api_token")
    if not cfg.notion.token:
        missing.append("notion.token")
    if not cfg.notion.database_id:
        missing.append("notion.database_id")
    if not get_api_key(cfg.provider):
        missing.append("provider.api_key")
    return missing


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        return os.getenv(cfg.api_key_env)
    defaults = {
        "gemini": "GOOGLE_API_KEY",
        "openai": "OPENAI_API_KEY",
        "openai_compatible": "OPENAI_API_KEY",
        "openai-compatible": "OPENAI_API_KEY",
    }
    env_name = defaults.get(cfg.name.lower(), "OPENAI_API_KEY")
    return os.getenv(env_name)


def get_fallback_dir(cfg: OutputConfig) -> str:
    """Get the Markdown fallback directory, defaulting to the system temp dir."""
    if cfg.fallback_dir:
        return os.path.expanduser(cfg.fallback_dir)
    return os.path.join(tempfile.gettempdir(), "reflection-weekly")


def get_langfuse_host(cfg: LangfuseConfig) -> str | None:
    """Get Langfuse host from inline config or environment variable."""
    if cfg.host:
        return cfg.host
    return os.getenv("LANGFUSE_HOST")


def mask_secret(token: str | None) -> str:
    """Mask a token for display, keeping a short recognizable prefix."""
    if not token:
        return ""
    if len(token) <= 6:
        return "***"
    # Keep prefixes such as "ghp_" or "sk-" readable.
    prefix_length = 4 if ("_" in token or "-" in token) else 3
    return token[:prefix_length] + "***"


def masked_config(cfg: AppConfig) -> dict[str, Any]:
    """Return the configuration as a dict with every secret masked."""
    data = _asdict(cfg)
    data["github"]["token"] = mask_secret(cfg.github.token)
    data["toggl"]["api_token"] = mask_secret(cfg.toggl.api_token)
    data["notion"]["token"] = mask_secret(cfg.notion.token)
    data["provider"]["api_key"] = mask_secret(get_api_key(cfg.provider))
    data["langfuse"]["secret_key"] = mask_secret(cfg.langfuse.secret_key)
    return data


def _parse_repositories(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(repo).strip() for repo in value if str(repo).strip()]


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
