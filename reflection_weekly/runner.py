"""
Main pipeline orchestration for a weekly reflection.

A run moves strictly through four stages:
1. config: validate required settings (no network access before this passes)
2. data-collection: read GitHub and Toggl concurrently and bucket the results
3. analysis: build the narrative (never fatal, falls back to templates)
4. publish: create the Notion page, or render Markdown for a dry run,
   or persist Markdown locally when Notion rejects the page

Only an invalid configuration or the failure of every data source stops
a run. Every other degradation ends up as a warning on the result.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .analyzers.activity_analyzer import ActivityAnalyzer
from .analyzers.integrator import DataIntegrator, SourceConfig
from .config import AppConfig, get_api_key, get_fallback_dir, validate_config
from .core.errors import (
    AllSourcesFailedError,
    ConfigInvalidError,
    DataCollectionFailedError,
    PublishError,
)
from .core.types import (
    DateRange,
    ExecutionSummary,
    IntegratedData,
    NarrativeResult,
    OutputType,
    ProgressCallback,
    ProgressEvent,
    ReflectionResult,
)
from .fetch.github import GitHubReader
from .fetch.retry import RetryPolicy
from .fetch.toggl import ProjectNameCache, TogglReader
from .llm.providers import create_provider
from .llm.tracing import record_span_error, set_span_output, start_span
from .output.fallback import save_markdown_fallback
from .output.notion import NotionClient
from .output.page_builder import PublishOptions, ReflectionPageBuilder, build_markdown
from .utils.logging import get_logger, log_event

FALLBACK_WARNING = "Publishing to Notion failed, falling back to Markdown: {message}"


class ReflectionRunner:
    """Run one reflection through the config, collection, analysis and publish stages."""

    def __init__(
        self,
        cfg: AppConfig,
        integrator: DataIntegrator,
        analyzer: ActivityAnalyzer,
        page_builder: ReflectionPageBuilder,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg
        self.integrator = integrator
        self.analyzer = analyzer
        self.page_builder = page_builder
        self.logger = logger

    async def run(
        self,
        date_range: DateRange,
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
        previous_try_items: list[str] | None = None,
    ) -> ReflectionResult:
        """Execute the pipeline.

        Raises:
            ConfigInvalidError: When required settings are missing
            DataCollectionFailedError: When both data sources failed
        """
        with start_span(
            "reflection_weekly.run",
            kind="chain",
            input_value={
                "start": date_range.start_key,
                "end": date_range.end_key,
                "dry_run": dry_run,
            },
        ) as run_span:
            log_event(
                self.logger,
                "Reflection start",
                event="reflection_start",
                start=date_range.start_key,
                end=date_range.end_key,
                dry_run=dry_run,
            )
            try:
                self._check_config(on_progress)
                data = await self._collect(date_range, on_progress)
            except (ConfigInvalidError, DataCollectionFailedError) as exc:
                record_span_error(run_span, exc)
                raise

            self._emit(on_progress, "analysis", "start")
            narrative = await self.analyzer.analyze(data, previous_try_items)
            self._emit(on_progress, "analysis", "complete")

            result = await self._publish(data, narrative, dry_run, on_progress, previous_try_items)
            log_event(
                self.logger,
                "Reflection complete",
                event="reflection_complete",
                output_type=result.summary.output_type,
                warnings=len(result.warnings),
                ai_enabled=result.summary.ai_enabled,
            )
            set_span_output(
                run_span,
                {
                    "output_type": result.summary.output_type,
                    "remote_url": result.remote_url,
                    "local_path": result.local_path,
                },
            )
            return result

    def _check_config(self, on_progress: ProgressCallback | None) -> None:
        self._emit(on_progress, "config", "start")
        missing = validate_config(self.cfg)
        if missing:
            error = ConfigInvalidError(missing)
            self._emit(on_progress, "config", "error", str(error))
            log_event(
                self.logger,
                "Configuration invalid",
                event="config_invalid",
                missing_fields=missing,
                level=logging.ERROR,
            )
            raise error
        self._emit(on_progress, "config", "complete")

    async def _collect(self, date_range: DateRange, on_progress: ProgressCallback | None) -> IntegratedData:
        self._emit(on_progress, "data-collection", "start")
        source_config = SourceConfig(
            repositories=list(self.cfg.github.repositories),
            workspace_id=self.cfg.toggl.workspace_id,
        )
        try:
            data = await self.integrator.collect_and_integrate(date_range, source_config)
        except AllSourcesFailedError as exc:
            message = "; ".join(f"{e.source}: {e.message}" for e in exc.errors)
            self._emit(on_progress, "data-collection", "error", "Data collection failed")
            raise DataCollectionFailedError("all", message) from exc
        self._emit(on_progress, "data-collection", "complete")
        return data

    async def _publish(
        self,
        data: IntegratedData,
        narrative: NarrativeResult,
        dry_run: bool,
        on_progress: ProgressCallback | None,
        previous_try_items: list[str] | None,
    ) -> ReflectionResult:
        self._emit(on_progress, "publish", "start")
        warnings = [warning.message for warning in data.warnings]
        options = PublishOptions(
            dry_run=dry_run,
            database_id=self.cfg.notion.database_id or "",
            previous_try_items=previous_try_items,
        )

        try:
            published = await self.page_builder.build_and_publish(narrative, data, options)
        except PublishError as exc:
            warnings.append(FALLBACK_WARNING.format(message=exc.message))
            log_event(
                self.logger,
                "Falling back to local Markdown",
                event="publish_fallback",
                error=exc.message,
                level=logging.WARNING,
            )
            markdown = build_markdown(narrative, data, previous_try_items)
            local_path = save_markdown_fallback(
                markdown,
                data.date_range,
                get_fallback_dir(self.cfg.output),
                logger=self.logger,
            )
            self._emit(on_progress, "publish", "complete", f"Saved Markdown to {local_path}")
            return ReflectionResult(
                summary=_summary(data, narrative, "markdown"),
                warnings=tuple(warnings),
                local_path=local_path,
            )

        if dry_run:
            preview = build_markdown(narrative, data, previous_try_items)
            self._emit(on_progress, "publish", "complete", "Dry run, nothing published")
            return ReflectionResult(
                summary=_summary(data, narrative, "preview"),
                warnings=tuple(warnings),
                preview=preview,
            )

        self._emit(on_progress, "publish", "complete", published.remote_url)
        return ReflectionResult(
            summary=_summary(data, narrative, "notion"),
            warnings=tuple(warnings),
            remote_url=published.remote_url,
        )

    def _emit(
        self,
        on_progress: ProgressCallback | None,
        stage: Any,
        status: Any,
        message: str | None = None,
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(ProgressEvent(stage=stage, status=status, message=message))
        except Exception as exc:  # noqa: BLE001
            # A broken observer must never affect the run.
            log_event(
                self.logger,
                "Progress callback failed",
                event="progress_callback_failed",
                stage=stage,
                error=f"{type(exc).__name__}: {exc}",
                level=logging.WARNING,
            )


def _summary(data: IntegratedData, narrative: NarrativeResult, output_type: OutputType) -> ExecutionSummary:
    return ExecutionSummary(
        date_range=data.date_range,
        record_count=len(data.records),
        time_entry_count=len(data.time_entries),
        total_work_hours=data.total_work_hours,
        ai_enabled=narrative.ai_enabled,
        output_type=output_type,
    )


async def run_reflection(
    cfg: AppConfig,
    date_range: DateRange,
    dry_run: bool = False,
    on_progress: ProgressCallback | None = None,
    previous_try_items: list[str] | None = None,
    logger: logging.Logger | None = None,
) -> ReflectionResult:
    """Build every client from cfg and run one reflection.

    One httpx.AsyncClient is shared per service for the whole run, and
    the Toggl project-name cache lives only as long as this call.
    """
    logger = logger or get_logger()
    policy = RetryPolicy.from_config(cfg.retry)

    async with httpx.AsyncClient(timeout=cfg.github.timeout_seconds) as github_http, httpx.AsyncClient(
        timeout=cfg.toggl.timeout_seconds
    ) as toggl_http, httpx.AsyncClient(timeout=cfg.notion.timeout_seconds) as notion_http, httpx.AsyncClient(
        timeout=cfg.provider.timeout_seconds, trust_env=cfg.provider.trust_env
    ) as llm_http:
        github = GitHubReader(
            token=cfg.github.token or "",
            http=github_http,
            base_url=cfg.github.base_url,
            per_page=cfg.github.per_page,
            timeout=cfg.github.timeout_seconds,
            retry_policy=policy,
            logger=logger,
        )
        toggl = TogglReader(
            api_token=cfg.toggl.api_token or "",
            http=toggl_http,
            base_url=cfg.toggl.base_url,
            timeout=cfg.toggl.timeout_seconds,
            retry_policy=policy,
            project_cache=ProjectNameCache(),
            logger=logger,
        )
        notion = NotionClient(
            token=cfg.notion.token or "",
            http=notion_http,
            base_url=cfg.notion.base_url,
            notion_version=cfg.notion.version,
            timeout=cfg.notion.timeout_seconds,
            min_interval=cfg.notion.min_interval_seconds,
            retry_policy=policy,
            logger=logger,
        )
        # A missing key is reported by config validation before analysis runs.
        provider = None
        if get_api_key(cfg.provider):
            provider = create_provider(cfg.provider, retry_policy=policy, logger=logger, http=llm_http)

        runner = ReflectionRunner(
            cfg,
            integrator=DataIntegrator(github, toggl, logger),
            analyzer=ActivityAnalyzer(provider, logger),
            page_builder=ReflectionPageBuilder(notion, logger),
            logger=logger,
        )
        return await runner.run(
            date_range,
            dry_run=dry_run,
            on_progress=on_progress,
            previous_try_items=previous_try_items,
        )
