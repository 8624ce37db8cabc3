"""Task analysis: resolve a task's URLs, prompt the LLM, parse the reply."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from smart_extract.costs import estimate_batch_cost
from smart_extract.exceptions import LLMAuthError, LLMError
from smart_extract.links import dedupe_links, detect_tool_links, search_links
from smart_extract.llm import LLMClient
from smart_extract.logging import task_logging_context
from smart_extract.models import BatchSummary, ResearchLink, TaskOutcome
from smart_extract.orchestrator import ExtractionOrchestrator
from smart_extract.parser import parse_task_analysis
from smart_extract.prompts import build_task_prompt, is_question

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from smart_extract.config import Settings
    from smart_extract.models import CacheStats, ExtractedTask, TaskAnalysis

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

MAX_RESEARCH_LINKS = 8
SEARCH_QUERIES_USED = 3
LINKS_PER_QUERY = 2


class TaskAnalyzer:
    """Analyzes parsed tasks one at a time.

    Attributes:
        settings: Application settings.
        llm: Client used for the analysis call.
        orchestrator: Resolves task URLs to summaries.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        llm: LLMClient | None = None,
        orchestrator: ExtractionOrchestrator | None = None,
    ) -> None:
        self.settings = settings
        self.llm = llm or LLMClient(settings.llm)
        self._owns_orchestrator = orchestrator is None
        self.orchestrator = orchestrator or ExtractionOrchestrator(settings, self.llm)

    async def __aenter__(self) -> TaskAnalyzer:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_orchestrator:
            await self.orchestrator.aclose()

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    async def _resolve_urls(self, task: ExtractedTask) -> dict[str, str]:
        summaries: dict[str, str] = {}
        for ref in task.urls:
            summary = await self.orchestrator.summarize_url(ref.url, context=task.clean_text)
            if summary:
                summaries[ref.url] = summary
        return summaries

    async def _analyze(self, task: ExtractedTask) -> tuple[TaskAnalysis, dict[str, str]]:
        summaries = await self._resolve_urls(task)
        url_context = "\n\n".join(summaries.values()) or None

        analysis_type = "question" if is_question(task.clean_text) else "task"
        prompt = build_task_prompt(task, url_context)
        raw = await self.llm.complete(prompt, require_json=True)
        analysis = parse_task_analysis(raw, analysis_type)
        logger.info(
            "task_analyzed",
            analysis_type=analysis_type,
            urls=len(task.urls),
            urls_resolved=len(summaries),
        )
        return analysis, summaries

    async def analyze(self, task: ExtractedTask) -> TaskAnalysis:
        """Analyze one task.

        URLs are resolved sequentially. URLs that yield nothing are left out
        of the prompt.

        Args:
            task: The parsed task.

        Returns:
            The parsed analysis.

        Raises:
            LLMError: If the analysis call fails.
        """
        analysis, _ = await self._analyze(task)
        return analysis

    def research_links(
        self,
        task: ExtractedTask,
        analysis: TaskAnalysis,
        summaries: dict[str, str] | None = None,
    ) -> list[ResearchLink]:
        """Collect reference, search and tool links for an analyzed task.

        Args:
            task: The parsed task.
            analysis: Its analysis.
            summaries: URL summaries to attach to the task's own references.

        Returns:
            Up to ``MAX_RESEARCH_LINKS`` links, unique by URL.
        """
        summaries = summaries or {}
        links = [
            ResearchLink(
                url=ref.url,
                title=ref.title,
                kind="reference",
                summary=summaries.get(ref.url),
            )
            for ref in task.urls
        ]
        for query in analysis.suggested_search_queries[:SEARCH_QUERIES_USED]:
            links.extend(search_links(query, limit=LINKS_PER_QUERY))
        links.extend(detect_tool_links(f"{task.clean_text} {analysis.description}"))
        return dedupe_links(links, MAX_RESEARCH_LINKS)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def analyze_batch(
        self,
        tasks: Sequence[ExtractedTask],
        *,
        hashtags_only: bool = True,
        limit: int | None = None,
    ) -> BatchSummary:
        """Analyze tasks in order, recording failures per task.

        Args:
            tasks: Parsed tasks.
            hashtags_only: Skip tasks without hashtags.
            limit: Analyze at most this many tasks.

        Returns:
            Outcomes for every selected task and the estimated cost.

        Raises:
            LLMAuthError: On the first authentication failure.
        """
        selected = [t for t in tasks if t.has_hashtags] if hashtags_only else list(tasks)
        if limit is not None:
            selected = selected[: max(limit, 0)]

        summary = BatchSummary(
            total_tasks=len(selected),
            estimated_cost_usd=estimate_batch_cost(len(selected), self.settings.llm.model),
        )
        logger.info(
            "batch_start",
            tasks=len(selected),
            skipped=len(tasks) - len(selected),
            estimated_cost_usd=round(summary.estimated_cost_usd, 6),
        )

        for index, task in enumerate(selected):
            with task_logging_context(task, index) as log:
                try:
                    analysis, summaries = await self._analyze(task)
                except LLMAuthError:
                    raise
                except LLMError as exc:
                    log.warning("task_failed", error_type=type(exc).__name__, error=exc.message)
                    summary.outcomes.append(TaskOutcome(task=task, error=exc.message))
                    continue
                summary.outcomes.append(
                    TaskOutcome(
                        task=task,
                        analysis=analysis,
                        links=self.research_links(task, analysis, summaries),
                    )
                )

        logger.info(
            "batch_complete",
            tasks=summary.total_tasks,
            succeeded=summary.succeeded,
            failed=len(summary.errors),
        )
        return summary

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.orchestrator.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.orchestrator.cache.stats()
