"""Per-URL extraction cascade and LLM summarization.

A URL moves through strictly ordered tiers and stops at the first that
yields content: cache, site strategy (Reddit, YouTube), readability on a
generic fetch, then naive tag stripping of the same HTML. The winning
content is summarized by the LLM and the summary is cached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from smart_extract.cache import ContentCache, make_key
from smart_extract.exceptions import LLMAuthError, LLMError
from smart_extract.links import topic_links
from smart_extract.logging import log_provenance
from smart_extract.models import ExtractionResult
from smart_extract.parser import parse_video_analysis
from smart_extract.prompts import (
    build_summary_prompt,
    build_video_metadata_prompt,
    build_video_prompt,
    detect_video_type,
)
from smart_extract.scraping.fetcher import HttpFetcher
from smart_extract.scraping.reddit import RedditExtractor
from smart_extract.scraping.strategies import NaiveStripStrategy, ReadabilityStrategy
from smart_extract.scraping.youtube import YouTubeExtractor

if TYPE_CHECKING:
    from types import TracebackType

    from smart_extract.config import Settings
    from smart_extract.llm import LLMClient
    from smart_extract.models import VideoAnalysis, VideoContent
    from smart_extract.scraping.strategies import SiteStrategy

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated for length]"
GENERIC_FETCH = "http_fetch"
_DEFAULT_VIDEO_TASK = "Analyze this video content"


def truncate_content(text: str, max_chars: int) -> str:
    """Hard-cut ``text`` at ``max_chars`` and append the truncation marker."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def render_video_summary(
    analysis: VideoAnalysis,
    url: str,
    title: str | None = None,
) -> str:
    """Render a video analysis as a markdown summary.

    Sections without content are omitted. Tools named by the analysis are
    linked under ``Resources``.

    Args:
        analysis: Parsed video analysis.
        url: The video URL, linked under ``Source``.
        title: Video title for the top-level header.

    Returns:
        The markdown summary.
    """
    parts = [f"# {title or 'YouTube Video Analysis'}"]

    description = analysis.description.strip()
    if description:
        if "##" in description or "**" in description:
            parts.append(description)
        else:
            parts.append(f"## Overview\n{description}")

    if analysis.key_takeaways:
        lines = [f"{i}. {item}" for i, item in enumerate(analysis.key_takeaways, start=1)]
        parts.append("## Key Takeaways\n" + "\n".join(lines))

    sections = (
        ("Next Steps", analysis.next_steps, "• {}"),
        ("Research Topics", analysis.suggested_search_queries, "• {}"),
        ("Commands & Code", analysis.commands, "• `{}`"),
        ("Troubleshooting", analysis.troubleshooting, "• {}"),
    )
    for header, items, line_format in sections:
        if items:
            body = "\n".join(line_format.format(item) for item in items)
            parts.append(f"## {header}\n{body}")

    resources = topic_links(analysis.specific_tools, analysis.key_takeaways)
    if resources:
        body = "\n".join(f"• [{link.title}]({link.url})" for link in resources)
        parts.append(f"## Resources\n{body}")

    parts.append(f"## Source\n[Watch Video]({url})")
    return "\n\n".join(parts)


class ExtractionOrchestrator:
    """Resolves URLs to LLM summaries through the extraction cascade.

    Attributes:
        settings: Application settings.
        llm: Client used for summarization.
        cache: Summary cache shared across calls.
    """

    def __init__(
        self,
        settings: Settings,
        llm: LLMClient,
        *,
        fetcher: HttpFetcher | None = None,
        cache: ContentCache | None = None,
        site_strategies: list[SiteStrategy] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Application settings.
            llm: Client used for summarization.
            fetcher: Optional shared fetcher; one is built from
                ``settings.scraping`` otherwise and closed by ``aclose``.
            cache: Optional cache; one is built from ``settings.cache`` and
                closed by ``aclose``.
            site_strategies: Overrides the default Reddit and YouTube strategies.
        """
        self.settings = settings
        self.llm = llm
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpFetcher(
            timeout=settings.scraping.timeout,
            user_agent=settings.scraping.user_agent,
        )
        self._owns_cache = cache is None
        self.cache = (
            cache
            if cache is not None
            else ContentCache(
                ttl_seconds=settings.cache.ttl_seconds,
                enabled=settings.cache.enabled,
                cache_dir=settings.cache.directory,
            )
        )
        self.site_strategies: list[SiteStrategy] = (
            site_strategies
            if site_strategies is not None
            else [
                RedditExtractor(self.fetcher, min_chars=settings.scraping.reddit_min_chars),
                YouTubeExtractor(self.fetcher),
            ]
        )
        self.readability = ReadabilityStrategy()
        self.naive = NaiveStripStrategy()

    async def __aenter__(self) -> ExtractionOrchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_fetcher:
            await self.fetcher.aclose()
        if self._owns_cache:
            self.cache.close()

    def cache_key(self, url: str, context: str | None = None) -> str:
        """Key by URL, adding the task context only in context-sensitive mode."""
        if self.settings.cache.context_sensitive:
            return make_key(url, context)
        return make_key(url)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def _log_result(self, url: str, result: ExtractionResult) -> None:
        if result.found and result.content is not None:
            log_provenance(
                url,
                "extracted",
                strategy=result.strategy,
                details={"chars": len(result.content.text)},
            )
        logger.info(
            "strategy_result",
            url=url,
            strategy=result.strategy,
            status=result.status.value,
            reason=result.reason or None,
            chars=len(result.content.text) if result.content else 0,
        )

    async def extract(self, url: str) -> ExtractionResult:
        """Run the extraction tiers for ``url`` without summarizing.

        Args:
            url: The URL to extract.

        Returns:
            The first FOUND result, or the last non-found result.
        """
        for strategy in self.site_strategies:
            if not strategy.matches(url):
                continue
            result = await strategy.extract(url)
            self._log_result(url, result)
            if result.found:
                return result

        page = await self.fetcher.fetch(url)
        if not page.ok:
            result = ExtractionResult.failed(GENERIC_FETCH, page.error or "fetch failed")
            self._log_result(url, result)
            return result

        result = self.readability.run(page)
        self._log_result(url, result)
        if result.found:
            return result

        result = self.naive.run(page)
        self._log_result(url, result)
        return result

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    async def summarize_url(self, url: str, context: str | None = None) -> str | None:
        """Return an LLM summary of ``url``, or ``None`` if nothing usable was found.

        Args:
            url: The URL to resolve.
            context: The task text the URL belongs to.

        Returns:
            The summary text, or ``None``.

        Raises:
            LLMAuthError: If the LLM rejects the API key.
        """
        with structlog.contextvars.bound_contextvars(url=url):
            return await self._resolve(url, context)

    async def _resolve(self, url: str, context: str | None) -> str | None:
        key = self.cache_key(url, context)
        cached = self.cache.get(key)
        if cached is not None:
            log_provenance(url, "cached")
            return cached

        try:
            result = await self.extract(url)
            if not result.found or result.content is None:
                logger.info("url_no_content", url=url, reason=result.reason)
                return None

            content = result.content
            if content.video is not None:
                summary = await self._summarize_video(url, content.video, content.text, context)
            else:
                prompt = build_summary_prompt(
                    url,
                    truncate_content(content.text, self.settings.scraping.max_content_chars),
                )
                summary = await self.llm.complete(prompt, require_json=False)
        except LLMAuthError:
            raise
        except LLMError as exc:
            logger.warning(
                "summary_llm_failed",
                url=url,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            return None
        except Exception:
            logger.exception("summarize_url_failed", url=url)
            return None

        summary = summary.strip()
        if not summary:
            return None

        self.cache.set(key, summary)
        log_provenance(
            url,
            "summarized",
            strategy=content.strategy,
            details={"summary_chars": len(summary)},
        )
        return summary

    async def _summarize_video(
        self,
        url: str,
        video: VideoContent,
        page_text: str,
        context: str | None,
    ) -> str:
        metadata = video.metadata
        task = context or _DEFAULT_VIDEO_TASK
        limit = self.settings.scraping.max_transcript_chars

        if video.analysis_type == "transcript" and video.transcript is not None:
            video_type = detect_video_type(
                video.transcript.full_text, metadata.title, metadata.description
            )
            prompt = build_video_prompt(
                video_type,
                video.transcript.full_text,
                metadata,
                task,
                max_transcript_chars=limit,
            )
        else:
            video_type = detect_video_type("", metadata.title, metadata.description)
            prompt = build_video_metadata_prompt(
                video.analysis_type,
                metadata,
                page_text,
                task,
                reason=video.transcript_reason,
                max_transcript_chars=limit,
            )

        raw = await self.llm.complete(
            prompt,
            require_json=True,
            max_tokens=self.settings.llm.video_max_tokens,
            temperature=self.settings.llm.video_temperature,
        )
        analysis = parse_video_analysis(
            raw,
            video_type=video_type,
            analysis_type=video.analysis_type,
            reason=video.transcript_reason,
        )
        logger.info(
            "video_analyzed",
            url=url,
            video_type=video_type,
            analysis_type=video.analysis_type,
            richness=video.content_richness,
        )
        return render_video_summary(analysis, url, title=metadata.title)
