"""Main-content extraction for generic web pages, built on Trafilatura."""

from __future__ import annotations

import structlog
import trafilatura
from pydantic import BaseModel, Field
from trafilatura.settings import use_config

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# Accept shorter articles than Trafilatura's default of 250 characters
_MIN_EXTRACTED_SIZE = 200
_EXCERPT_CHARS = 200


class ArticleContent(BaseModel):
    """Article fields produced by readability extraction."""

    title: str | None = None
    content: str = Field(description="Main content with paragraph breaks.")
    text_content: str = Field(description="Main content as flat text.")
    excerpt: str | None = None
    byline: str | None = None
    site_name: str | None = None
    published_time: str | None = None
    length: int = Field(default=0, ge=0)

    def to_context(self) -> str:
        """Render the labelled block handed to the summarizer."""
        parts: list[str] = []
        if self.title:
            parts.append(f"Title: {self.title}\n")
        header = [
            f"{label}: {value}"
            for label, value in (
                ("Author", self.byline),
                ("Site", self.site_name),
                ("Published", self.published_time),
            )
            if value
        ]
        if header:
            parts.append("\n".join(header))

        text = self.text_content
        if self.excerpt and not text.lower().startswith(self.excerpt.lower()[:50]):
            parts.append(f"Summary: {self.excerpt}")
        parts.append(f"Content: {text}")
        return "\n\n".join(parts)


class ReadabilityExtractor:
    """Identifies the main textual region of an HTML document."""

    def __init__(self, min_extracted_size: int = _MIN_EXTRACTED_SIZE) -> None:
        self._config = use_config()
        self._config.set("DEFAULT", "MIN_EXTRACTED_SIZE", str(min_extracted_size))

    def extract(self, url: str, html: str) -> ArticleContent | None:
        """Extract the article from ``html``.

        Relative links are resolved against ``url``.

        Args:
            url: The page URL.
            html: Raw HTML.

        Returns:
            The article, or ``None`` when no main-content region was found.
        """
        if not html.strip():
            return None

        try:
            document = trafilatura.bare_extraction(
                html,
                url=url,
                with_metadata=True,
                include_comments=False,
                include_tables=True,
                config=self._config,
            )
        except Exception as exc:
            logger.warning("readability_failed", url=url, error=str(exc))
            return None

        if document is None or not (document.text or "").strip():
            logger.debug("readability_empty", url=url)
            return None

        text = document.text.strip()
        excerpt = document.description or text[:_EXCERPT_CHARS]
        return ArticleContent(
            title=document.title,
            content=text,
            text_content=" ".join(text.split()),
            excerpt=excerpt,
            byline=document.author,
            site_name=document.sitename,
            published_time=document.date,
            length=len(text),
        )
