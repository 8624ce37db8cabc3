"""Extraction strategies that turn a URL or a fetched page into text.

Site strategies (Reddit, YouTube) own their network calls and implement
``SiteStrategy``. Page strategies (readability, naive strip) run on HTML the
orchestrator already fetched, so the two generic tiers share one request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from smart_extract.models import ExtractionResult
from smart_extract.scraping.readability import ReadabilityExtractor
from smart_extract.scraping.sanitizer import HTMLSanitizer

if TYPE_CHECKING:
    from smart_extract.scraping.fetcher import FetchResult


READABILITY = "readability"
NAIVE_STRIP = "naive_strip"


@runtime_checkable
class SiteStrategy(Protocol):
    """A strategy bound to a family of URLs."""

    name: str

    def matches(self, url: str) -> bool: ...

    async def extract(self, url: str) -> ExtractionResult: ...


class ReadabilityStrategy:
    """Main-content extraction on a fetched page."""

    name = READABILITY

    def __init__(self, extractor: ReadabilityExtractor | None = None) -> None:
        self.extractor = extractor or ReadabilityExtractor()

    def run(self, page: FetchResult) -> ExtractionResult:
        if not page.ok:
            return ExtractionResult.failed(self.name, page.error or "fetch failed")
        article = self.extractor.extract(page.url, page.text)
        if article is None or not article.text_content.strip():
            return ExtractionResult.empty(self.name, "no main content region")
        return ExtractionResult.hit(
            article.to_context(), self.name, title=article.title
        )


class NaiveStripStrategy:
    """Last resort: drop every tag and keep whatever text remains."""

    name = NAIVE_STRIP

    def __init__(self, sanitizer: HTMLSanitizer | None = None) -> None:
        self.sanitizer = sanitizer or HTMLSanitizer()

    def run(self, page: FetchResult) -> ExtractionResult:
        if not page.ok:
            return ExtractionResult.failed(self.name, page.error or "fetch failed")
        text = self.sanitizer.to_text(page.text)
        if not text:
            return ExtractionResult.empty(self.name, "page has no text")
        return ExtractionResult.hit(text, self.name)
