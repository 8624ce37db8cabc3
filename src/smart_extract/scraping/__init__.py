"""Content fetching and extraction: HTTP, readability, Reddit and YouTube."""

from __future__ import annotations

from smart_extract.scraping.fetcher import FetchResult, FetchStatus, HttpFetcher
from smart_extract.scraping.readability import ArticleContent, ReadabilityExtractor
from smart_extract.scraping.reddit import RedditExtractor
from smart_extract.scraping.sanitizer import HTMLSanitizer
from smart_extract.scraping.strategies import (
    NaiveStripStrategy,
    ReadabilityStrategy,
    SiteStrategy,
)
from smart_extract.scraping.youtube import YouTubeExtractor

__all__ = [
    "ArticleContent",
    "FetchResult",
    "FetchStatus",
    "HTMLSanitizer",
    "HttpFetcher",
    "NaiveStripStrategy",
    "ReadabilityExtractor",
    "ReadabilityStrategy",
    "RedditExtractor",
    "SiteStrategy",
    "YouTubeExtractor",
]
