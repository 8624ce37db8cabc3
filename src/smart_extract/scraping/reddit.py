"""Reddit post extraction through the public ``.json`` listing API.

Share links (``/r/<sub>/s/<id>``) are expanded to the canonical post URL
before the JSON API is queried. Payloads are validated against schemas that
cover only the consumed fields; any mismatch is a soft failure.
"""

from __future__ import annotations

import html as html_lib
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin, urlparse, urlunparse

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from smart_extract.exceptions import ExtractionError
from smart_extract.models import ExtractionResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from smart_extract.scraping.fetcher import HttpFetcher

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

STRATEGY_NAME = "reddit_json"

_USER_AGENT = "smart-extract/0.1 (task research helper)"
_MAX_COMMENTS = 5
_COMMENT_CHARS = 300
_DEFAULT_MIN_CHARS = 100

_TAG_RE = re.compile(r"<(link|div|meta)\b[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"([\w:-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")


# ---------------------------------------------------------------------------
# Payload schemas
# ---------------------------------------------------------------------------


class RedditPost(BaseModel):
    """Fields read from a post's ``data`` object."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = ""
    selftext: str | None = ""
    url: str | None = None
    author: str | None = None
    subreddit: str | None = None
    score: int | None = None
    num_comments: int | None = 0


class RedditComment(BaseModel):
    """Fields read from a comment's ``data`` object."""

    model_config = ConfigDict(extra="ignore")

    author: str | None = None
    body: str | None = ""


class _Child(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class _ListingData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    children: list[_Child] = Field(default_factory=list)


class _Listing(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: _ListingData


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def is_reddit_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host in {"reddit.com", "redd.it"} or host.endswith(".reddit.com")


def is_share_url(url: str) -> bool:
    parsed = urlparse(url)
    return "/s/" in parsed.path or (parsed.hostname or "").lower() == "redd.it"


def to_json_url(url: str) -> str:
    """Convert a post URL to its ``.json`` API form."""
    parsed = urlparse(url)
    path = parsed.path.rstrip("/")
    if not path.endswith(".json"):
        path += ".json"
    return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))


def _iter_tags(page: str) -> Iterator[tuple[str, dict[str, str]]]:
    for match in _TAG_RE.finditer(page):
        attrs = {
            name.lower(): html_lib.unescape(double or single)
            for name, double, single in _ATTR_RE.findall(match.group(0))
        }
        yield match.group(1).lower(), attrs


def find_canonical_url(page: str) -> str | None:
    """Find the canonical post URL in a Reddit HTML page.

    Checks, in priority order, ``<link rel="canonical">``, the
    ``canonical-url-updater`` element, then the ``og:url`` meta tag.

    Args:
        page: Raw HTML.

    Returns:
        The first URL found, or ``None``.
    """
    tags = list(_iter_tags(page))
    lookups = (
        ("link", "rel", "canonical", "href"),
        ("div", "id", "canonical-url-updater", "value"),
        ("meta", "property", "og:url", "content"),
    )
    for tag_name, key, expected, value_attr in lookups:
        for name, attrs in tags:
            if name == tag_name and attrs.get(key, "").lower() == expected:
                value = attrs.get(value_attr)
                if value:
                    return value
    return None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class RedditExtractor:
    """Fetches a Reddit post and its top comments as plain text.

    Attributes:
        min_chars: Content must be longer than this to count as found.
    """

    name = STRATEGY_NAME

    def __init__(self, fetcher: HttpFetcher, min_chars: int = _DEFAULT_MIN_CHARS) -> None:
        self.fetcher = fetcher
        self.min_chars = min_chars

    def matches(self, url: str) -> bool:
        return is_reddit_url(url)

    async def resolve_share_url(self, url: str) -> str:
        """Expand a share link to the canonical post URL.

        Args:
            url: A Reddit share URL.

        Returns:
            The canonical URL, or ``url`` unchanged when none was found.
        """
        result = await self.fetcher.fetch(url, headers={"User-Agent": _USER_AGENT})
        if not result.text:
            logger.info("reddit_share_unresolved", url=url, error=result.error)
            return url

        canonical = find_canonical_url(result.text)
        if canonical:
            canonical = urljoin(result.url, canonical)
            if canonical != url:
                logger.debug("reddit_share_resolved", url=url, canonical=canonical)
                return canonical

        if "/comments/" in result.url:
            return result.url
        return url

    async def extract(self, url: str) -> ExtractionResult:
        """Run the Reddit strategy for ``url``.

        Args:
            url: Any Reddit URL.

        Returns:
            FOUND with the assembled text, EMPTY when it is too short,
            NOT_APPLICABLE for non-Reddit URLs, FAILED on fetch or schema errors.
        """
        if not self.matches(url):
            return ExtractionResult.not_applicable(self.name)

        post_url = await self.resolve_share_url(url) if is_share_url(url) else url
        json_url = to_json_url(post_url)

        result = await self.fetcher.fetch(
            json_url, headers={"User-Agent": _USER_AGENT, "Accept": "application/json"}
        )
        if not result.ok:
            return ExtractionResult.failed(self.name, result.error or "fetch failed")

        payload = result.parsed_json()
        try:
            post, comments = self._parse_payload(payload)
        except (ValidationError, ExtractionError) as exc:
            logger.info("reddit_payload_invalid", url=json_url, error=str(exc))
            return ExtractionResult.failed(self.name, f"unexpected payload: {exc}")

        text = self._build_text(post, comments, requested=(url, post_url))
        if len(text) <= self.min_chars:
            logger.info("reddit_content_too_short", url=url, length=len(text))
            return ExtractionResult.empty(self.name, f"only {len(text)} characters")

        return ExtractionResult.hit(text, self.name, title=post.title or None)

    @staticmethod
    def _parse_payload(payload: Any) -> tuple[RedditPost, list[RedditComment]]:
        if not isinstance(payload, list) or not payload:
            raise ExtractionError("expected a two-element listing array")

        post_listing = _Listing.model_validate(payload[0])
        if not post_listing.data.children:
            raise ExtractionError("post listing has no children")
        post = RedditPost.model_validate(post_listing.data.children[0].data)

        comments: list[RedditComment] = []
        if len(payload) > 1:
            comment_listing = _Listing.model_validate(payload[1])
            for child in comment_listing.data.children[:_MAX_COMMENTS]:
                comment = RedditComment.model_validate(child.data)
                if comment.body and comment.body.strip():
                    comments.append(comment)
        return post, comments

    @staticmethod
    def _build_text(
        post: RedditPost,
        comments: list[RedditComment],
        requested: tuple[str, ...],
    ) -> str:
        text = ""
        if post.title:
            text += f"Title: {post.title}\n\n"
        if post.selftext:
            text += f"Post Content: {post.selftext}\n\n"
        known = {u.rstrip("/") for u in requested}
        if post.url and post.url.rstrip("/") not in known:
            text += f"External Link: {post.url}\n\n"
        if post.author:
            text += f"Posted by: u/{post.author}\n"
        if post.subreddit:
            text += f"Subreddit: r/{post.subreddit}\n"
        if post.score is not None:
            text += f"Score: {post.score} points\n"
        if post.num_comments:
            text += f"Comments: {post.num_comments}\n"

        if comments:
            text += "\nTop Comments:\n"
            for index, comment in enumerate(comments, start=1):
                full = comment.body or ""
                body = full[:_COMMENT_CHARS]
                suffix = "..." if len(full) > _COMMENT_CHARS else ""
                text += f"{index}. u/{comment.author or '[deleted]'}: {body}{suffix}\n\n"
        return text.strip()
