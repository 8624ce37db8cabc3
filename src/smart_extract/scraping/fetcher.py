"""Async HTTP fetcher that reports failures as data.

Wraps ``httpx.AsyncClient`` with an explicit timeout and redirect following.
Status codes and transport errors are normalized into a ``FetchResult`` so
the extraction cascade can move to its next tier without exception handling.
No request is ever retried.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
import structlog
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from types import TracebackType

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_TIMEOUT = 20.0
_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class FetchStatus(StrEnum):
    """Normalized outcome of one HTTP request."""

    OK = "ok"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"


class FetchResult(BaseModel):
    """Response body and classification for one request."""

    url: str = Field(description="Final URL after redirects.")
    status: FetchStatus
    status_code: int | None = None
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    def parsed_json(self) -> Any:
        """Decode the body as JSON, or ``None`` if it is not valid JSON."""
        try:
            return json.loads(self.text)
        except (json.JSONDecodeError, ValueError):
            return None


def validate_url(url: str) -> bool:
    """Return True for absolute http(s) URLs with a plausible hostname."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    return len(parsed.hostname or "") > 2


def classify_status(status_code: int) -> FetchStatus:
    if 200 <= status_code < 300:
        return FetchStatus.OK
    if 400 <= status_code < 500:
        return FetchStatus.CLIENT_ERROR
    if status_code >= 500:
        return FetchStatus.SERVER_ERROR
    # 1xx and unfollowed 3xx carry no usable body
    return FetchStatus.CLIENT_ERROR


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class HttpFetcher:
    """Issues outbound requests and classifies their outcome.

    Attributes:
        timeout: Per-request timeout in seconds.
        user_agent: Default ``User-Agent`` header.
    """

    def __init__(
        self,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds.
            user_agent: Default ``User-Agent`` header for every request.
            client: Optional pre-built client (tests, connection sharing).
                A client passed in is not closed by ``aclose``.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> FetchResult:
        """Perform one request.

        Args:
            url: Absolute http(s) URL.
            method: HTTP method.
            headers: Extra headers; a ``User-Agent`` here overrides the default.
            json_body: Optional JSON request body.

        Returns:
            A ``FetchResult``; transport errors never raise.
        """
        if not validate_url(url):
            logger.debug("fetch_invalid_url", url=url)
            return FetchResult(
                url=url, status=FetchStatus.NETWORK_ERROR, error="Invalid URL"
            )

        merged = {"User-Agent": self.user_agent, **(headers or {})}
        try:
            response = await self._client.request(
                method,
                url,
                headers=merged,
                json=json_body,
                timeout=httpx.Timeout(self.timeout),
            )
        except httpx.TimeoutException as exc:
            logger.info("fetch_timeout", url=url, error=str(exc))
            return FetchResult(
                url=url, status=FetchStatus.NETWORK_ERROR, error=f"Timeout: {exc}"
            )
        except httpx.HTTPError as exc:
            logger.info("fetch_network_error", url=url, error=str(exc))
            return FetchResult(
                url=url, status=FetchStatus.NETWORK_ERROR, error=str(exc)
            )

        status = classify_status(response.status_code)
        if status != FetchStatus.OK:
            logger.info(
                "fetch_http_error",
                url=url,
                status_code=response.status_code,
                status=status.value,
            )
        return FetchResult(
            url=str(response.url),
            status=status,
            status_code=response.status_code,
            text=response.text,
            error=None if status == FetchStatus.OK else f"HTTP {response.status_code}",
        )
