"""Shared pytest fixtures for the smart-extract test suite."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
import structlog

from smart_extract.config import CacheSettings, LLMSettings, ScrapingSettings, Settings

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

_ENV_KEYS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY")


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    """Run every test without provider keys, project env vars or a local config.yaml."""
    import os

    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("SMART_EXTRACT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    structlog.contextvars.clear_contextvars()
    # CLI commands configure logging globally
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


# ---------------------------------------------------------------------------
# Settings fixtures
# ---------------------------------------------------------------------------

FAKE_OPENAI_KEY = "sk-test-1234567890abcdef"


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Return Settings suitable for fast, offline testing."""
    return Settings(
        llm=LLMSettings(provider="openai", model="gpt-4.1-mini", api_key=FAKE_OPENAI_KEY),
        scraping=ScrapingSettings(timeout=5),
        cache=CacheSettings(enabled=True, ttl_hours=1, directory=tmp_path / "cache"),
    )


# ---------------------------------------------------------------------------
# LLM response helpers
# ---------------------------------------------------------------------------


def make_completion(content: str | None) -> MagicMock:
    """Build a litellm-style completion response with one choice."""
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = content
    response.choices = [choice]
    response.usage.total_tokens = 42
    return response


# ---------------------------------------------------------------------------
# HTML fixtures
# ---------------------------------------------------------------------------

ARTICLE_PARAGRAPH = (
    "Structured logging turns every log line into a set of key value pairs that "
    "machines can query and humans can still read. Teams that adopt it early find "
    "that incidents become easier to investigate because every event carries the "
    "context needed to correlate it with requests, users and deployments. "
)

ARTICLE_HTML = f"""<!DOCTYPE html>
<html>
<head><title>Why structured logging matters</title></head>
<body>
  <nav><a href="/">Home</a> <a href="/blog">Blog</a></nav>
  <article>
    <h1>Why structured logging matters</h1>
    <p>{ARTICLE_PARAGRAPH}</p>
    <p>{ARTICLE_PARAGRAPH}</p>
    <p>{ARTICLE_PARAGRAPH}</p>
    <p>{ARTICLE_PARAGRAPH}</p>
  </article>
  <footer>Copyright 2024</footer>
  <script>console.log("tracking");</script>
</body>
</html>"""


@pytest.fixture()
def article_html() -> str:
    """A readable blog article with navigation, footer and a script."""
    return ARTICLE_HTML


@pytest.fixture()
def completion() -> Callable[[str | None], MagicMock]:
    """Factory for litellm-style completion responses."""
    return make_completion
