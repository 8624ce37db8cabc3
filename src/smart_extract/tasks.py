"""Line-scanning parser that turns bullet lists into ``ExtractedTask`` records."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from smart_extract.models import ExtractedTask, UrlReference

if TYPE_CHECKING:
    from pathlib import Path

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_BULLET_RE = re.compile(r"^[•\-*+]\s+(.+)$")
_TAG_RE = re.compile(r"#[\w-]+")
_LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)]+)\)|https?://\S+")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]+\)")
_BARE_URL_RE = re.compile(r"https?://\S+")
_CHECKBOX_RE = re.compile(r"^\s*\[[^\]]*\](?!\()\s*")


def _domain_title(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host.replace("www.", "", 1) or "Link"


def parse_task_line(task_text: str, original_line: str, line_number: int) -> ExtractedTask:
    """Parse one bullet's text into tags, links and cleaned text.

    Args:
        task_text: Text after the bullet marker.
        original_line: The full (stripped) source line.
        line_number: 1-based line number in the source.

    Returns:
        The parsed task.
    """
    tags = [match[1:] for match in _TAG_RE.findall(task_text)]

    urls: list[UrlReference] = []
    for match in _LINK_RE.finditer(task_text):
        title, target = match.group(1), match.group(2)
        if title and target:
            urls.append(UrlReference(url=target, title=title))
        else:
            url = match.group(0)
            urls.append(UrlReference(url=url, title=_domain_title(url)))

    clean = _TAG_RE.sub("", task_text).strip()
    clean = _CHECKBOX_RE.sub("", clean).strip()
    clean = _MARKDOWN_LINK_RE.sub(r"\1", clean).strip()
    clean = _BARE_URL_RE.sub("", clean).strip()
    clean = re.sub(r"\s+", " ", clean).strip()

    return ExtractedTask(
        text=task_text,
        clean_text=clean,
        tags=tags,
        urls=urls,
        original_line=original_line,
        line_number=line_number,
        has_hashtags=bool(tags),
    )


def parse_tasks(content: str) -> list[ExtractedTask]:
    """Extract every bullet item (``•``, ``-``, ``*``, ``+``) from markdown text.

    Args:
        content: Markdown note content.

    Returns:
        Tasks in source order.
    """
    tasks: list[ExtractedTask] = []
    for index, raw_line in enumerate(content.split("\n")):
        line = raw_line.strip()
        match = _BULLET_RE.match(line)
        if not match:
            continue
        task_text = match.group(1).strip()
        if not task_text:
            continue
        tasks.append(parse_task_line(task_text, line, index + 1))

    logger.debug("tasks_parsed", count=len(tasks))
    return tasks


def load_tasks(path: Path, *, hashtags_only: bool = False) -> list[ExtractedTask]:
    """Read a note from disk and parse its tasks.

    Args:
        path: Markdown file to read.
        hashtags_only: Keep only tasks that carry at least one ``#tag``.

    Returns:
        Parsed tasks.
    """
    tasks = parse_tasks(path.read_text(encoding="utf-8"))
    if hashtags_only:
        tasks = [task for task in tasks if task.has_hashtags]
    return tasks
