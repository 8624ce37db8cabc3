"""Tolerant parsing of LLM replies into analysis models.

Model output is frequently malformed JSON: wrapped in prose or code fences,
cut off mid-object, or carrying raw newlines inside strings. Replies run
through an ordered list of stages, each ``text -> dict | None``; the first
dict wins. When every stage fails the raw reply becomes the description, so
the public functions here never raise.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

import structlog

from smart_extract.models import TaskAnalysis, VideoAnalysis

if TYPE_CHECKING:
    from collections.abc import Callable

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

MAX_LIST_ITEMS = 5
CONTEXT_CHARS = 300
DESCRIPTION_CHARS = 3000
ITEM_CHARS = 300
FALLBACK_CHARS = 1000

DEFAULT_CONTEXT = "Task context unclear"
DEFAULT_DESCRIPTION = "No description generated"
EMPTY_REPLY_DESCRIPTION = "No analysis returned by the model."
_SHORT_VIDEO_DESCRIPTION = (
    "## Overview\nYouTube video analysis completed with key insights and "
    "actionable information extracted."
)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")
_QUOTED_ITEM_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')

# camelCase as requested in prompts, snake_case as some models reply
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "context": ("context",),
    "description": ("description",),
    "next_steps": ("nextSteps", "next_steps"),
    "suggested_search_queries": ("suggestedSearchQueries", "suggested_search_queries"),
    "key_takeaways": ("keyTakeaways", "key_takeaways"),
    "specific_tools": ("specificTools", "specific_tools"),
    "commands": ("commands",),
    "troubleshooting": ("troubleshooting",),
}
_LIST_FIELDS = tuple(k for k in _FIELD_ALIASES if k not in ("context", "description"))

_DEFAULT_NEXT_STEPS: dict[str, list[str]] = {
    "task": [
        "Clarify the goal and expected outcome",
        "Break the task into smaller steps",
        "Gather the resources needed to start",
    ],
    "question": [
        "Search for authoritative sources on the topic",
        "Compare answers from several sources",
        "Write down open follow-up questions",
    ],
    "transcript": [
        "Review the transcript for key points",
        "Research mentioned topics",
        "Create summary notes",
    ],
    "rich_content": [
        "Review the video description thoroughly",
        "Watch key chapters identified",
        "Research topics mentioned in description",
    ],
    "metadata": [
        "Watch the video and take detailed notes",
        "Check video description for resources",
        "Research the topic area",
    ],
}


def default_next_steps(analysis_type: str) -> list[str]:
    """Return the fallback next steps for an analysis type."""
    return list(_DEFAULT_NEXT_STEPS.get(analysis_type, _DEFAULT_NEXT_STEPS["metadata"]))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def truncate_at_sentence_end(text: str, max_length: int) -> str:
    """Shorten ``text`` to at most ``max_length`` characters at a clean boundary.

    Preference order inside the window: the last sentence end past 70% of
    the limit, the last space past 80% that leaves room for ``...``, any
    sentence end, and finally a hard cut at ``max_length - 3`` with ``...``.

    Args:
        text: Text to shorten.
        max_length: Maximum length of the result.

    Returns:
        ``text`` unchanged if it already fits, otherwise the shortened text.
    """
    if not text or len(text) <= max_length:
        return text

    window = text[:max_length]
    last_end = -1
    for match in _SENTENCE_END_RE.finditer(window):
        last_end = match.end()

    if last_end > max_length * 0.7:
        return text[:last_end].strip()

    last_space = window[: max_length - 3].rfind(" ")
    if last_space > max_length * 0.8:
        return text[:last_space].strip() + "..."

    if last_end > 0:
        return text[:last_end].strip()

    return text[: max(max_length - 3, 0)].strip() + "..."


def clean_up_description(text: str, *, video: bool = False) -> str:
    """Normalize markdown in a generated description.

    Collapses runs of blank lines, drops empty bullets and ensures headers
    have a space after the hashes. Video descriptions shorter than 50
    characters are replaced, and those without a header get ``## Overview``.
    """
    if not text:
        return _SHORT_VIDEO_DESCRIPTION if video else ""

    cleaned = text.replace("\\n", "\n")
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    cleaned = re.sub(r"^[ \t]*[•*-][ \t]*$\n?", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^(#{1,6})(?=[^#\s])", r"\1 ", cleaned, flags=re.MULTILINE)
    cleaned = cleaned.strip()

    if not video:
        return cleaned
    if len(cleaned) < 50:
        return _SHORT_VIDEO_DESCRIPTION
    if not cleaned.startswith("## "):
        cleaned = "## Overview\n" + cleaned
    return cleaned


def _unescape(value: str) -> str:
    try:
        return str(json.loads(f'"{value}"'))
    except json.JSONDecodeError:
        return value.replace('\\"', '"').replace("\\n", "\n")


# ---------------------------------------------------------------------------
# Parsing stages
# ---------------------------------------------------------------------------


def _loads_dict(text: str) -> dict[str, Any] | None:
    try:
        result = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return result if isinstance(result, dict) else None


def _parse_direct(text: str) -> dict[str, Any] | None:
    return _loads_dict(text.strip())


def _parse_fenced(text: str) -> dict[str, Any] | None:
    match = _JSON_FENCE_RE.search(text)
    return _loads_dict(match.group(1).strip()) if match else None


def _first_balanced_object(text: str) -> str | None:
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def _parse_balanced(text: str) -> dict[str, Any] | None:
    collapsed = re.sub(r"\s+", " ", text).strip()
    candidate = _first_balanced_object(collapsed)
    return _loads_dict(candidate) if candidate else None


def _extract_string_field(text: str, name: str) -> str | None:
    match = re.search(rf'"{name}"\s*:\s*"((?:[^"\\]|\\.)*)"', text, re.IGNORECASE)
    return _unescape(match.group(1)) if match else None


def _extract_array_field(text: str, name: str) -> list[str] | None:
    match = re.search(rf'"{name}"\s*:\s*\[([^\]]*)\]', text, re.IGNORECASE)
    if not match:
        return None
    body = match.group(1)
    items = [_unescape(item) for item in _QUOTED_ITEM_RE.findall(body)]
    if not items:
        items = [part.strip().strip('"').strip() for part in re.split(r"[,\n]", body)]
    items = [item for item in items if item]
    return items[:MAX_LIST_ITEMS] or None


def _parse_fields(text: str) -> dict[str, Any] | None:
    result: dict[str, Any] = {}
    for field, aliases in _FIELD_ALIASES.items():
        for alias in aliases:
            if field in ("context", "description"):
                value: Any = _extract_string_field(text, alias)
            else:
                value = _extract_array_field(text, alias)
            if value:
                result[field] = value
                break
    if "description" not in result:
        return None
    return result


_STAGES: tuple[tuple[str, Callable[[str], dict[str, Any] | None]], ...] = (
    ("direct", _parse_direct),
    ("fenced", _parse_fenced),
    ("balanced", _parse_balanced),
    ("fields", _parse_fields),
)


def _run_stages(raw: str) -> tuple[dict[str, Any] | None, str]:
    for name, stage in _STAGES:
        try:
            data = stage(raw)
        except (ValueError, RecursionError) as exc:
            logger.debug("parse_stage_error", stage=name, error=str(exc))
            continue
        if data is not None:
            return data, name
    return None, "fallback"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _lookup(data: dict[str, Any], field: str) -> Any:
    for alias in _FIELD_ALIASES[field]:
        if alias in data:
            return data[alias]
    return None


def _string_field(data: dict[str, Any], field: str) -> str | None:
    value = _lookup(data, field)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _list_field(data: dict[str, Any], field: str) -> list[str]:
    value = _lookup(data, field)
    if not isinstance(value, list):
        return []
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return [truncate_at_sentence_end(item, ITEM_CHARS) for item in items[:MAX_LIST_ITEMS]]


def _fallback_description(raw: str) -> str:
    text = raw.strip()
    if not text:
        return EMPTY_REPLY_DESCRIPTION
    return truncate_at_sentence_end(text, FALLBACK_CHARS)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_task_analysis(raw: str, analysis_type: str = "task") -> TaskAnalysis:
    """Turn an LLM reply into a ``TaskAnalysis``.

    Args:
        raw: The model's reply text.
        analysis_type: ``task`` or ``question``; selects fallback next steps.

    Returns:
        A fully populated analysis, even for empty or garbage input.
    """
    data, stage = _run_stages(raw or "")
    if data is None:
        logger.info("parse_fallback", analysis_type=analysis_type, chars=len(raw or ""))
        return TaskAnalysis(
            context=DEFAULT_CONTEXT,
            description=_fallback_description(raw or ""),
            next_steps=default_next_steps(analysis_type),
            suggested_search_queries=[],
        )

    logger.debug("parse_ok", stage=stage)
    context = _string_field(data, "context") or DEFAULT_CONTEXT
    description = _string_field(data, "description") or DEFAULT_DESCRIPTION
    return TaskAnalysis(
        context=truncate_at_sentence_end(context, CONTEXT_CHARS),
        description=truncate_at_sentence_end(
            clean_up_description(description), DESCRIPTION_CHARS
        ),
        next_steps=_list_field(data, "next_steps"),
        suggested_search_queries=_list_field(data, "suggested_search_queries"),
    )


def video_context(analysis_type: str, reason: str | None = None) -> str:
    """Return the context line shown for a video analysis."""
    if analysis_type == "transcript":
        return "YouTube Video Analysis"
    if analysis_type == "rich_content":
        return "YouTube Video - Rich Content Analysis"
    return f"YouTube Video - {reason or 'Limited Content Available'}"


def parse_video_analysis(
    raw: str,
    video_type: str = "general",
    analysis_type: str = "transcript",
    reason: str | None = None,
) -> VideoAnalysis:
    """Turn an LLM reply about a video into a ``VideoAnalysis``.

    Args:
        raw: The model's reply text.
        video_type: Classified video type, recorded on the result.
        analysis_type: ``transcript``, ``rich_content`` or ``metadata``.
        reason: Why no transcript was available, used in the context line.

    Returns:
        A fully populated analysis, even for empty or garbage input.
    """
    context = video_context(analysis_type, reason)
    data, stage = _run_stages(raw or "")

    if data is None or not _string_field(data, "description"):
        logger.info("parse_fallback", analysis_type=analysis_type, chars=len(raw or ""))
        return VideoAnalysis(
            context=context,
            description=clean_up_description(_fallback_description(raw or ""), video=True),
            next_steps=default_next_steps(analysis_type),
            video_type=video_type,
            analysis_method=analysis_type,
        )

    logger.debug("parse_ok", stage=stage, video_type=video_type)
    description = clean_up_description(_string_field(data, "description") or "", video=True)
    return VideoAnalysis(
        context=context,
        description=truncate_at_sentence_end(description, DESCRIPTION_CHARS),
        next_steps=_list_field(data, "next_steps") or default_next_steps(analysis_type),
        suggested_search_queries=_list_field(data, "suggested_search_queries"),
        key_takeaways=_list_field(data, "key_takeaways"),
        specific_tools=_list_field(data, "specific_tools"),
        commands=_list_field(data, "commands"),
        troubleshooting=_list_field(data, "troubleshooting"),
        video_type=video_type,
        analysis_method=analysis_type,
    )
