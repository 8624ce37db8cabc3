"""Prompt construction for task analysis, page summaries and video analysis.

Templates live in YAML files beside this module and use ``{{NAME}}``
placeholders. Every builder is a pure function of its arguments.
"""

from __future__ import annotations

import functools
import re
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from smart_extract.models import ExtractedTask, VideoMetadata

_PROMPTS_DIR = Path(__file__).parent

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z0-9_]+)\}\}")

_QUESTION_WORDS = (
    "what", "where", "when", "why", "how", "who", "which", "whom", "whose",
    "can", "could", "would", "should", "is", "are", "do", "does", "did",
    "will", "shall", "may", "might",
)  # fmt: skip

DEFAULT_TRANSCRIPT_CHARS = 8000

VIDEO_TYPES = (
    "technical_tutorial",
    "tutorial",
    "educational",
    "review",
    "presentation",
    "news",
    "general",
)

_INFLECTION = r"(?:s|es|d|ed|ing|ings|er|ers|ation|ations)?"


def _keywords(*words: str) -> re.Pattern[str]:
    """Match whole words or their inflections (``install`` also matches ``installing``)."""
    # a trailing "e" may drop before the suffix: configure -> configuring
    stems = "|".join(
        re.escape(word[:-1]) + "e?" if word.endswith("e") else re.escape(word) for word in words
    )
    return re.compile(rf"\b(?:{stems}){_INFLECTION}\b")


_TUTORIAL_RE = _keywords(
    "tutorial", "how to", "step by step", "install", "setup", "configure", "guide"
)
_TECHNICAL_RE = _keywords(
    "terminal", "command", "cli", "bash", "shell", "code", "programming", "development"
)
_VIDEO_TYPE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "educational",
        _keywords(
            "lecture", "course", "lesson", "learn", "education", "explain", "concept", "theory"
        ),
    ),
    (
        "review",
        _keywords("review", "comparison", "vs", "better", "worse", "pros", "cons", "recommend"),
    ),
    (
        "presentation",
        _keywords("presentation", "talk", "conference", "keynote", "demo", "show"),
    ),
    ("news", _keywords("news", "update", "announcement", "release", "breaking", "latest")),
)

# presentation and news videos share the general template
_TEMPLATE_FOR_TYPE = {
    "technical_tutorial": "technical_tutorial",
    "tutorial": "tutorial",
    "educational": "educational",
    "review": "review",
}


# ---------------------------------------------------------------------------
# Template loading
# ---------------------------------------------------------------------------


@functools.cache
def load_prompt(name: str) -> dict[str, str]:
    """Load a prompt template file from the prompts directory.

    Args:
        name: File stem, e.g. ``"task"`` for ``task.yaml``.

    Returns:
        Mapping of section name to template text.
    """
    path = _PROMPTS_DIR / f"{name}.yaml"
    with path.open(encoding="utf-8") as f:
        result: dict[str, str] = yaml.safe_load(f)
    return result


def render_template(template_text: str, variables: dict[str, str]) -> str:
    """Render placeholders like {{TASK}} with provided variables."""

    def replace(match: re.Match[str]) -> str:
        placeholder = match.group(1)
        return variables.get(placeholder, "")

    return _PLACEHOLDER_RE.sub(replace, template_text)


# ---------------------------------------------------------------------------
# Task and summary prompts
# ---------------------------------------------------------------------------


def is_question(text: str) -> bool:
    """Return True if ``text`` ends with ``?`` or opens with an interrogative."""
    stripped = text.strip()
    if stripped.endswith("?"):
        return True
    lowered = stripped.lower()
    return any(lowered.startswith(f"{word} ") for word in _QUESTION_WORDS)


def build_task_prompt(task: ExtractedTask, url_context: str | None = None) -> str:
    """Build the JSON-mode analysis prompt for one task.

    Questions ask for a direct answer, five follow-ups and search queries;
    other tasks ask for a context sentence, a short description and up to
    three next steps.

    Args:
        task: The parsed task.
        url_context: Joined summaries of the task's URLs, if any.

    Returns:
        The complete prompt text.
    """
    sections = load_prompt("task")
    question = is_question(task.clean_text)

    prompt = render_template(
        sections["header"],
        {
            "TASK": task.clean_text,
            "TAGS": ", ".join(task.tags) if task.tags else "none",
            "TYPE": "QUESTION - Provide a direct answer" if question else "TASK",
        },
    )
    if url_context:
        prompt += render_template(sections["url_context"], {"URL_CONTENT": url_context})

    if question:
        prompt += render_template(
            sections["question"],
            {
                "SOURCES": (
                    "the URL content and your knowledge" if url_context else "your knowledge"
                )
            },
        )
    else:
        prompt += render_template(
            sections["task"],
            {
                "URL_CLAUSE": " and the URL content above" if url_context else "",
                "BASIS": (
                    "both the task and URL content"
                    if url_context
                    else "the task description"
                ),
            },
        )

    return prompt + sections["guidelines"]


def build_summary_prompt(url: str, content: str) -> str:
    """Build the plain-text prompt that condenses a page into 2-4 sentences."""
    return render_template(load_prompt("summary")["user"], {"URL": url, "CONTENT": content})


# ---------------------------------------------------------------------------
# Video prompts
# ---------------------------------------------------------------------------


def detect_video_type(
    transcript: str,
    title: str | None = None,
    description: str | None = None,
) -> str:
    """Classify a video by keywords in its transcript, title and description.

    Categories are tested in a fixed order and the first match wins.
    Tutorial keywords combined with technical keywords give
    ``technical_tutorial``.

    Args:
        transcript: Transcript text (may be empty).
        title: Video title.
        description: Video description.

    Returns:
        One of ``VIDEO_TYPES``.
    """
    text = f"{transcript} {title or ''} {description or ''}".lower()

    if _TUTORIAL_RE.search(text):
        if _TECHNICAL_RE.search(text):
            return "technical_tutorial"
        return "tutorial"

    for video_type, pattern in _VIDEO_TYPE_PATTERNS:
        if pattern.search(text):
            return video_type
    return "general"


def _cap_transcript(transcript: str, limit: int) -> str:
    if len(transcript) > limit:
        return transcript[:limit] + "..."
    return transcript


def build_video_prompt(
    video_type: str,
    transcript: str,
    metadata: VideoMetadata,
    task: str,
    max_transcript_chars: int = DEFAULT_TRANSCRIPT_CHARS,
) -> str:
    """Build the type-specific JSON prompt for a video with a transcript.

    Args:
        video_type: Result of ``detect_video_type``.
        transcript: Full transcript text, capped at ``max_transcript_chars``.
        metadata: Watch-page metadata.
        task: The user's task text.
        max_transcript_chars: Transcript cut-off; ``...`` marks a cut.

    Returns:
        The complete prompt text.
    """
    sections = load_prompt("video")
    base = render_template(
        sections["base"],
        {
            "TITLE": metadata.title or "YouTube Video",
            "CHANNEL": metadata.channel or "Unknown",
            "TASK": task,
            "DURATION": metadata.duration or "Unknown",
            "TRANSCRIPT": _cap_transcript(transcript, max_transcript_chars),
        },
    )
    template = sections[_TEMPLATE_FOR_TYPE.get(video_type, "general")]
    return base + sections["formatting"] + template


def build_video_metadata_prompt(
    analysis_type: str,
    metadata: VideoMetadata,
    content: str,
    task: str,
    reason: str | None = None,
    max_transcript_chars: int = DEFAULT_TRANSCRIPT_CHARS,
) -> str:
    """Build the prompt for a video analyzed from its transcript or metadata.

    Args:
        analysis_type: ``transcript``, ``rich_content`` or ``metadata``.
        metadata: Watch-page metadata.
        content: Transcript, or the flattened description and chapters.
        task: The user's task text.
        reason: Why no transcript was available.
        max_transcript_chars: Cut-off applied to ``content``.

    Returns:
        The complete prompt text.
    """
    sections = load_prompt("video_metadata")
    key = analysis_type if analysis_type in ("transcript", "rich_content") else "metadata"
    return render_template(
        sections[key],
        {
            "TITLE": metadata.title or "Unknown",
            "CHANNEL": metadata.channel or "Unknown",
            "DURATION": metadata.duration or "Unknown",
            "VIEWS": str(metadata.view_count) if metadata.view_count else "Unknown",
            "TASK": task,
            "CONTENT": _cap_transcript(content, max_transcript_chars),
            "REASON": reason or "Transcript and rich content not available",
            "JSON_RULES": sections["json_rules"],
        },
    )
