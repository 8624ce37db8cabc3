"""Pydantic data models shared across the extraction and analysis pipeline."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class UrlReference(BaseModel):
    """A link found in a task line."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = Field(description="Markdown link text, or the bare domain.")


class ExtractedTask(BaseModel):
    """One parsed bullet line from a source note."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Task text with the bullet marker removed.")
    clean_text: str = Field(description="Text without tags, checkbox or URLs.")
    tags: list[str] = Field(default_factory=list)
    urls: list[UrlReference] = Field(default_factory=list)
    original_line: str = ""
    line_number: int = Field(default=0, ge=0)
    has_hashtags: bool = False


# ---------------------------------------------------------------------------
# Video content
# ---------------------------------------------------------------------------


class TranscriptSegment(BaseModel):
    """A single timed caption cue."""

    text: str
    start_time: float = Field(ge=0.0)
    end_time: float = Field(ge=0.0)


class VideoTranscript(BaseModel):
    """Caption track text in temporal order."""

    full_text: str
    segments: list[TranscriptSegment] = Field(default_factory=list)


class VideoMetadata(BaseModel):
    """Watch-page metadata used when no transcript is available."""

    video_id: str
    title: str | None = None
    channel: str | None = None
    description: str = ""
    duration: str | None = None
    view_count: int | None = None
    chapters: list[str] = Field(default_factory=list)


AnalysisType = Literal["task", "question", "transcript", "rich_content", "metadata"]


class VideoContent(BaseModel):
    """Everything the YouTube strategy learned about a video."""

    metadata: VideoMetadata
    transcript: VideoTranscript | None = None
    analysis_type: AnalysisType = "metadata"
    content_richness: int = Field(default=0, ge=0, le=5)
    transcript_reason: str | None = Field(
        default=None, description="Why no transcript was available."
    )


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------


class ExtractionStatus(StrEnum):
    """Outcome of one extraction strategy."""

    FOUND = "found"
    EMPTY = "empty"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


class ExtractedContent(BaseModel):
    """Text produced by a winning strategy."""

    text: str
    strategy: str
    title: str | None = None
    video: VideoContent | None = None


class ExtractionResult(BaseModel):
    """Tagged result of running a strategy (or the whole cascade) on a URL."""

    status: ExtractionStatus
    strategy: str = ""
    content: ExtractedContent | None = None
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.status == ExtractionStatus.FOUND

    @classmethod
    def hit(
        cls,
        text: str,
        strategy: str,
        *,
        title: str | None = None,
        video: VideoContent | None = None,
    ) -> ExtractionResult:
        return cls(
            status=ExtractionStatus.FOUND,
            strategy=strategy,
            content=ExtractedContent(
                text=text, strategy=strategy, title=title, video=video
            ),
        )

    @classmethod
    def empty(cls, strategy: str, reason: str = "") -> ExtractionResult:
        return cls(status=ExtractionStatus.EMPTY, strategy=strategy, reason=reason)

    @classmethod
    def not_applicable(cls, strategy: str) -> ExtractionResult:
        return cls(status=ExtractionStatus.NOT_APPLICABLE, strategy=strategy)

    @classmethod
    def failed(cls, strategy: str, reason: str) -> ExtractionResult:
        return cls(status=ExtractionStatus.FAILED, strategy=strategy, reason=reason)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class CacheEntry(BaseModel):
    """A cached summary and the wall-clock time it was stored."""

    key: str
    value: str
    stored_at: float


class CacheStats(BaseModel):
    """Snapshot of the summary cache."""

    size: int = Field(default=0, ge=0)
    oldest_entry_age: float | None = Field(
        default=None, description="Age in seconds of the oldest live entry."
    )


# ---------------------------------------------------------------------------
# LLM analysis
# ---------------------------------------------------------------------------


class AnalysisRequest(BaseModel):
    """One chat-completion call, built fresh per prompt."""

    prompt: str
    require_structured_output: bool = True
    model: str
    max_tokens: int = Field(gt=0)
    temperature: float = Field(ge=0.0, le=2.0)


class TaskAnalysis(BaseModel):
    """Structured LLM analysis attached to a task. Every field is populated."""

    context: str = Field(description="One sentence on what the task is about.")
    description: str = Field(description="Short description or direct answer.")
    next_steps: list[str] = Field(default_factory=list, max_length=5)
    suggested_search_queries: list[str] = Field(default_factory=list)


class VideoAnalysis(TaskAnalysis):
    """Analysis of a video, with type-specific extras."""

    key_takeaways: list[str] = Field(default_factory=list)
    specific_tools: list[str] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)
    troubleshooting: list[str] = Field(default_factory=list)
    video_type: str = "general"
    analysis_method: str = "transcript"


# ---------------------------------------------------------------------------
# Links and batches
# ---------------------------------------------------------------------------


class ResearchLink(BaseModel):
    """A link suggested alongside an analysis."""

    url: str
    title: str
    kind: Literal["reference", "search", "tool"] = "reference"
    summary: str | None = None


class TaskOutcome(BaseModel):
    """Result of analyzing one task in a batch."""

    task: ExtractedTask
    analysis: TaskAnalysis | None = None
    links: list[ResearchLink] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.analysis is not None


class BatchSummary(BaseModel):
    """Aggregate of a batch analysis run."""

    total_tasks: int = Field(default=0, ge=0)
    outcomes: list[TaskOutcome] = Field(default_factory=list)
    estimated_cost_usd: float = Field(default=0.0, ge=0.0)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def errors(self) -> list[str]:
        return [
            f"Failed to analyze task {o.task.clean_text!r}: {o.error}"
            for o in self.outcomes
            if o.error
        ]
