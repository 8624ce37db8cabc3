"""YouTube transcript and metadata extraction via the Innertube player API.

The watch page supplies both the Innertube API key and the metadata used
when no caption track exists. Nothing in this module raises past
``YouTubeExtractor.extract``; every failure becomes a reason string.
"""

from __future__ import annotations

import html as html_lib
import json
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlparse

import structlog

from smart_extract.models import (
    ExtractionResult,
    TranscriptSegment,
    VideoContent,
    VideoMetadata,
    VideoTranscript,
)

if TYPE_CHECKING:
    from smart_extract.scraping.fetcher import HttpFetcher

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

TRANSCRIPT_STRATEGY = "youtube_transcript"
METADATA_STRATEGY = "youtube_metadata"

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
PLAYER_URL = "https://www.youtube.com/youtubei/v1/player?key={api_key}"

_ANDROID_CLIENT_VERSION = "20.10.38"
_ANDROID_USER_AGENT = (
    f"com.google.android.youtube/{_ANDROID_CLIENT_VERSION} (Linux; U; Android 11) gzip"
)

_VIDEO_ID_RE = re.compile(
    r"(?:youtube\.com/(?:watch\?(?:.*&)?v=|v/|embed/|shorts/|live/)|youtu\.be/)"
    r"([A-Za-z0-9_-]{6,})"
)
_API_KEY_RE = re.compile(r'"INNERTUBE_API_KEY":"([^"]+)"')
_TEXT_RE = re.compile(r"<text\b([^>]*)>(.*?)</text>", re.DOTALL)
_START_RE = re.compile(r'\bstart="([^"]*)"')
_DUR_RE = re.compile(r'\bdur="([^"]*)"')
_CHAPTER_RE = re.compile(r"^\(?((?:\d{1,2}:)?\d{1,2}:\d{2})\)?\s*[-–:]?\s+(.+)$")


def _json_string_field(page: str, field: str) -> str | None:
    match = re.search(rf'"{field}":"((?:[^"\\]|\\.)*)"', page)
    if not match:
        return None
    try:
        return json.loads(f'"{match.group(1)}"')
    except json.JSONDecodeError:
        return match.group(1)


def _meta_content(page: str, prop: str) -> str | None:
    match = re.search(
        rf'<meta[^>]*(?:property|name)="{re.escape(prop)}"[^>]*content="([^"]*)"',
        page,
        re.IGNORECASE,
    )
    return html_lib.unescape(match.group(1)) if match else None


def _format_duration(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def is_youtube_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host == "youtu.be" or host == "youtube.com" or host.endswith(".youtube.com")


def extract_video_id(url: str) -> str | None:
    """Return the video ID for watch, short, embed and ``youtu.be`` URLs."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host.endswith("youtube.com") and parsed.path == "/watch":
        ids = parse_qs(parsed.query).get("v")
        return ids[0] if ids else None
    match = _VIDEO_ID_RE.search(url)
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_transcript_xml(xml: str) -> VideoTranscript | None:
    """Parse a timed-text document into ordered segments.

    Each ``<text start="S" dur="D">`` element becomes a segment ending at
    ``S + D``. Entity-encoded text is decoded; empty cues are dropped.

    Args:
        xml: Caption document body.

    Returns:
        The transcript, or ``None`` when no cue carried text.
    """
    segments: list[TranscriptSegment] = []
    for attrs, raw_text in _TEXT_RE.findall(xml):
        start_match = _START_RE.search(attrs)
        if not start_match:
            continue
        dur_match = _DUR_RE.search(attrs)
        try:
            start = float(start_match.group(1))
            duration = float(dur_match.group(1)) if dur_match else 0.0
        except ValueError:
            continue
        text = html_lib.unescape(re.sub(r"<[^>]+>", "", raw_text)).strip()
        if text:
            segments.append(
                TranscriptSegment(text=text, start_time=start, end_time=start + duration)
            )

    if not segments:
        return None
    segments.sort(key=lambda s: s.start_time)
    return VideoTranscript(
        full_text=" ".join(s.text for s in segments),
        segments=segments,
    )


def parse_watch_metadata(video_id: str, page: str) -> VideoMetadata:
    """Scrape title, channel, description and counts from a watch page."""
    title = _meta_content(page, "og:title")
    if not title:
        match = re.search(r"<title>(.*?)</title>", page, re.DOTALL | re.IGNORECASE)
        if match:
            title = html_lib.unescape(match.group(1)).removesuffix(" - YouTube").strip()

    channel = _json_string_field(page, "ownerChannelName") or _json_string_field(
        page, "author"
    )
    description = (
        _json_string_field(page, "shortDescription")
        or _meta_content(page, "og:description")
        or ""
    )

    duration = None
    length = re.search(r'"lengthSeconds":"(\d+)"', page)
    if length:
        duration = _format_duration(int(length.group(1)))

    views = re.search(r'"viewCount":"(\d+)"', page)

    chapters = []
    for line in description.splitlines():
        match = _CHAPTER_RE.match(line.strip())
        if match:
            chapters.append(f"{match.group(1)} {match.group(2).strip()}")

    return VideoMetadata(
        video_id=video_id,
        title=title or None,
        channel=channel or None,
        description=description,
        duration=duration,
        view_count=int(views.group(1)) if views else None,
        chapters=chapters,
    )


def content_richness(metadata: VideoMetadata) -> int:
    """Score (0-5) how much material exists for an analysis without a transcript."""
    score = 0
    if len(metadata.description) > 200:
        score += 2
    elif len(metadata.description) > 50:
        score += 1
    if len(metadata.chapters) >= 3:
        score += 2
    elif metadata.chapters:
        score += 1
    if metadata.channel:
        score += 1
    return min(score, 5)


def render_metadata_text(metadata: VideoMetadata) -> str:
    """Flatten metadata into the text block used by metadata-only prompts."""
    lines = [
        f"Title: {metadata.title or 'Unknown'}",
        f"Channel: {metadata.channel or 'Unknown'}",
    ]
    if metadata.duration:
        lines.append(f"Duration: {metadata.duration}")
    if metadata.description:
        lines.append(f"\nDescription:\n{metadata.description}")
    if metadata.chapters:
        lines.append("\nChapters:\n" + "\n".join(metadata.chapters))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class YouTubeExtractor:
    """Retrieves caption transcripts, falling back to watch-page metadata.

    Attributes:
        rich_content_threshold: Minimum richness for a ``rich_content`` analysis.
    """

    name = TRANSCRIPT_STRATEGY

    def __init__(self, fetcher: HttpFetcher, rich_content_threshold: int = 3) -> None:
        self.fetcher = fetcher
        self.rich_content_threshold = rich_content_threshold

    def matches(self, url: str) -> bool:
        return is_youtube_url(url)

    async def fetch_transcript(
        self,
        video_id: str,
        watch_html: str | None = None,
    ) -> tuple[VideoTranscript | None, str | None]:
        """Fetch the caption track through the Innertube player API.

        Args:
            video_id: The YouTube video ID.
            watch_html: Already-fetched watch page, to avoid a second request.

        Returns:
            ``(transcript, None)`` on success, else ``(None, reason)``.
        """
        if watch_html is None:
            page = await self.fetcher.fetch(WATCH_URL.format(video_id=video_id))
            if not page.ok:
                return None, f"watch page unavailable ({page.error})"
            watch_html = page.text

        key_match = _API_KEY_RE.search(watch_html)
        if not key_match:
            return None, "INNERTUBE_API_KEY not found in page"

        player = await self.fetcher.fetch(
            PLAYER_URL.format(api_key=key_match.group(1)),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "User-Agent": _ANDROID_USER_AGENT,
            },
            json_body={
                "context": {
                    "client": {
                        "clientName": "ANDROID",
                        "clientVersion": _ANDROID_CLIENT_VERSION,
                    }
                },
                "videoId": video_id,
            },
        )
        if not player.ok:
            return None, f"player API request failed ({player.error})"

        track_url = self._select_track_url(player.parsed_json())
        if track_url is None:
            return None, "no caption tracks in player response"

        captions = await self.fetcher.fetch(track_url)
        if not captions.ok:
            return None, f"caption fetch failed ({captions.error})"

        transcript = parse_transcript_xml(captions.text)
        if transcript is None:
            return None, "caption track contained no text"

        logger.debug(
            "transcript_fetched",
            video_id=video_id,
            segments=len(transcript.segments),
            characters=len(transcript.full_text),
        )
        return transcript, None

    @staticmethod
    def _select_track_url(player_data: Any) -> str | None:
        if not isinstance(player_data, dict):
            return None
        captions = player_data.get("captions")
        renderer = (
            captions.get("playerCaptionsTracklistRenderer")
            if isinstance(captions, dict)
            else None
        )
        tracks = renderer.get("captionTracks") if isinstance(renderer, dict) else None
        if not isinstance(tracks, list):
            return None
        usable = [t for t in tracks if isinstance(t, dict) and t.get("baseUrl")]
        if not usable:
            return None
        track = next((t for t in usable if t.get("languageCode") == "en"), usable[0])
        return re.sub(r"&fmt=\w+$", "", str(track["baseUrl"]))

    async def extract(self, url: str) -> ExtractionResult:
        """Run the YouTube strategy for ``url``.

        Args:
            url: A YouTube URL.

        Returns:
            FOUND carrying a ``VideoContent`` (transcript or metadata-only),
            NOT_APPLICABLE for other URLs, FAILED if no video ID is present.
        """
        if not self.matches(url):
            return ExtractionResult.not_applicable(self.name)
        video_id = extract_video_id(url)
        if video_id is None:
            return ExtractionResult.failed(self.name, "could not extract video ID")

        page = await self.fetcher.fetch(WATCH_URL.format(video_id=video_id))
        if page.ok:
            metadata = parse_watch_metadata(video_id, page.text)
            transcript, reason = await self.fetch_transcript(video_id, page.text)
        else:
            metadata = VideoMetadata(video_id=video_id, title=f"YouTube Video {video_id}")
            transcript, reason = None, f"watch page unavailable ({page.error})"

        richness = content_richness(metadata)
        if transcript is not None:
            video = VideoContent(
                metadata=metadata,
                transcript=transcript,
                analysis_type="transcript",
                content_richness=richness,
            )
            return ExtractionResult.hit(
                transcript.full_text,
                TRANSCRIPT_STRATEGY,
                title=metadata.title,
                video=video,
            )

        logger.info("transcript_unavailable", video_id=video_id, reason=reason)
        analysis_type = (
            "rich_content" if richness >= self.rich_content_threshold else "metadata"
        )
        video = VideoContent(
            metadata=metadata,
            analysis_type=analysis_type,
            content_richness=richness,
            transcript_reason=reason,
        )
        return ExtractionResult.hit(
            render_metadata_text(metadata),
            METADATA_STRATEGY,
            title=metadata.title,
            video=video,
        )
