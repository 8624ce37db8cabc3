"""Prompt templates and the builders that render them."""

from __future__ import annotations

from smart_extract.prompts.builder import (
    VIDEO_TYPES,
    build_summary_prompt,
    build_task_prompt,
    build_video_metadata_prompt,
    build_video_prompt,
    detect_video_type,
    is_question,
    load_prompt,
    render_template,
)

__all__ = [
    "VIDEO_TYPES",
    "build_summary_prompt",
    "build_task_prompt",
    "build_video_metadata_prompt",
    "build_video_prompt",
    "detect_video_type",
    "is_question",
    "load_prompt",
    "render_template",
]
