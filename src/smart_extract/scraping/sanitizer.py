"""Naive HTML-to-text conversion used as the extraction cascade's last resort.

Strips script/style blocks and every remaining tag, and neutralizes chat
boundary markers that could be read as instructions once the text is pasted
into a prompt.
"""

from __future__ import annotations

import html as html_lib
import re
from typing import ClassVar

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class HTMLSanitizer:
    """Converts raw HTML into whitespace-collapsed plain text.

    Attributes:
        neutralize_markers: Replace chat boundary markers with ``[REMOVED]``.
    """

    # Elements removed together with their content
    STRIP_ELEMENTS: ClassVar[list[str]] = [
        r"<script[\s>].*?</script>",
        r"<style[\s>].*?</style>",
        r"<noscript[\s>].*?</noscript>",
        r"<template[\s>].*?</template>",
        r"<!--.*?-->",
    ]

    INJECTION_MARKERS: ClassVar[list[str]] = [
        r"<\|im_start\|>",
        r"<\|im_end\|>",
        r"\[INST\]",
        r"\[/INST\]",
        r"<<SYS>>",
        r"<</SYS>>",
        r"<\|system\|>",
        r"<\|user\|>",
        r"<\|assistant\|>",
    ]

    def __init__(self, neutralize_markers: bool = True) -> None:
        self.neutralize_markers = neutralize_markers

    def strip_blocks(self, html: str) -> str:
        """Remove script-like blocks and comments, keeping other markup."""
        working = html
        for pattern in self.STRIP_ELEMENTS:
            working = re.sub(pattern, "", working, flags=re.DOTALL | re.IGNORECASE)
        return working

    def to_text(self, html: str) -> str:
        """Strip all markup and return clean text.

        Args:
            html: Raw HTML string.

        Returns:
            Plain text with entities decoded and whitespace collapsed.
        """
        text = re.sub(r"<[^>]*>", " ", self.strip_blocks(html))
        text = html_lib.unescape(text)

        if self.neutralize_markers:
            found = 0
            for marker in self.INJECTION_MARKERS:
                text, count = re.subn(marker, "[REMOVED]", text)
                found += count
            if found:
                logger.warning("injection_markers_detected", count=found)

        return re.sub(r"\s+", " ", text).strip()
