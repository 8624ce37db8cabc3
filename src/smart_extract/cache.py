"""TTL cache for URL summaries backed by ``diskcache``.

Summaries are keyed by URL (optionally combined with a hash of the task
context) and stored with ``expire=ttl_seconds``; diskcache drops an entry
once its TTL has passed. Each value is stored alongside the time it was
written so ``stats()`` can report the age of the oldest entry.

Without a configured directory the store lives in a temporary directory
that is removed on ``close()``, so summaries last for one run.
"""

from __future__ import annotations

import hashlib
import shutil
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import diskcache
import structlog

from smart_extract.models import CacheEntry, CacheStats

if TYPE_CHECKING:
    from collections.abc import Callable

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_TTL_SECONDS = 86400  # 24 hours


def make_key(url: str, context: str | None = None) -> str:
    """Build a cache key from a URL and an optional task context.

    Args:
        url: The source URL.
        context: Task text the summary was produced for.

    Returns:
        ``url`` alone, or ``url#<sha256 prefix>`` when a context is given.
    """
    if not context:
        return url
    digest = hashlib.sha256(context.encode()).hexdigest()
    return f"{url}#{digest[:16]}"


class ContentCache:
    """Summary store with a fixed time-to-live.

    Attributes:
        ttl_seconds: Entry lifetime in seconds.
        enabled: When False, reads always miss and writes are ignored.
        cache_dir: Directory of the diskcache store, or None for a
            temporary one.
    """

    def __init__(
        self,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        enabled: bool = True,
        cache_dir: Path | str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime in seconds.
            enabled: Whether caching is active.
            cache_dir: Persistent store directory; a temporary directory is
                created on first use when omitted.
            clock: Wall-clock source for entry timestamps.
        """
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self._clock = clock
        self._cache: diskcache.Cache | None = None

    def _get_cache(self) -> diskcache.Cache:
        """Lazy-initialize the diskcache.Cache instance."""
        if self._cache is not None:
            return self._cache
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(self.cache_dir))
        else:
            self._cache = diskcache.Cache()
        return self._cache

    def get(self, key: str) -> str | None:
        """Return the cached summary for ``key``, or ``None`` on miss or expiry."""
        if not self.enabled:
            return None
        stored: Any = self._get_cache().get(key)
        if stored is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        value, _ = stored
        return value  # type: ignore[no-any-return]

    def set(self, key: str, value: str) -> None:
        if not self.enabled:
            return
        self._get_cache().set(key, (value, self._clock()), expire=self.ttl_seconds)
        logger.debug("cache_set", key=key, size=len(value), ttl_seconds=self.ttl_seconds)

    def clear(self) -> None:
        if self._cache is None:
            logger.info("cache_cleared", entries=0)
            return
        self._cache.expire()
        count = len(self._cache)
        self._cache.clear()
        logger.info("cache_cleared", entries=count)

    def entries(self) -> list[CacheEntry]:
        """Return the live entries, dropping expired ones from the store first."""
        if self._cache is None:
            return []
        self._cache.expire()
        live: list[CacheEntry] = []
        for key in list(self._cache):
            stored: Any = self._cache.get(key)
            if stored is None:
                continue
            value, stored_at = stored
            live.append(CacheEntry(key=key, value=value, stored_at=stored_at))
        return live

    def stats(self) -> CacheStats:
        """Report the number of live entries and the age of the oldest."""
        live = self.entries()
        if not live:
            return CacheStats(size=0, oldest_entry_age=None)
        oldest = min(e.stored_at for e in live)
        return CacheStats(size=len(live), oldest_entry_age=self._clock() - oldest)

    def __len__(self) -> int:
        return self.stats().size

    def close(self) -> None:
        """Close the store, removing it when it was a temporary directory."""
        if self._cache is None:
            return
        directory = self._cache.directory
        self._cache.close()
        self._cache = None
        if self.cache_dir is None:
            shutil.rmtree(directory, ignore_errors=True)
