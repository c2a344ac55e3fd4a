"""
Result Cache for Scroll Guard

Keeps recent analysis results keyed by request fingerprint so repeated
content on the same domain skips the model call.

Key features:
- TTL expiry (2 hours), checked lazily on read
- Capacity limit (1000 entries) enforced on every set
- Frequency-aware eviction: expired entries go first, then the 100
  entries with the fewest hits
- Thread-safe read-modify-write behind a single lock
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from .common_types import AnalysisResult

logger = logging.getLogger(__name__)

CACHE_TTL_MS = 2 * 60 * 60 * 1000
CACHE_MAX_SIZE = 1000
EVICTION_BATCH = 100
KEY_PREFIX_CHARS = 8


def now_ms() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    """A cached result. Owned by AnalysisCache."""
    result: AnalysisResult
    inserted_at: int  # epoch ms
    hit_count: int = 0


class AnalysisCache:
    """
    Bounded, TTL-aware store of analysis results.

    Eviction approximates LFU rather than LRU: a result is worth keeping when
    the same content pattern keeps coming back, not merely because it was
    read recently.
    """

    def __init__(
        self,
        max_size: int = CACHE_MAX_SIZE,
        ttl_ms: int = CACHE_TTL_MS,
        eviction_batch: int = EVICTION_BATCH,
        clock: Callable[[], int] = now_ms,
    ):
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self.eviction_batch = eviction_batch
        self._clock = clock
        # dict preserves insertion order, which breaks hit-count ties on eviction
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: int) -> bool:
        return now - entry.inserted_at > self.ttl_ms

    def get(self, key: str) -> AnalysisResult | None:
        """Get a cached result if present and not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                self._misses += 1
                return None

            entry.hit_count += 1
            self._hits += 1
            hit_count = entry.hit_count
            result = replace(entry.result)

        logger.info("Cache hit", extra={"key": key[:KEY_PREFIX_CHARS], "hit_count": hit_count})
        return result

    def set(self, key: str, result: AnalysisResult) -> None:
        """Cache a result, reclaiming space first when full."""
        removed = 0
        with self._lock:
            if len(self._entries) >= self.max_size:
                removed = self._reclaim()
            self._entries[key] = CacheEntry(result=result, inserted_at=self._clock())

        if removed:
            logger.info("Cache cleaned", extra={"entries_removed": removed})

    def _reclaim(self) -> int:
        """Drop expired entries, then the least-hit ones if still full. Caller holds the lock."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for k in expired:
            del self._entries[k]
        removed = len(expired)

        if len(self._entries) >= self.max_size:
            # sorted() is stable, so equal hit counts keep insertion order
            coldest = sorted(self._entries.items(), key=lambda item: item[1].hit_count)
            for k, _ in coldest[:self.eviction_batch]:
                del self._entries[k]
            removed += min(self.eviction_batch, len(coldest))

        return removed

    def stats(self) -> dict[str, Any]:
        """Read-only snapshot of the cache. Keys are truncated."""
        with self._lock:
            now = self._clock()
            entries = [
                {
                    "key_prefix": key[:KEY_PREFIX_CHARS],
                    "age_ms": now - entry.inserted_at,
                    "hits": entry.hit_count,
                }
                for key, entry in self._entries.items()
            ]
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_ms": self.ttl_ms,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
                "entries": entries,
            }
