"""
Per-client request limiting for the analysis tool.

Fixed-window counter: each client gets a 15 minute window that starts with
its first request. Bursts straddling a window boundary can briefly reach
twice the limit; that coarseness is accepted in exchange for O(1) state per
client.
"""

import math
import threading
from dataclasses import dataclass
from typing import Any, Callable

from .cache_manager import now_ms

RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
RATE_LIMIT_MAX_REQUESTS = 100


@dataclass
class RateLimitRecord:
    count: int
    window_reset_at: int  # epoch ms


@dataclass(frozen=True)
class RateLimitDecision:
    permitted: bool
    retry_after_seconds: int = 0


class ClientRateLimiter:
    """Fixed-window request counter keyed by client identifier."""

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._rejected = 0

    def _purge_expired(self, now: int) -> None:
        expired = [k for k, r in self._records.items() if r.window_reset_at <= now]
        for k in expired:
            del self._records[k]

    def allow(self, client_id: str) -> RateLimitDecision:
        """Count a request from client_id and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            record = self._records.get(client_id)
            if record is None:
                record = RateLimitRecord(count=1, window_reset_at=now + self.window_ms)
                self._records[client_id] = record
            else:
                record.count += 1

            if record.count > self.max_requests:
                self._rejected += 1
                retry_after = math.ceil((record.window_reset_at - now) / 1000)
                return RateLimitDecision(permitted=False, retry_after_seconds=retry_after)

            return RateLimitDecision(permitted=True)

    def get_stats(self) -> dict[str, Any]:
        """Get rate limiter statistics."""
        with self._lock:
            return {
                "tracked_clients": len(self._records),
                "rejected_requests": self._rejected,
                "max_requests": self.max_requests,
                "window_seconds": self.window_ms // 1000,
            }
