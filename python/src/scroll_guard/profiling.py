"""
Latency profiling for pipeline phases.
"""

import logging
import time

logger = logging.getLogger(__name__)


class LatencyTracker:
    """
    Context manager to track latency for a code block.

    Usage:
        with LatencyTracker("model_call") as tracker:
            ...
        tracker.elapsed_ms
    """
    def __init__(self, phase_name: str = "operation"):
        self.phase_name = phase_name
        self.start_time = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        logger.debug(
            f"[LATENCY] {self.phase_name}: {self.elapsed_ms:.1f}ms",
            extra={"phase": self.phase_name, "elapsed_ms": round(self.elapsed_ms, 1)},
        )
