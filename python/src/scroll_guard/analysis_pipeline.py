"""
Analysis Pipeline for Scroll Guard

Composes the pipeline stages:

    VALIDATING -> CACHE_LOOKUP -> DONE                    (cache hit)
                               -> PROMPTING -> MODEL_CALLING -> PARSING
                                  -> REWARD_COMPUTING -> CACHE_STORING -> DONE

- A validation failure raises ValidationError; nothing else reaches the caller.
- A model failure returns the fallback result and leaves the cache alone, so a
  transient outage cannot pin a low-quality answer to a fingerprint.
- A response that parses only to the fallback result is not cached either.
- The cache is never locked while the model call is awaited. Two concurrent
  misses on the same fingerprint both call the model.
"""

import logging
import time
from enum import Enum
from typing import Any

from .cache_manager import AnalysisCache
from .common_types import AnalysisOutcome, AnalysisRequest, AnalysisSource, fallback_result
from .errors import ModelTransientError
from .fingerprint import fingerprint
from .llm_client import ModelClient
from .profiling import LatencyTracker
from .prompt_builder import build_prompt
from .reward_policy import RewardPolicy
from .structured_output import ResponseParser
from .validation import validate_request

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    VALIDATING = "validating"
    CACHE_LOOKUP = "cache_lookup"
    PROMPTING = "prompting"
    MODEL_CALLING = "model_calling"
    PARSING = "parsing"
    REWARD_COMPUTING = "reward_computing"
    CACHE_STORING = "cache_storing"
    DONE = "done"


class AnalysisPipeline:
    """Validate, consult the cache, ask the model, repair and reward."""

    def __init__(
        self,
        model_client: ModelClient,
        cache: AnalysisCache,
        reward_policy: RewardPolicy,
        parser: ResponseParser | None = None,
    ):
        self.model_client = model_client
        self.cache = cache
        self.reward_policy = reward_policy
        self.parser = parser or ResponseParser(bonus_ceiling=reward_policy.ceiling)
        self._source_counts = {source: 0 for source in AnalysisSource}

    def _enter(self, state: PipelineState, key: str = "") -> None:
        logger.debug("Pipeline state", extra={"state": state.value, "key": key[:8]})

    async def analyze(self, payload: Any) -> AnalysisOutcome:
        """
        Analyze a raw request payload.

        Raises:
            ValidationError: If the payload is structurally invalid
        """
        self._enter(PipelineState.VALIDATING)
        validated = validate_request(payload)
        outcome = await self.analyze_request(validated.request)
        outcome.warnings = tuple(validated.warnings)
        return outcome

    async def analyze_request(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Run an already validated request through the pipeline."""
        start = time.perf_counter()

        key = fingerprint(request.content, request.context.domain)
        self._enter(PipelineState.CACHE_LOOKUP, key)
        cached = self.cache.get(key)
        if cached is not None:
            return self._finish(cached, AnalysisSource.CACHE, key, start)

        self._enter(PipelineState.PROMPTING, key)
        prompt = build_prompt(request)

        self._enter(PipelineState.MODEL_CALLING, key)
        try:
            with LatencyTracker("model_call"):
                raw_text = await self.model_client.send(prompt)
        except ModelTransientError as e:
            logger.error("Model call failed, returning fallback result", extra={"error": str(e)})
            return self._finish(fallback_result(), AnalysisSource.FALLBACK, key, start)

        self._enter(PipelineState.PARSING, key)
        with LatencyTracker("parse_response"):
            parsed = self.parser.parse(raw_text)
        if parsed.is_fallback:
            return self._finish(parsed, AnalysisSource.FALLBACK, key, start)

        self._enter(PipelineState.REWARD_COMPUTING, key)
        result = parsed.with_bonus(self.reward_policy.draw(parsed.user_pattern))

        self._enter(PipelineState.CACHE_STORING, key)
        self.cache.set(key, result)

        return self._finish(result, AnalysisSource.MODEL, key, start)

    def _finish(self, result, source: AnalysisSource, key: str, start: float) -> AnalysisOutcome:
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._source_counts[source] += 1
        self._enter(PipelineState.DONE, key)
        logger.info(
            "Analysis complete",
            extra={
                "source": source.value,
                "user_pattern": result.user_pattern.value,
                "recommended_action": result.recommended_action.value,
                "bonus_scrolls": result.bonus_scrolls,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )
        return AnalysisOutcome(result=result, source=source, fingerprint=key, elapsed_ms=elapsed_ms)

    def get_stats(self) -> dict[str, Any]:
        return {
            "outcomes": {source.value: count for source, count in self._source_counts.items()},
            "parser_fallbacks": self.parser.fallback_count,
            "reward_ranges": self.reward_policy.describe(),
            "reward_source": "policy",
            "score_scale": [0.0, 1.0],
        }
