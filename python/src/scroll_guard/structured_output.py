"""
Structured Output Parsing for Scroll Guard

The model is asked for a single JSON object but nothing guarantees it. It may
wrap the object in a code fence, append commentary, leave trailing commas or
return prose only. This module turns any raw text into a valid
AnalysisResult:

1. Strip a leading code fence
2. Extract a candidate object with increasingly permissive patterns
3. Trim trailing prose after the last closing brace
4. Decode strictly, then leniently, then with a narrow last-resort pattern
5. Repair every field into its declared domain

If nothing recoverable is found the fallback result is returned. parse()
never raises for malformed model output.
"""

import json
import logging
import math
import re
from typing import Any, Callable

from .common_types import (
    AnalysisResult,
    DEFAULT_REASONING,
    NEUTRAL_SCORE,
    RecommendedAction,
    SCORE_MAX,
    SCORE_MIN,
    UserPattern,
    fallback_result,
)
from .errors import ParseError

logger = logging.getLogger(__name__)

MANDATORY_FIELDS = ("user_pattern", "recommended_action")
DEFAULT_BONUS_CEILING = 25

_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_DISCRIMINATOR_OBJECT = re.compile(r'\{[^{}]*"user_pattern"[^{}]*\}', re.DOTALL)


# =============================================================================
# EXTRACTION STAGES
# =============================================================================
# Each stage is text -> candidate | None. The first non-None wins.

_OBJECT_AT_END = re.compile(r"\{.*\}\s*\Z", re.DOTALL)
_OBJECT_BEFORE_NEWLINE = re.compile(r"\{.*\}(?=[ \t]*\n)", re.DOTALL)
_OBJECT_ONE_LEVEL_NESTED = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}")
_GREEDY_BRACE_SPAN = re.compile(r"\{.*\}", re.DOTALL)


def _stage(pattern: re.Pattern) -> Callable[[str], str | None]:
    def extract(text: str) -> str | None:
        match = pattern.search(text)
        return match.group(0) if match else None
    return extract


EXTRACTION_STAGES: list[tuple[str, Callable[[str], str | None]]] = [
    ("object_at_end", _stage(_OBJECT_AT_END)),
    ("object_before_newline", _stage(_OBJECT_BEFORE_NEWLINE)),
    ("object_one_level_nested", _stage(_OBJECT_ONE_LEVEL_NESTED)),
    ("greedy_brace_span", _stage(_GREEDY_BRACE_SPAN)),
]


def strip_code_fence(text: str) -> str:
    """Remove a leading (optionally language-tagged) fence and a fence closing the text."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = _OPENING_FENCE.sub("", stripped, count=1)
    return _CLOSING_FENCE.sub("", stripped).strip()


def extract_candidate(text: str) -> str | None:
    """Run the extraction stages in order and trim the winner to its last brace."""
    for name, stage in EXTRACTION_STAGES:
        candidate = stage(text)
        if candidate is not None:
            logger.debug("Extracted JSON candidate", extra={"stage": name, "length": len(candidate)})
            return candidate[:candidate.rfind("}") + 1]
    return None


def _loads_object(candidate: str) -> dict[str, Any]:
    """Strict decode, then a retry without trailing commas."""
    for attempt in (candidate, _TRAILING_COMMA.sub(r"\1", candidate)):
        try:
            decoded = json.loads(attempt)
        except (ValueError, RecursionError):
            continue
        if isinstance(decoded, dict):
            return decoded
        raise ParseError(f"Expected a JSON object, got {type(decoded).__name__}")
    raise ParseError("Candidate is not valid JSON")


def decode_response(raw_text: str) -> dict[str, Any]:
    """
    Recover the analysis object from raw model text.

    Raises:
        ParseError: When no stage yields a JSON object
    """
    text = strip_code_fence(raw_text)

    candidate = extract_candidate(text)
    if candidate is not None:
        try:
            return _loads_object(candidate)
        except ParseError as e:
            logger.debug("Primary candidate rejected", extra={"reason": str(e)})

    narrow = _DISCRIMINATOR_OBJECT.search(text)
    if narrow is None:
        raise ParseError("No JSON object found in model response")
    return _loads_object(narrow.group(0))


# =============================================================================
# FIELD REPAIR
# =============================================================================


def _coerce_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        # ints past the float range overflow instead of becoming inf
        return None
    return number if math.isfinite(number) else None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def repair_score(value: Any) -> float:
    """Clamp a score into [0.0, 1.0]; missing or non-numeric becomes neutral."""
    number = _coerce_number(value)
    if number is None:
        return NEUTRAL_SCORE
    return _clamp(number, SCORE_MIN, SCORE_MAX)


def repair_bonus(value: Any, ceiling: int) -> int:
    number = _coerce_number(value)
    if number is None:
        return 0
    return int(_clamp(number, 0, ceiling))


class ResponseParser:
    """
    Parse raw model text into a repaired AnalysisResult.

    bonus_scrolls is clamped into [0, bonus_ceiling] here; the reward policy
    overwrites it afterwards.
    """

    def __init__(self, bonus_ceiling: int = DEFAULT_BONUS_CEILING):
        self.bonus_ceiling = bonus_ceiling
        self._fallback_count = 0

    @property
    def fallback_count(self) -> int:
        return self._fallback_count

    def parse(self, raw_text: Any) -> AnalysisResult:
        """Total function: always returns a valid AnalysisResult."""
        if not isinstance(raw_text, str) or not raw_text.strip():
            return self._fallback("empty model response")

        try:
            decoded = decode_response(raw_text)
        except ParseError as e:
            return self._fallback(str(e), raw_text)

        if not any(name in decoded for name in MANDATORY_FIELDS):
            return self._fallback("response lacks user_pattern and recommended_action", raw_text)

        return self.repair(decoded)

    def repair(self, data: dict[str, Any]) -> AnalysisResult:
        """Force every field of a decoded object into its declared domain."""
        pattern = UserPattern.from_value(data.get("user_pattern"))
        if pattern is None:
            logger.warning("Unknown user_pattern from model", extra={"value": str(data.get("user_pattern"))[:80]})
            pattern = UserPattern.CASUAL_BROWSING

        action = RecommendedAction.from_value(data.get("recommended_action"))
        if action is None:
            logger.warning(
                "Unknown recommended_action from model",
                extra={"value": str(data.get("recommended_action"))[:80]},
            )
            action = RecommendedAction.MAINTAIN_LIMIT

        reasoning = data.get("reasoning")
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = DEFAULT_REASONING

        suggestion = data.get("break_suggestion")
        if not isinstance(suggestion, str) or not suggestion.strip():
            suggestion = None

        return AnalysisResult(
            user_pattern=pattern,
            addiction_risk=repair_score(data.get("addiction_risk")),
            educational_value=repair_score(data.get("educational_value")),
            recommended_action=action,
            bonus_scrolls=repair_bonus(data.get("bonus_scrolls"), self.bonus_ceiling),
            reasoning=reasoning.strip(),
            break_suggestion=suggestion.strip() if suggestion else None,
        )

    def _fallback(self, reason: str, raw_text: str = "") -> AnalysisResult:
        self._fallback_count += 1
        logger.warning("Unrecoverable model response, using fallback result", extra={"reason": reason})
        if raw_text:
            logger.debug("Unparsed model response", extra={"preview": raw_text[:200]})
        return fallback_result()
