"""
Common types for Scroll Guard analysis.

Contains:
- Enums: UserPattern, RecommendedAction, AnalysisSource
- Dataclasses: BrowsingContext, AnalysisRequest, AnalysisResult, AnalysisOutcome
- The fallback result returned when the model gives nothing usable

Score scale: addiction_risk and educational_value are fractional scores in
[0.0, 1.0]. There is no 0-10 variant anywhere in the package.
"""

import time
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any


SCORE_MIN = 0.0
SCORE_MAX = 1.0
NEUTRAL_SCORE = 0.5

DEFAULT_REASONING = "Analysis completed"


class UserPattern(str, Enum):
    DEEP_FOCUS = "Deep Focus/Learning"
    ACTIVE_SOCIALIZING = "Active Socializing"
    INTENTIONAL_LEISURE = "Intentional Leisure"
    CASUAL_BROWSING = "Casual Browsing/Catch-up"
    DOOMSCROLLING = "Passive Consumption/Doomscrolling"
    ANXIETY_DRIVEN = "Anxiety-Driven Information Seeking"

    @classmethod
    def from_value(cls, value: Any) -> "UserPattern | None":
        """Return the matching variant, or None for anything unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


class RecommendedAction(str, Enum):
    SESSION_EXTENSION = "session_extension"
    GENTLE_REWARD = "gentle_reward"
    MAINTAIN_LIMIT = "maintain_limit"
    SHOW_WARNING = "show_warning"
    IMMEDIATE_BREAK = "immediate_break"

    @classmethod
    def from_value(cls, value: Any) -> "RecommendedAction | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class AnalysisSource(str, Enum):
    CACHE = "cache"
    MODEL = "model"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class BrowsingContext:
    """Behavioral context sent alongside the content snippet."""
    scroll_count: float
    max_scrolls: float
    domain: str
    timestamp: float  # epoch ms
    time_of_day: str
    scroll_time: float  # seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "scrollCount": self.scroll_count,
            "maxScrolls": self.max_scrolls,
            "domain": self.domain,
            "timestamp": self.timestamp,
            "timeOfDay": self.time_of_day,
            "scrollTime": self.scroll_time,
        }


@dataclass(frozen=True)
class AnalysisRequest:
    """A validated analysis request. Never mutated."""
    content: str
    context: BrowsingContext


@dataclass(frozen=True)
class AnalysisResult:
    """A validated classification of the user's browsing pattern."""
    user_pattern: UserPattern
    addiction_risk: float
    educational_value: float
    recommended_action: RecommendedAction
    bonus_scrolls: int
    reasoning: str
    break_suggestion: str | None = None
    is_fallback: bool = False

    def with_bonus(self, bonus_scrolls: int) -> "AnalysisResult":
        """Copy of this result carrying a different reward."""
        return replace(self, bonus_scrolls=bonus_scrolls)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["user_pattern"] = self.user_pattern.value
        data["recommended_action"] = self.recommended_action.value
        return data


FALLBACK_BONUS_SCROLLS = 5


def fallback_result() -> AnalysisResult:
    """
    The fixed, conservative result used when the model is unreachable or its
    output is unrecoverable.
    """
    return AnalysisResult(
        user_pattern=UserPattern.CASUAL_BROWSING,
        addiction_risk=NEUTRAL_SCORE,
        educational_value=NEUTRAL_SCORE,
        recommended_action=RecommendedAction.MAINTAIN_LIMIT,
        bonus_scrolls=FALLBACK_BONUS_SCROLLS,
        reasoning="Unable to analyze content right now. Keeping your current limit.",
        break_suggestion="Take a short break: stand up, stretch and look away from the screen.",
        is_fallback=True,
    )


@dataclass
class AnalysisOutcome:
    """A result plus where it came from."""
    result: AnalysisResult
    source: AnalysisSource
    fingerprint: str
    elapsed_ms: float = 0.0
    warnings: tuple[str, ...] = ()

    @property
    def cache_hit(self) -> bool:
        return self.source == AnalysisSource.CACHE

    def to_response(self, request_id: str | None = None) -> dict[str, Any]:
        """Render the response envelope sent back to the caller."""
        return {
            "success": True,
            "data": self.result.to_dict(),
            "source": self.source.value,
            "cached": self.cache_hit,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "timestamp": iso_now(),
            "requestId": request_id or "",
        }


def iso_now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
