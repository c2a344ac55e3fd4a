"""
Reward policy: how many bonus scrolls each browsing pattern earns.

The model is never trusted with the reward. It classifies the pattern and
this table decides the bonus, so calibration stays in one place.
"""

import random
from dataclasses import dataclass

from .common_types import UserPattern


@dataclass(frozen=True)
class RewardRange:
    minimum: int
    maximum: int

    def __contains__(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


DEFAULT_REWARD_RANGES: dict[UserPattern, RewardRange] = {
    UserPattern.DEEP_FOCUS: RewardRange(20, 25),
    UserPattern.ACTIVE_SOCIALIZING: RewardRange(15, 20),
    UserPattern.INTENTIONAL_LEISURE: RewardRange(10, 15),
    UserPattern.CASUAL_BROWSING: RewardRange(8, 13),
    UserPattern.DOOMSCROLLING: RewardRange(3, 5),
    UserPattern.ANXIETY_DRIVEN: RewardRange(3, 5),
}

DEFAULT_PATTERN = UserPattern.CASUAL_BROWSING


class RewardPolicy:
    """Draws a uniform bonus from the classified pattern's inclusive range."""

    def __init__(
        self,
        ranges: dict[UserPattern, RewardRange] | None = None,
        rng: random.Random | None = None,
    ):
        self.ranges = dict(ranges or DEFAULT_REWARD_RANGES)
        if DEFAULT_PATTERN not in self.ranges:
            raise ValueError(f"Reward table must define a range for {DEFAULT_PATTERN.value}")
        self._rng = rng or random.Random()

    @property
    def ceiling(self) -> int:
        """Largest bonus any pattern can earn."""
        return max(r.maximum for r in self.ranges.values())

    def range_for(self, pattern: UserPattern | str | None) -> RewardRange:
        """Range for a pattern; unknown patterns get the casual-browsing range."""
        resolved = UserPattern.from_value(pattern)
        return self.ranges.get(resolved, self.ranges[DEFAULT_PATTERN])

    def draw(self, pattern: UserPattern | str | None) -> int:
        reward_range = self.range_for(pattern)
        return self._rng.randint(reward_range.minimum, reward_range.maximum)

    def describe(self) -> dict[str, list[int]]:
        return {p.value: [r.minimum, r.maximum] for p, r in self.ranges.items()}
