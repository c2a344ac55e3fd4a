"""
Tests for the bonus scroll reward table.
"""

import random

import pytest

from scroll_guard.common_types import UserPattern
from scroll_guard.reward_policy import DEFAULT_REWARD_RANGES, RewardPolicy, RewardRange


class TestRewardPolicy:
    """Drawing bonuses from the reward table."""

    @pytest.mark.parametrize("pattern", list(UserPattern))
    def test_draw_within_range(self, pattern):
        """Test that every draw lands in the pattern's inclusive range."""
        expected = DEFAULT_REWARD_RANGES[pattern]

        for seed in range(200):
            policy = RewardPolicy(rng=random.Random(seed))
            assert policy.draw(pattern) in expected

    def test_draw_covers_both_bounds(self):
        """Test that both ends of a range are reachable."""
        policy = RewardPolicy(rng=random.Random(7))

        draws = {policy.draw(UserPattern.DOOMSCROLLING) for _ in range(500)}

        assert draws == {3, 4, 5}

    def test_string_pattern_accepted(self, reward_policy):
        assert reward_policy.draw("Deep Focus/Learning") in RewardRange(20, 25)

    @pytest.mark.parametrize("pattern", ["Hyperfocus", "", None, 12])
    def test_unknown_pattern_uses_casual_range(self, reward_policy, pattern):
        """Test that unknown patterns fall back to the casual-browsing range."""
        assert reward_policy.range_for(pattern) == RewardRange(8, 13)
        assert reward_policy.draw(pattern) in RewardRange(8, 13)

    def test_seeded_draws_repeat(self):
        first = RewardPolicy(rng=random.Random(42))
        second = RewardPolicy(rng=random.Random(42))

        assert [first.draw(p) for p in UserPattern] == [second.draw(p) for p in UserPattern]

    def test_ceiling(self, reward_policy):
        assert reward_policy.ceiling == 25

    def test_custom_table_requires_casual_range(self):
        with pytest.raises(ValueError):
            RewardPolicy(ranges={UserPattern.DEEP_FOCUS: RewardRange(1, 2)})

    def test_describe(self, reward_policy):
        described = reward_policy.describe()

        assert described["Passive Consumption/Doomscrolling"] == [3, 5]
        assert len(described) == 6
