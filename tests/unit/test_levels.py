"""Level and tier derivation tests."""

import pytest

from learnhub.gamification.levels import (
    derive_level_tier,
    level_requirement,
    level_thresholds,
    tier_for_level,
)


class TestDeriveLevelTier:
    def test_level_1_at_zero_points(self):
        result = derive_level_tier(0)
        assert result["level"] == 1
        assert result["tier"] == "bronze"
        assert result["points_to_next_level"] == 10.0

    def test_one_point(self):
        result = derive_level_tier(1)
        assert result["level"] == 1
        assert result["points_to_next_level"] == 9.0

    def test_boundary_is_inclusive(self):
        """Exactly reaching a threshold crosses it."""
        result = derive_level_tier(10)
        assert result["level"] == 2
        assert result["points_to_next_level"] == 12.0

    def test_just_below_level_3(self):
        result = derive_level_tier(21.99)
        assert result["level"] == 2
        assert result["points_to_next_level"] == 0.01

    def test_level_3(self):
        result = derive_level_tier(22)
        assert result["level"] == 3
        assert result["level_start_points"] == 22.0

    def test_custom_base(self):
        result = derive_level_tier(100, base_points=100, scaling_factor=1.0)
        assert result["level"] == 2
        assert result["points_to_next_level"] == 100.0

    def test_deterministic(self):
        assert derive_level_tier(1234.56) == derive_level_tier(1234.56)

    def test_monotonic_in_points(self):
        levels = [derive_level_tier(p)["level"] for p in range(0, 5000, 7)]
        assert levels == sorted(levels)

    def test_points_to_next_is_positive(self):
        for points in (0, 0.5, 9.99, 10, 57.3, 999.99):
            assert derive_level_tier(points)["points_to_next_level"] > 0

    @pytest.mark.parametrize(("base", "scaling"), [(0, 1.2), (-5, 1.2), (10, 0.9)])
    def test_invalid_parameters(self, base, scaling):
        with pytest.raises(ValueError):
            derive_level_tier(10, base, scaling)

    def test_tier_follows_level(self):
        thresholds = level_thresholds(50)
        at_10 = thresholds[9]["cumulative"]
        assert derive_level_tier(at_10 + 0.001)["tier"] == "silver"
        assert derive_level_tier(at_10 - 0.01)["tier"] == "bronze"


class TestRequirement:
    def test_first_level_is_base(self):
        assert level_requirement(1) == 10.0

    def test_second_level(self):
        assert level_requirement(2) == 12.0

    def test_truncated_to_cents(self):
        req = level_requirement(7)
        assert req == int(req * 100) / 100


@pytest.mark.parametrize(("level", "tier"), [
    (1, "bronze"),
    (9, "bronze"),
    (10, "silver"),
    (19, "silver"),
    (20, "gold"),
    (30, "platinum"),
    (49, "platinum"),
    (50, "diamond"),
    (120, "diamond"),
])
def test_tier_for_level(level, tier):
    assert tier_for_level(level) == tier


def test_level_thresholds_cumulative():
    rows = level_thresholds(5)
    assert [r["level"] for r in rows] == [1, 2, 3, 4, 5]
    assert rows[0]["cumulative"] == 0
    assert rows[1]["cumulative"] == 10.0
    assert rows[2]["cumulative"] == 22.0
