"""Level computation tests: level = floor(sqrt(xp / 100)) + 1."""

from greenquest.gamification.leveling import compute_level, level_progress, xp_for_level


class TestLevelComputation:

    def test_level_1_at_zero_xp(self):
        assert compute_level(0) == 1

    def test_negative_xp_is_level_1(self):
        assert compute_level(-50) == 1

    def test_level_boundary_99_xp(self):
        """99 XP is still level 1."""
        assert compute_level(99) == 1

    def test_level_2_at_100_xp(self):
        assert compute_level(100) == 2

    def test_level_2_just_below_level_3(self):
        assert compute_level(399) == 2

    def test_level_3_at_400_xp(self):
        assert compute_level(400) == 3

    def test_level_11_at_10000_xp(self):
        assert compute_level(10_000) == 11

    def test_large_xp_has_no_float_drift(self):
        # (10**6)**2 * 100 sits exactly on a level boundary
        assert compute_level(100 * 10**12) == 10**6 + 1
        assert compute_level(100 * 10**12 - 1) == 10**6

    def test_monotonic(self):
        levels = [compute_level(xp) for xp in range(0, 5000, 7)]
        assert levels == sorted(levels)


class TestLevelProgress:

    def test_xp_for_level(self):
        assert xp_for_level(1) == 0
        assert xp_for_level(2) == 100
        assert xp_for_level(3) == 400
        assert xp_for_level(4) == 900

    def test_progress_into_level(self):
        info = level_progress(150)  # 50 XP into level 2
        assert info["level"] == 2
        assert info["xp_into_level"] == 50
        assert info["xp_for_level"] == 300  # 400 - 100
        assert info["next_level_xp"] == 400

    def test_progress_at_boundary(self):
        info = level_progress(400)
        assert info["level"] == 3
        assert info["xp_into_level"] == 0
