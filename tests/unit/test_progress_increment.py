"""Unit-to-increment mapping for challenge progress."""

import pytest

from greenquest.challenges.progress import compute_increment


class TestComputeIncrement:

    @pytest.mark.parametrize("unit", ["times", "actions"])
    def test_count_units_step_by_one(self, unit):
        assert compute_increment(unit, 7) == 1

    @pytest.mark.parametrize("unit", ["km", "kg", "liters", "hours", "miles"])
    def test_physical_units_use_quantity(self, unit):
        assert compute_increment(unit, 3.5) == 3.5

    def test_unit_is_case_insensitive(self):
        assert compute_increment("KM", 2) == 2

    def test_unknown_unit_steps_by_one(self):
        assert compute_increment("items", 12) == 1

    def test_negative_quantity_never_decreases(self):
        assert compute_increment("km", -4) == 0
