"""
Tests for line-item price calculation
"""

import pytest

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.services.price_calculator import (
    compute_addons_unit_total,
    compute_cart_total,
    compute_line_total,
)
from cartsync.domain.value_objects.money import Money


class TestPriceCalculator:
    """Test line and cart totals"""

    def test_line_total_with_addons(self, sample_addons):
        assert compute_line_total(Money(10000), 2, sample_addons) == Money(27000)

    def test_line_total_without_addons(self):
        assert compute_line_total(Money(2500), 3, []) == Money(7500)

    def test_counted_addon_multiplies_before_quantity(self):
        letters = AddonSelection("letters", "Letters", Money(150), quantity=4)
        # (10.00 + 4 * 1.50) * 2
        assert compute_line_total(Money(1000), 2, [letters]) == Money(3200)

    def test_zero_quantity(self, sample_addons):
        assert compute_line_total(Money(10000), 0, sample_addons) == Money.zero()

    @pytest.mark.parametrize("quantity", [-1, 1.5, True])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValueError):
            compute_line_total(Money(100), quantity, [])

    def test_addons_unit_total(self, sample_addons):
        assert compute_addons_unit_total(sample_addons, "USD") == Money(3500)
        assert compute_addons_unit_total([], "USD") == Money(0)

    def test_cart_total(self):
        assert compute_cart_total([Money(27000), Money(2500)], "USD") == Money(29500)
        assert compute_cart_total([], "USD") == Money(0)

    def test_repeated_recomputation_is_stable(self, sample_addons):
        totals = {compute_line_total(Money(1999), 3, sample_addons) for _ in range(50)}
        assert totals == {Money(16497)}
