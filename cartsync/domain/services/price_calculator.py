"""
Line-item price calculation

Pure functions; all arithmetic happens in integer minor units.
"""

from typing import Iterable, Sequence

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.value_objects.money import Money


def compute_addons_unit_total(addons: Sequence[AddonSelection], currency: str) -> Money:
    """Sum of add-on prices carried by one unit of a line"""
    total = Money.zero(currency)
    for addon in addons:
        total = total.add(addon.price_per_item)
    return total


def compute_line_total(
    base_unit_price: Money, quantity: int, addons: Sequence[AddonSelection]
) -> Money:
    """(base unit price + add-on unit prices) * quantity"""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError("quantity must be an integer")
    if quantity < 0:
        raise ValueError("quantity cannot be negative")

    unit_total = base_unit_price.add(
        compute_addons_unit_total(addons, base_unit_price.currency)
    )
    return unit_total.multiply(quantity)


def compute_cart_total(line_totals: Iterable[Money], currency: str) -> Money:
    """Grand total as the sum of recomputed line totals"""
    return Money.sum(line_totals, currency)
