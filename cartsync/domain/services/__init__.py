"""
Domain services

Stateless pricing rules.
"""

from .price_calculator import (
    compute_addons_unit_total,
    compute_cart_total,
    compute_line_total,
)

__all__ = ["compute_addons_unit_total", "compute_cart_total", "compute_line_total"]
