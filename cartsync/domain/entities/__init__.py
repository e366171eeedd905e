"""
Domain entities package
"""

from .addon import AddonDefinition, AddonOption, AddonSelection, ProductAddons
from .cart import (
    AddonSource,
    CartLineItem,
    CartTotals,
    CartView,
    Coupon,
    ServerCartSnapshot,
    ServerLineItem,
    ShippingPackage,
    ShippingRate,
)

__all__ = [
    "AddonDefinition",
    "AddonOption",
    "AddonSelection",
    "AddonSource",
    "CartLineItem",
    "CartTotals",
    "CartView",
    "Coupon",
    "ProductAddons",
    "ServerCartSnapshot",
    "ServerLineItem",
    "ShippingPackage",
    "ShippingRate",
]
