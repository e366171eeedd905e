"""
Cart entities

``ServerCartSnapshot`` is what the upstream session cart reports. ``CartView``
is the reconciled, price-complete cart handed to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.services.price_calculator import compute_line_total
from cartsync.domain.value_objects.money import Money


class AddonSource(Enum):
    """Where a reconciled line got its add-on prices from"""

    SERVER = "server"
    LEDGER = "ledger"
    NONE = "none"


@dataclass(frozen=True)
class Coupon:
    """Applied coupon"""

    code: str
    discount: Money


@dataclass(frozen=True)
class ShippingRate:
    """Shipping rate offered for a package"""

    rate_id: str
    name: str
    price: Money
    selected: bool = False


@dataclass(frozen=True)
class ShippingPackage:
    """Shipping package with its rates"""

    package_id: int
    name: str
    rates: Tuple[ShippingRate, ...] = ()

    @property
    def selected_rate(self) -> Optional[ShippingRate]:
        """The chosen rate, if any"""
        return next((rate for rate in self.rates if rate.selected), None)


@dataclass(frozen=True)
class CartTotals:
    """Server-reported totals (exclude add-on prices)"""

    items: Money
    discount: Money
    shipping: Money
    tax: Money
    total: Money

    @classmethod
    def zero(cls, currency: str = "USD") -> "CartTotals":
        """Totals of an empty cart"""
        nothing = Money.zero(currency)
        return cls(nothing, nothing, nothing, nothing, nothing)


@dataclass(frozen=True)
class ServerLineItem:
    """One line of the upstream cart"""

    key: str
    product_id: int
    name: str
    quantity: int
    base_unit_price: Money
    server_line_total: Money
    server_addons: Optional[Tuple[AddonSelection, ...]] = None
    item_data: Tuple[Mapping[str, Any], ...] = ()

    @property
    def has_addon_pricing(self) -> bool:
        """True when the upstream returned priced add-ons for this line"""
        return self.server_addons is not None


@dataclass(frozen=True)
class ServerCartSnapshot:
    """Authoritative but add-on-incomplete cart reported by the upstream"""

    items: Tuple[ServerLineItem, ...]
    totals: CartTotals
    coupons: Tuple[Coupon, ...] = ()
    shipping_packages: Tuple[ShippingPackage, ...] = ()
    items_count: int = 0
    currency: str = "USD"
    # keys of lines the upstream reported but that could not be parsed
    skipped_keys: FrozenSet[str] = frozenset()

    @property
    def line_item_keys(self) -> FrozenSet[str]:
        """Keys of every live line, parsed or not"""
        return frozenset(item.key for item in self.items) | self.skipped_keys

    def find_item(self, key: str) -> Optional[ServerLineItem]:
        """Find a line by key"""
        return next((item for item in self.items if item.key == key), None)

    @classmethod
    def empty(cls, currency: str = "USD") -> "ServerCartSnapshot":
        """Snapshot of an empty cart"""
        return cls(items=(), totals=CartTotals.zero(currency), currency=currency)


@dataclass(frozen=True)
class CartLineItem:
    """Reconciled cart line with a recomputed total"""

    key: str
    product_id: int
    name: str
    quantity: int
    base_unit_price: Money
    addons: Tuple[AddonSelection, ...]
    addon_source: AddonSource
    line_total: Money

    @classmethod
    def build(
        cls,
        server_item: ServerLineItem,
        addons: Tuple[AddonSelection, ...],
        addon_source: AddonSource,
    ) -> "CartLineItem":
        """Price a server line with the given add-ons"""
        return cls(
            key=server_item.key,
            product_id=server_item.product_id,
            name=server_item.name,
            quantity=server_item.quantity,
            base_unit_price=server_item.base_unit_price,
            addons=addons,
            addon_source=addon_source,
            line_total=compute_line_total(
                server_item.base_unit_price, server_item.quantity, addons
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            "key": self.key,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "base_unit_price": self.base_unit_price.to_dict(),
            "addons": [
                {
                    "field_id": addon.field_id,
                    "label": addon.label,
                    "value": addon.value,
                    "quantity": addon.quantity,
                    "unit_price": addon.unit_price.to_dict(),
                }
                for addon in self.addons
            ],
            "addon_source": self.addon_source.value,
            "line_total": self.line_total.to_dict(),
        }


@dataclass(frozen=True)
class CartView:
    """Server snapshot overlaid with ledger-derived line totals"""

    items: Tuple[CartLineItem, ...]
    subtotal: Money
    grand_total: Money
    server_total: Money
    discount_total: Money
    shipping_total: Money
    tax_total: Money
    coupons: Tuple[Coupon, ...] = ()
    shipping_packages: Tuple[ShippingPackage, ...] = ()
    items_count: int = 0
    currency: str = "USD"
    gap_keys: Tuple[str, ...] = ()
    reconciled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        """Check if the cart has no lines"""
        return not self.items

    def find_item(self, key: str) -> Optional[CartLineItem]:
        """Find a reconciled line by key"""
        return next((item for item in self.items if item.key == key), None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal.to_dict(),
            "grand_total": self.grand_total.to_dict(),
            "server_total": self.server_total.to_dict(),
            "discount_total": self.discount_total.to_dict(),
            "shipping_total": self.shipping_total.to_dict(),
            "tax_total": self.tax_total.to_dict(),
            "coupons": [
                {"code": coupon.code, "discount": coupon.discount.to_dict()}
                for coupon in self.coupons
            ],
            "shipping_packages": [
                {
                    "package_id": package.package_id,
                    "name": package.name,
                    "rates": [
                        {
                            "rate_id": rate.rate_id,
                            "name": rate.name,
                            "price": rate.price.to_dict(),
                            "selected": rate.selected,
                        }
                        for rate in package.rates
                    ],
                }
                for package in self.shipping_packages
            ],
            "items_count": self.items_count,
            "currency": self.currency,
            "is_empty": self.is_empty,
            "gap_keys": list(self.gap_keys),
            "reconciled_at": self.reconciled_at.isoformat(),
        }
