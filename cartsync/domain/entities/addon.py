"""
Add-on entities

``AddonSelection`` is a priced choice attached to a cart line. The definitions
describe what the catalog offers for a product.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from cartsync.domain.value_objects.addon_types import AddonType, PriceType
from cartsync.domain.value_objects.money import Money


@dataclass(frozen=True)
class AddonSelection:
    """A selected add-on with its per-unit price, frozen at add-to-cart time"""

    field_id: str
    label: str
    unit_price: Money
    quantity: Optional[int] = None
    value: str = ""

    def __post_init__(self):
        if not self.field_id or not isinstance(self.field_id, str):
            raise ValueError("field_id must be a non-empty string")
        if self.quantity is not None:
            if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
                raise ValueError("quantity must be an integer")
            if self.quantity < 0:
                raise ValueError("quantity cannot be negative")

    @property
    def units(self) -> int:
        """Multiplier applied to the unit price (1 unless the add-on is counted)"""
        return 1 if self.quantity is None else self.quantity

    @property
    def price_per_item(self) -> Money:
        """Add-on contribution to one unit of the line"""
        return self.unit_price.multiply(self.units)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence"""
        return {
            "field_id": self.field_id,
            "label": self.label,
            "value": self.value,
            "unit_price": self.unit_price.cents,
            "currency": self.unit_price.currency,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AddonSelection":
        """Create from dictionary"""
        quantity = data.get("quantity")
        return cls(
            field_id=str(data["field_id"]),
            label=str(data.get("label", "")),
            unit_price=Money(int(data["unit_price"]), str(data.get("currency", "USD"))),
            quantity=None if quantity is None else int(quantity),
            value=str(data.get("value", "")),
        )


@dataclass(frozen=True)
class AddonOption:
    """One option of a choice add-on"""

    label: str
    price: Money
    price_type: PriceType = PriceType.QUANTITY_BASED


@dataclass(frozen=True)
class AddonDefinition:
    """Catalog definition of an add-on field"""

    field_id: str
    name: str
    addon_type: AddonType
    required: bool = False
    price: Optional[Money] = None
    price_type: PriceType = PriceType.QUANTITY_BASED
    options: Tuple[AddonOption, ...] = ()

    def option_at(self, index: int) -> AddonOption:
        """Return the option at ``index`` or raise IndexError"""
        if index < 0 or index >= len(self.options):
            raise IndexError(f"Option {index} does not exist for add-on {self.name}")
        return self.options[index]


@dataclass(frozen=True)
class ProductAddons:
    """A product's base price and its add-on definitions"""

    product_id: int
    base_price: Money
    addons: Tuple[AddonDefinition, ...] = field(default_factory=tuple)

    def find(self, field_id: str) -> Optional[AddonDefinition]:
        """Look up a definition by field id"""
        for addon in self.addons:
            if addon.field_id == field_id:
                return addon
        return None
