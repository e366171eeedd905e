"""
Upstream cart gateway interface

Defines the contract for the session-cart service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from cartsync.domain.entities.cart import ServerCartSnapshot
from cartsync.domain.value_objects.addon_config import AddonValue, serialize_addon_config
from cartsync.domain.value_objects.product_id import ProductId


@dataclass(frozen=True)
class AddItemRequest:
    """Request to add a product line to the upstream cart"""

    product_id: ProductId
    quantity: int = 1
    addon_config: Mapping[str, AddonValue] = field(default_factory=dict)
    variation_id: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")

    def to_payload(self) -> Dict[str, Any]:
        """Request body for ``POST /cart/add-item``"""
        payload: Dict[str, Any] = {
            "id": self.product_id.value,
            "quantity": self.quantity,
        }
        if self.variation_id:
            payload["variation_id"] = self.variation_id
        if self.addon_config:
            payload["addons_configuration"] = serialize_addon_config(self.addon_config)
        return payload


class UpstreamCartGateway(ABC):
    """Repository interface for the upstream session cart"""

    @abstractmethod
    async def get_cart(self) -> ServerCartSnapshot:
        """Fetch the current cart"""

    @abstractmethod
    async def add_item(self, request: AddItemRequest) -> ServerCartSnapshot:
        """Add a line; not safe to retry"""

    @abstractmethod
    async def update_item(self, key: str, quantity: int) -> ServerCartSnapshot:
        """Change a line's quantity"""

    @abstractmethod
    async def remove_item(self, key: str) -> ServerCartSnapshot:
        """Remove a line"""

    @abstractmethod
    async def apply_coupon(self, code: str) -> ServerCartSnapshot:
        """Apply a coupon code"""

    @abstractmethod
    async def remove_coupon(self, code: str) -> ServerCartSnapshot:
        """Remove a coupon code"""

    @abstractmethod
    async def select_shipping_rate(self, package_id: int, rate_id: str) -> ServerCartSnapshot:
        """Choose a shipping rate for a package"""

    @abstractmethod
    async def clear_cart(self) -> ServerCartSnapshot:
        """Remove every line"""

    @abstractmethod
    async def aclose(self) -> None:
        """Release network resources"""
