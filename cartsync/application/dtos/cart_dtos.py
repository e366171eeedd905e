"""
Cart DTOs

Data Transfer Objects returned to the presentation layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from cartsync.domain.entities.cart import CartView


@dataclass
class CartOperationResponse:
    """Response for cart operations"""
    success: bool
    cart: Optional[CartView] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "cart": self.cart.to_dict() if self.cart is not None else None,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }
