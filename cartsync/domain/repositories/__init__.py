"""
Domain repositories package

Interfaces for the external collaborators of the cart subsystem.
"""

from .addon_catalog import AddonCatalog
from .cart_gateway import AddItemRequest, UpstreamCartGateway
from .key_value_storage import KeyValueStorage

__all__ = ["AddItemRequest", "AddonCatalog", "KeyValueStorage", "UpstreamCartGateway"]
