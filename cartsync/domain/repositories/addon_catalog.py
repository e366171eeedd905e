"""
Add-on catalog interface

Read-only lookup of the add-on definitions a product offers.
"""

from abc import ABC, abstractmethod

from cartsync.domain.entities.addon import ProductAddons
from cartsync.domain.value_objects.product_id import ProductId


class AddonCatalog(ABC):
    """Repository interface for product add-on definitions"""

    @abstractmethod
    async def get_product_addons(self, product_id: ProductId) -> ProductAddons:
        """Get the base price and add-on definitions of a product"""
