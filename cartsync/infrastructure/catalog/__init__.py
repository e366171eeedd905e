"""
Add-on catalog adapters
"""

from .rest_addon_catalog import (
    RestAddonCatalog,
    StaticAddonCatalog,
    parse_addon_definitions,
    parse_product_addons,
)

__all__ = [
    "RestAddonCatalog",
    "StaticAddonCatalog",
    "parse_addon_definitions",
    "parse_product_addons",
]
