"""
Domain value objects package

Contains immutable value objects that represent concepts in the cart domain.
"""

from .addon_config import (
    AddonValue,
    DateValue,
    FileValue,
    MultiChoice,
    NumberValue,
    SingleChoice,
    TextValue,
    addon_value_from_dict,
    serialize_addon_config,
)
from .addon_types import AddonType, PriceType
from .money import Money
from .product_id import ProductId

__all__ = [
    "AddonType",
    "AddonValue",
    "DateValue",
    "FileValue",
    "Money",
    "MultiChoice",
    "NumberValue",
    "PriceType",
    "ProductId",
    "SingleChoice",
    "TextValue",
    "addon_value_from_dict",
    "serialize_addon_config",
]
