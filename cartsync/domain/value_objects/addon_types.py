"""Add-on field and price type enumerations"""

import re
from enum import Enum


class AddonType(Enum):
    """Kinds of add-on fields a product can define"""

    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOX = "checkbox"
    CUSTOM_TEXT = "custom_text"
    CUSTOM_TEXTAREA = "custom_textarea"
    FILE_UPLOAD = "file_upload"
    CUSTOM_PRICE = "custom_price"
    INPUT_MULTIPLIER = "input_multiplier"
    DATEPICKER = "datepicker"
    HEADING = "heading"

    @classmethod
    def parse(cls, raw: str) -> "AddonType":
        """Parse a type name in any casing (``MULTIPLE_CHOICE``, ``multiple-choice``)"""
        if not raw:
            return cls.CUSTOM_TEXT
        normalized = re.sub(r"[^a-z]", "_", str(raw).lower())
        normalized = re.sub(r"_+", "_", normalized).strip("_")
        try:
            return cls(normalized)
        except ValueError as e:
            raise ValueError(f"Unknown add-on type: {raw}") from e


class PriceType(Enum):
    """How an add-on price applies to the line"""

    FLAT_FEE = "flat_fee"
    QUANTITY_BASED = "quantity_based"
    PERCENTAGE_BASED = "percentage_based"

    @classmethod
    def parse(cls, raw: str) -> "PriceType":
        """Parse a price type, defaulting to per-unit pricing"""
        if not raw:
            return cls.QUANTITY_BASED
        try:
            return cls(str(raw).lower())
        except ValueError:
            return cls.QUANTITY_BASED
