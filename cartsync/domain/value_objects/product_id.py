"""Product ID value object"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class ProductId:
    """Catalog product identifier as used by the upstream store"""

    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value <= 0:
            raise ValueError("Product ID must be a positive integer")

    @classmethod
    def parse(cls, raw: Union[int, str, "ProductId"]) -> "ProductId":
        """Accept an int, a numeric string or an existing ProductId"""
        if isinstance(raw, ProductId):
            return raw
        if isinstance(raw, str) and raw.strip().isdigit():
            return cls(int(raw.strip()))
        return cls(raw)

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value
