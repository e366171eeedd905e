"""
Money value object

Represents monetary amounts as an integer number of minor units (cents) so
repeated recomputation of cart totals never drifts.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

MINOR_UNIT_DIGITS = 2
_MINOR_UNIT_FACTOR = 10 ** MINOR_UNIT_DIGITS

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "ILS": "₪",
}


@dataclass(frozen=True)
class Money:
    """
    Money value object that keeps amounts in integer minor units
    """

    cents: int
    currency: str = "USD"

    def __post_init__(self):
        """Validate money object on creation"""
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise ValueError("Money amount must be an integer number of minor units")

        if self.cents < 0:
            raise ValueError("Money amount cannot be negative")

        if not self.currency or len(self.currency) != 3:
            raise ValueError("Currency must be a 3-letter code")

        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def from_major(
        cls, amount: Union[str, int, float, Decimal], currency: str = "USD"
    ) -> "Money":
        """Create Money from a major-unit amount such as "585.00" """
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except InvalidOperation as e:
            raise ValueError(f"Invalid money amount: {amount!r}") from e
        if not value.is_finite():
            raise ValueError(f"Invalid money amount: {amount!r}")
        cents = (value * _MINOR_UNIT_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return cls(int(cents), currency)

    @classmethod
    def from_minor_units(
        cls, raw: Union[str, int], minor_unit: int = MINOR_UNIT_DIGITS, currency: str = "USD"
    ) -> "Money":
        """Create Money from a minor-unit string as returned by the Store API"""
        try:
            value = Decimal(str(raw).strip() or "0")
        except InvalidOperation as e:
            raise ValueError(f"Invalid minor-unit amount: {raw!r}") from e
        if not value.is_finite():
            raise ValueError(f"Invalid minor-unit amount: {raw!r}")
        scaled = value.scaleb(MINOR_UNIT_DIGITS - minor_unit)
        return cls(int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP)), currency)

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        """Create zero money amount"""
        return cls(0, currency)

    @classmethod
    def sum(cls, amounts: Iterable["Money"], currency: str = "USD") -> "Money":
        """Sum money amounts of a single currency"""
        total = cls.zero(currency)
        for amount in amounts:
            total = total.add(amount)
        return total

    def _check_currency(self, other: "Money", operation: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} different currencies: {self.currency} and {other.currency}"
            )

    def add(self, other: "Money") -> "Money":
        """Add two money amounts"""
        self._check_currency(other, "add")
        return Money(self.cents + other.cents, self.currency)

    def multiply(self, factor: int) -> "Money":
        """Multiply money by an integer factor"""
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise ValueError("Money can only be multiplied by an integer factor")
        if factor < 0:
            raise ValueError("Cannot multiply money by negative factor")
        return Money(self.cents * factor, self.currency)

    def percentage(self, percent: Union[int, Decimal]) -> "Money":
        """Return ``percent`` percent of this amount, rounded half-up to the minor unit"""
        value = Decimal(self.cents) * Decimal(str(percent)) / Decimal(100)
        return Money(int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)), self.currency)

    def is_zero(self) -> bool:
        """Check if amount is zero"""
        return self.cents == 0

    def to_decimal(self) -> Decimal:
        """Convert to a major-unit Decimal (display boundary only)"""
        return Decimal(self.cents) / Decimal(_MINOR_UNIT_FACTOR)

    def format_display(self) -> str:
        """Format for display to users"""
        symbol = CURRENCY_SYMBOLS.get(self.currency)
        amount = f"{self.to_decimal():,.2f}"
        if symbol:
            return f"{symbol}{amount}"
        return f"{amount} {self.currency}"

    def to_dict(self) -> dict:
        """Serialise for JSON payloads"""
        return {
            "cents": self.cents,
            "currency": self.currency,
            "display": self.format_display(),
        }

    def __str__(self) -> str:
        return self.format_display()

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.cents < other.cents

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.cents <= other.cents

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.cents > other.cents

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.cents >= other.cents

    def __add__(self, other: "Money") -> "Money":
        """Add two money amounts using + operator"""
        return self.add(other)

    def __mul__(self, factor: int) -> "Money":
        """Multiply money by a factor using * operator"""
        return self.multiply(factor)

    def __rmul__(self, factor: int) -> "Money":
        """Reverse multiply for factor * money"""
        return self.multiply(factor)
