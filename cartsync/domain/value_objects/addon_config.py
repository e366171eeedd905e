"""
Add-on configuration values

A user's raw selection for one add-on field. The wire shape sent to the
upstream cart depends on the field type, so each shape is its own variant and
``serialize_addon_config`` is the only place that turns them into JSON.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import ClassVar, Dict, FrozenSet, List, Mapping, Tuple, Union

from .addon_types import AddonType

WireValue = Union[int, float, str, List[int]]


class AddonValue(ABC):
    """Base class for add-on selection variants"""

    kind: ClassVar[str]
    accepted_types: ClassVar[FrozenSet[AddonType]]

    def accepts(self, addon_type: AddonType) -> bool:
        """Whether this variant is a valid selection for ``addon_type``"""
        return addon_type in self.accepted_types

    @abstractmethod
    def is_empty(self) -> bool:
        """True when the user left the field blank"""

    @abstractmethod
    def to_wire(self) -> WireValue:
        """Upstream ``addons_configuration`` representation"""

    @abstractmethod
    def to_dict(self) -> Dict[str, object]:
        """JSON representation including the ``type`` tag"""


@dataclass(frozen=True)
class SingleChoice(AddonValue):
    """Selected option index of a single-choice field"""

    option_index: int

    kind: ClassVar[str] = "single_choice"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset({AddonType.MULTIPLE_CHOICE})

    def __post_init__(self):
        if isinstance(self.option_index, bool) or not isinstance(self.option_index, int):
            raise ValueError("option_index must be an integer")
        if self.option_index < 0:
            raise ValueError("option_index cannot be negative")

    def is_empty(self) -> bool:
        return False

    def to_wire(self) -> WireValue:
        return self.option_index

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "option_index": self.option_index}


@dataclass(frozen=True)
class MultiChoice(AddonValue):
    """Selected option indexes of a checkbox field"""

    option_indexes: Tuple[int, ...]

    kind: ClassVar[str] = "multi_choice"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset({AddonType.CHECKBOX})

    def __post_init__(self):
        indexes = tuple(self.option_indexes)
        for index in indexes:
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                raise ValueError("option_indexes must be non-negative integers")
        # order-preserving dedupe
        object.__setattr__(self, "option_indexes", tuple(dict.fromkeys(indexes)))

    def is_empty(self) -> bool:
        return not self.option_indexes

    def to_wire(self) -> WireValue:
        return list(self.option_indexes)

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "option_indexes": list(self.option_indexes)}


@dataclass(frozen=True)
class TextValue(AddonValue):
    """Free-form text"""

    text: str

    kind: ClassVar[str] = "text"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset(
        {AddonType.CUSTOM_TEXT, AddonType.CUSTOM_TEXTAREA}
    )

    def is_empty(self) -> bool:
        return not self.text.strip()

    def to_wire(self) -> WireValue:
        return self.text

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "text": self.text}


@dataclass(frozen=True)
class NumberValue(AddonValue):
    """Numeric input: a custom price or a multiplier count"""

    amount: Decimal

    kind: ClassVar[str] = "number"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset(
        {AddonType.CUSTOM_PRICE, AddonType.INPUT_MULTIPLIER}
    )

    def __post_init__(self):
        amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        if not amount.is_finite():
            raise ValueError("amount must be a finite number")
        if amount < 0:
            raise ValueError("amount cannot be negative")
        object.__setattr__(self, "amount", amount)

    def is_empty(self) -> bool:
        return self.amount == 0

    def to_wire(self) -> WireValue:
        if self.amount == self.amount.to_integral_value():
            return int(self.amount)
        return float(self.amount)

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "amount": str(self.amount)}


@dataclass(frozen=True)
class DateValue(AddonValue):
    """Date picker selection"""

    value: date

    kind: ClassVar[str] = "date"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset({AddonType.DATEPICKER})

    def is_empty(self) -> bool:
        return False

    def to_wire(self) -> WireValue:
        if isinstance(self.value, datetime):
            moment = self.value
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=timezone.utc)
        else:
            moment = datetime.combine(self.value, time.min, tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "value": self.value.isoformat()}


@dataclass(frozen=True)
class FileValue(AddonValue):
    """URL of an already uploaded file"""

    url: str

    kind: ClassVar[str] = "file"
    accepted_types: ClassVar[FrozenSet[AddonType]] = frozenset({AddonType.FILE_UPLOAD})

    def is_empty(self) -> bool:
        return not self.url.strip()

    def to_wire(self) -> WireValue:
        return self.url

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "url": self.url}


def addon_value_from_dict(data: Mapping[str, object]) -> AddonValue:
    """Rebuild a variant from its ``to_dict`` form"""
    kind = data.get("type")
    if kind == SingleChoice.kind:
        return SingleChoice(int(data["option_index"]))
    if kind == MultiChoice.kind:
        return MultiChoice(tuple(int(i) for i in data["option_indexes"]))
    if kind == TextValue.kind:
        return TextValue(str(data["text"]))
    if kind == NumberValue.kind:
        return NumberValue(Decimal(str(data["amount"])))
    if kind == DateValue.kind:
        return DateValue(date.fromisoformat(str(data["value"])))
    if kind == FileValue.kind:
        return FileValue(str(data["url"]))
    raise ValueError(f"Unknown add-on value type: {kind!r}")


def serialize_addon_config(config: Mapping[str, AddonValue]) -> Dict[str, WireValue]:
    """Build the upstream ``addons_configuration`` object"""
    payload: Dict[str, WireValue] = {}
    for field_id, value in config.items():
        if not isinstance(value, AddonValue):
            raise TypeError(
                f"Unsupported add-on value for field {field_id}: {type(value).__name__}"
            )
        payload[str(field_id)] = value.to_wire()
    return payload
