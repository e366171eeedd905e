"""
Add-on resolution

Turns a user's raw add-on selections into priced AddonSelection values and the
``addons_configuration`` wire object, validating them against the product's
add-on definitions before anything is sent upstream.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from cartsync.domain.entities.addon import AddonDefinition, AddonSelection
from cartsync.domain.value_objects.addon_config import (
    AddonValue,
    DateValue,
    FileValue,
    MultiChoice,
    NumberValue,
    SingleChoice,
    TextValue,
    WireValue,
    serialize_addon_config,
)
from cartsync.domain.value_objects.addon_types import AddonType, PriceType
from cartsync.domain.value_objects.money import Money
from cartsync.infrastructure.utilities.exceptions import AddonValidationError


@dataclass(frozen=True)
class AddonInput:
    """A user's raw selection for one add-on field"""

    field_id: str
    value: AddonValue


@dataclass(frozen=True)
class ResolvedAddons:
    """Priced selections plus the raw values to send upstream"""

    selections: Tuple[AddonSelection, ...] = ()
    addon_config: Mapping[str, AddonValue] = field(default_factory=dict)

    def wire_config(self) -> Dict[str, WireValue]:
        return serialize_addon_config(self.addon_config)

    @property
    def unit_total(self) -> Optional[Money]:
        if not self.selections:
            return None
        return Money.sum(
            (selection.price_per_item for selection in self.selections),
            self.selections[0].unit_price.currency,
        )


def price_for(price: Optional[Money], price_type: PriceType, base_unit_price: Money) -> Money:
    """Per-unit price of an add-on; percentage prices apply to the base unit price"""
    if price is None:
        return Money.zero(base_unit_price.currency)
    if price_type is PriceType.PERCENTAGE_BASED:
        return base_unit_price.percentage(price.to_decimal())
    return Money(price.cents, price.currency)


def _choice_selections(
    definition: AddonDefinition, indexes: Sequence[int], base_unit_price: Money
) -> List[AddonSelection]:
    selections = []
    for index in indexes:
        try:
            option = definition.option_at(index)
        except IndexError as e:
            raise AddonValidationError(str(e), field=definition.field_id) from e
        selections.append(
            AddonSelection(
                field_id=definition.field_id,
                label=option.label,
                unit_price=price_for(option.price, option.price_type, base_unit_price),
                value=option.label,
            )
        )
    return selections


def _resolve_one(
    definition: AddonDefinition, value: AddonValue, base_unit_price: Money
) -> List[AddonSelection]:
    addon_type = definition.addon_type
    field_price = price_for(definition.price, definition.price_type, base_unit_price)

    if isinstance(value, SingleChoice):
        return _choice_selections(definition, [value.option_index], base_unit_price)

    if isinstance(value, MultiChoice):
        return _choice_selections(definition, value.option_indexes, base_unit_price)

    if isinstance(value, NumberValue):
        if addon_type is AddonType.CUSTOM_PRICE:
            return [
                AddonSelection(
                    field_id=definition.field_id,
                    label=definition.name,
                    unit_price=Money.from_major(value.amount, base_unit_price.currency),
                    value=str(value.amount),
                )
            ]
        # input_multiplier: the field price applies once per entered unit
        if value.amount != value.amount.to_integral_value():
            raise AddonValidationError(
                f"{definition.name} needs a whole number", field=definition.field_id
            )
        count = int(value.amount)
        return [
            AddonSelection(
                field_id=definition.field_id,
                label=definition.name,
                unit_price=field_price,
                quantity=count,
                value=str(count),
            )
        ]

    if isinstance(value, (TextValue, FileValue, DateValue)):
        wire = value.to_wire()
        return [
            AddonSelection(
                field_id=definition.field_id,
                label=definition.name,
                unit_price=field_price,
                value=str(wire),
            )
        ]

    raise AddonValidationError(
        f"Unsupported selection for {definition.name}: {type(value).__name__}",
        field=definition.field_id,
    )


def resolve_addon_selections(
    definitions: Sequence[AddonDefinition],
    inputs: Sequence[AddonInput],
    base_unit_price: Money,
) -> ResolvedAddons:
    """
    Validate and price a user's add-on selections.

    Raises:
        AddonValidationError: For unknown fields, duplicate fields, a value of
            the wrong kind, an out-of-range option or a missing required field.
    """
    by_id = {definition.field_id: definition for definition in definitions}
    provided: Dict[str, AddonValue] = {}
    seen = set()

    for addon_input in inputs:
        definition = by_id.get(addon_input.field_id)
        if definition is None:
            raise AddonValidationError(
                f"Unknown add-on field: {addon_input.field_id}", field=addon_input.field_id
            )
        if addon_input.field_id in seen:
            raise AddonValidationError(
                f"Add-on field given twice: {addon_input.field_id}", field=addon_input.field_id
            )
        seen.add(addon_input.field_id)
        if definition.addon_type is AddonType.HEADING:
            continue
        if not isinstance(addon_input.value, AddonValue) or not addon_input.value.accepts(
            definition.addon_type
        ):
            raise AddonValidationError(
                f"{definition.name} does not accept a {type(addon_input.value).__name__} value",
                field=definition.field_id,
            )
        if addon_input.value.is_empty():
            continue
        provided[addon_input.field_id] = addon_input.value

    selections: List[AddonSelection] = []
    for definition in definitions:
        if definition.addon_type is AddonType.HEADING:
            continue
        value = provided.get(definition.field_id)
        if value is None:
            if definition.required:
                raise AddonValidationError(
                    f'"{definition.name}" is required. Please make a selection.',
                    field=definition.field_id,
                )
            continue
        selections.extend(_resolve_one(definition, value, base_unit_price))

    return ResolvedAddons(selections=tuple(selections), addon_config=provided)
