"""
Request bodies for the cart proxy API
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from cartsync.application.services.addon_resolution import AddonInput
from cartsync.domain.value_objects.addon_config import (
    AddonValue,
    DateValue,
    FileValue,
    MultiChoice,
    NumberValue,
    SingleChoice,
    TextValue,
)


class SingleChoiceInput(BaseModel):
    type: Literal["single_choice"]
    field_id: str = Field(min_length=1)
    option_index: int = Field(ge=0)

    def to_value(self) -> AddonValue:
        return SingleChoice(self.option_index)


class MultiChoiceInput(BaseModel):
    type: Literal["multi_choice"]
    field_id: str = Field(min_length=1)
    option_indexes: List[Annotated[int, Field(ge=0)]] = Field(default_factory=list)

    def to_value(self) -> AddonValue:
        return MultiChoice(tuple(self.option_indexes))


class TextInput(BaseModel):
    type: Literal["text"]
    field_id: str = Field(min_length=1)
    text: str = ""

    def to_value(self) -> AddonValue:
        return TextValue(self.text)


class NumberInput(BaseModel):
    type: Literal["number"]
    field_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, allow_inf_nan=False)

    def to_value(self) -> AddonValue:
        return NumberValue(self.amount)


class DateInput(BaseModel):
    type: Literal["date"]
    field_id: str = Field(min_length=1)
    value: date

    def to_value(self) -> AddonValue:
        return DateValue(self.value)


class FileInput(BaseModel):
    type: Literal["file"]
    field_id: str = Field(min_length=1)
    url: str = ""

    def to_value(self) -> AddonValue:
        return FileValue(self.url)


AddonInputBody = Annotated[
    Union[SingleChoiceInput, MultiChoiceInput, TextInput, NumberInput, DateInput, FileInput],
    Field(discriminator="type"),
]


class AddItemBody(BaseModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(default=1, gt=0)
    variation_id: Optional[int] = Field(default=None, gt=0)
    addons: List[AddonInputBody] = Field(default_factory=list)

    def addon_inputs(self) -> List[AddonInput]:
        """Convert the posted selections into resolver inputs"""
        return [AddonInput(field_id=addon.field_id, value=addon.to_value()) for addon in self.addons]


class UpdateItemBody(BaseModel):
    key: str = Field(min_length=1)
    quantity: int = Field(ge=0)


class RemoveItemBody(BaseModel):
    key: str = Field(min_length=1)


class CouponBody(BaseModel):
    code: str = Field(min_length=1)


class ShippingBody(BaseModel):
    package_id: int = Field(ge=0)
    rate_id: str = Field(min_length=1)
