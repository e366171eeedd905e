"""
Store API cart parsing

Turns the upstream cart JSON into a ServerCartSnapshot. Monetary amounts
arrive as minor-unit strings scaled by ``currency_minor_unit``. Add-on prices
are only present when the upstream renders them into ``item_data`` (e.g.
``"Large (+ $585.00)"``) or into an add-on extension array.
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Set, Tuple

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.entities.cart import (
    CartTotals,
    Coupon,
    ServerCartSnapshot,
    ServerLineItem,
    ShippingPackage,
    ShippingRate,
)
from cartsync.domain.value_objects.money import MINOR_UNIT_DIGITS, Money

logger = logging.getLogger(__name__)

# "Label (+ $585.00)" and the HTML-entity form "Label (+ &#36;585.00)"
PRICE_SUFFIX_PATTERN = re.compile(r"\(\+\s*(?:&#36;|\$)?\s*([0-9,.]+)\s*\)")
PRICE_SUFFIX_STRIP_PATTERN = re.compile(r"\s*\(\+\s*(?:&#36;|\$)?\s*[0-9,.]+\s*\)\s*$", re.I)

_FIELD_NAME_KEYS = ("name", "field_name", "label", "key")
_VALUE_KEYS = ("value", "field_value", "option", "selected")
_PRICE_KEYS = ("price", "price_amount", "addon_price")


def _first(data: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_major_amount(raw: Any) -> Optional[Decimal]:
    """Parse "1,290.00", "$60" or 1290 into a Decimal, None when unusable"""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        text = str(raw)
    else:
        text = re.sub(r"[^0-9.-]+", "", str(raw))
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def _addon_entries(raw_item: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    """Add-on data in order of trust: item_data, then extension arrays"""
    item_data = raw_item.get("item_data")
    if isinstance(item_data, list) and item_data:
        return [entry for entry in item_data if isinstance(entry, dict)]

    extensions = raw_item.get("extensions") or {}
    if not isinstance(extensions, dict):
        return []

    for extension_key in ("addons", "product-add-ons"):
        data = extensions.get(extension_key)
        if isinstance(data, list) and data:
            return [entry for entry in data if isinstance(entry, dict)]
        if isinstance(data, dict):
            # {"addons_data": {...}} is metadata only
            if set(data) == {"addons_data"}:
                continue
            entries = [
                entry for entry in data.values()
                if isinstance(entry, dict) and _first(entry, ("name", "field_name", "value"))
            ]
            if entries:
                return entries
    return []


def extract_server_addons(
    raw_item: Mapping[str, Any], currency: str = "USD"
) -> Optional[Tuple[AddonSelection, ...]]:
    """
    Priced add-ons the upstream reported for a line.

    Returns None unless at least one entry carries an explicit price, so
    unpriced selection identifiers leave the decision to the ledger.
    """
    seen = set()
    selections: List[AddonSelection] = []
    priced = False

    for entry in _addon_entries(raw_item):
        field_name = str(_first(entry, _FIELD_NAME_KEYS) or "Unknown")
        raw_value = str(_first(entry, _VALUE_KEYS) or "")
        value = raw_value
        price: Optional[Decimal] = None

        match = PRICE_SUFFIX_PATTERN.search(raw_value)
        if match:
            value = PRICE_SUFFIX_STRIP_PATTERN.sub("", raw_value).strip()
            price = _parse_major_amount(match.group(1).replace(",", ""))

        if price is None:
            price = _parse_major_amount(_first(entry, _PRICE_KEYS))

        dedupe_key = (field_name, value)
        if dedupe_key in seen:
            logger.debug("Skipping duplicate add-on %s=%s", field_name, value)
            continue
        seen.add(dedupe_key)

        if price is not None:
            priced = True
        selections.append(
            AddonSelection(
                field_id=field_name,
                label=value or field_name,
                unit_price=Money.from_major(price or 0, currency),
                value=value,
            )
        )

    if not priced:
        return None
    return tuple(selections)


def _minor_unit(data: Mapping[str, Any], default: int) -> int:
    raw = data.get("currency_minor_unit")
    if raw is None:
        return default
    return int(raw)


def _money(data: Mapping[str, Any], field: str, currency: str, minor_unit: int) -> Money:
    return Money.from_minor_units(data.get(field) or "0", minor_unit, currency)


def parse_line_item(raw_item: Mapping[str, Any], currency: str, minor_unit: int) -> ServerLineItem:
    """Parse one Store API cart item; raises on malformed data"""
    key = raw_item["key"]
    if not key or not isinstance(key, str):
        raise ValueError("item key must be a non-empty string")

    prices = raw_item.get("prices") or {}
    totals = raw_item.get("totals") or {}
    item_currency = str(prices.get("currency_code") or currency)
    if item_currency != currency:
        raise ValueError(f"line currency {item_currency} differs from cart currency {currency}")
    item_minor_unit = _minor_unit(prices, minor_unit)

    quantity = int(raw_item.get("quantity", 0))
    if quantity < 0:
        raise ValueError("quantity cannot be negative")

    item_data = raw_item.get("item_data")
    return ServerLineItem(
        key=key,
        product_id=int(raw_item["id"]),
        name=str(raw_item.get("name") or ""),
        quantity=quantity,
        base_unit_price=_money(prices, "price", item_currency, item_minor_unit),
        server_line_total=_money(
            totals, "line_total", item_currency, _minor_unit(totals, item_minor_unit)
        ),
        server_addons=extract_server_addons(raw_item, item_currency),
        item_data=tuple(item_data) if isinstance(item_data, list) else (),
    )


def _parse_coupons(raw_coupons: Any, currency: str, minor_unit: int) -> Tuple[Coupon, ...]:
    coupons = []
    for raw in raw_coupons or []:
        totals = raw.get("totals") or {}
        coupons.append(
            Coupon(
                code=str(raw["code"]),
                discount=_money(totals, "total_discount", currency, _minor_unit(totals, minor_unit)),
            )
        )
    return tuple(coupons)


def _parse_shipping(raw_packages: Any, currency: str, minor_unit: int) -> Tuple[ShippingPackage, ...]:
    packages = []
    for raw in raw_packages or []:
        rates = tuple(
            ShippingRate(
                rate_id=str(rate["rate_id"]),
                name=str(rate.get("name") or ""),
                price=_money(rate, "price", currency, _minor_unit(rate, minor_unit)),
                selected=bool(rate.get("selected", False)),
            )
            for rate in raw.get("shipping_rates") or []
        )
        packages.append(
            ShippingPackage(
                package_id=int(raw.get("package_id", 0)),
                name=str(raw.get("name") or ""),
                rates=rates,
            )
        )
    return tuple(packages)


def parse_cart_snapshot(payload: Any, default_currency: str = "USD") -> ServerCartSnapshot:
    """
    Parse a Store API cart response.

    Malformed line items are skipped with a warning; a malformed cart raises
    ValueError.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Cart payload must be an object, got {type(payload).__name__}")

    raw_totals = payload.get("totals") or {}
    if not isinstance(raw_totals, dict):
        raise ValueError(f"Cart totals must be an object, got {type(raw_totals).__name__}")
    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise ValueError(f"Cart items must be a list, got {type(raw_items).__name__}")

    currency = str(raw_totals.get("currency_code") or default_currency)
    try:
        minor_unit = _minor_unit(raw_totals, MINOR_UNIT_DIGITS)
    except TypeError as e:
        raise ValueError(f"Malformed currency_minor_unit: {e}") from e

    items: List[ServerLineItem] = []
    skipped_keys: Set[str] = set()
    for raw_item in raw_items:
        try:
            items.append(parse_line_item(raw_item, currency, minor_unit))
        except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            key = raw_item.get("key") if isinstance(raw_item, dict) else None
            if isinstance(key, str) and key:
                skipped_keys.add(key)
            logger.warning("⚠️ Skipping malformed cart item %s: %s", key, e)

    try:
        totals = CartTotals(
            items=_money(raw_totals, "total_items", currency, minor_unit),
            discount=_money(raw_totals, "total_discount", currency, minor_unit),
            shipping=_money(raw_totals, "total_shipping", currency, minor_unit),
            tax=_money(raw_totals, "total_tax", currency, minor_unit),
            total=_money(raw_totals, "total_price", currency, minor_unit),
        )
        coupons = _parse_coupons(payload.get("coupons"), currency, minor_unit)
        shipping = _parse_shipping(payload.get("shipping_rates"), currency, minor_unit)
        items_count = int(payload.get("items_count") or sum(item.quantity for item in items))
    except (KeyError, TypeError, AttributeError, ArithmeticError) as e:
        raise ValueError(f"Malformed cart payload: {e}") from e

    return ServerCartSnapshot(
        items=tuple(items),
        totals=totals,
        coupons=coupons,
        shipping_packages=shipping,
        items_count=items_count,
        currency=currency,
        skipped_keys=frozenset(skipped_keys),
    )
