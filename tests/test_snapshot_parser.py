"""
Tests for Store API cart parsing
"""

import pytest

from cartsync.domain.value_objects.money import Money
from cartsync.infrastructure.upstream.snapshot_parser import (
    extract_server_addons,
    parse_cart_snapshot,
)


def raw_item(**overrides):
    item = {
        "key": "abc",
        "id": 42,
        "name": "Custom Mug",
        "quantity": 2,
        "prices": {"price": "10000", "currency_code": "USD", "currency_minor_unit": 2},
        "totals": {"line_total": "20000", "currency_minor_unit": 2},
        "item_data": [],
        "extensions": {},
    }
    item.update(overrides)
    return item


class TestExtractServerAddons:
    """Test recovery of add-on prices from upstream line data"""

    def test_price_suffix_in_item_data(self):
        addons = extract_server_addons(raw_item(item_data=[
            {"name": "Size", "value": "Large (+ $585.00)"},
            {"name": "Extras", "value": "Gift wrap (+ &#36;1,290.50)"},
        ]))
        assert [(a.field_id, a.value, a.unit_price) for a in addons] == [
            ("Size", "Large", Money(58500)),
            ("Extras", "Gift wrap", Money(129050)),
        ]

    def test_explicit_price_field(self):
        addons = extract_server_addons(raw_item(item_data=[
            {"name": "Engraving", "value": "Hi", "price": "7.50"},
        ]))
        assert addons[0].unit_price == Money(750)
        assert addons[0].label == "Hi"

    def test_explicit_zero_price_counts_as_priced(self):
        addons = extract_server_addons(raw_item(item_data=[
            {"name": "Size", "value": "Small (+ $0.00)"},
        ]))
        assert addons is not None
        assert addons[0].unit_price == Money(0)

    def test_unpriced_selections_return_none(self):
        assert extract_server_addons(raw_item(item_data=[
            {"name": "Size", "value": "Large"},
        ])) is None
        assert extract_server_addons(raw_item()) is None

    def test_unpriced_entries_of_a_priced_line_are_zero(self):
        addons = extract_server_addons(raw_item(item_data=[
            {"name": "Size", "value": "Large (+ $20.00)"},
            {"name": "Note", "value": "Thanks"},
        ]))
        assert [a.unit_price for a in addons] == [Money(2000), Money(0)]

    def test_duplicates_are_skipped(self):
        addons = extract_server_addons(raw_item(item_data=[
            {"name": "Size", "value": "Large (+ $20.00)"},
            {"name": "Size", "value": "Large (+ $20.00)"},
        ]))
        assert len(addons) == 1

    def test_extension_array(self):
        addons = extract_server_addons(raw_item(
            item_data=[],
            extensions={"addons": [{"field_name": "Size", "value": "Large", "price": 20}]},
        ))
        assert addons[0].field_id == "Size"
        assert addons[0].unit_price == Money(2000)

    def test_extension_metadata_only_is_ignored(self):
        addons = extract_server_addons(raw_item(
            item_data=[],
            extensions={"product-add-ons": {"addons_data": {"size": 1}}},
        ))
        assert addons is None


class TestParseCartSnapshot:
    """Test parsing of whole cart responses"""

    @pytest.fixture
    def payload(self):
        return {
            "items": [raw_item()],
            "items_count": 2,
            "coupons": [{"code": "save10", "totals": {"total_discount": "1000"}}],
            "shipping_rates": [{
                "package_id": 0,
                "name": "Shipment 1",
                "shipping_rates": [
                    {"rate_id": "flat_rate:1", "name": "Flat", "price": "500", "selected": True},
                ],
            }],
            "totals": {
                "total_items": "20000",
                "total_discount": "1000",
                "total_shipping": "500",
                "total_tax": "0",
                "total_price": "19500",
                "currency_code": "USD",
                "currency_minor_unit": 2,
            },
        }

    def test_parse(self, payload):
        snapshot = parse_cart_snapshot(payload)
        item = snapshot.items[0]
        assert item.key == "abc"
        assert item.product_id == 42
        assert item.base_unit_price == Money(10000)
        assert item.server_line_total == Money(20000)
        assert not item.has_addon_pricing
        assert snapshot.totals.total == Money(19500)
        assert snapshot.totals.discount == Money(1000)
        assert snapshot.coupons[0].code == "save10"
        assert snapshot.shipping_packages[0].selected_rate.rate_id == "flat_rate:1"
        assert snapshot.items_count == 2

    def test_minor_unit_scaling(self, payload):
        payload["totals"]["currency_minor_unit"] = 0
        payload["totals"]["total_price"] = "195"
        payload["items"][0]["prices"]["currency_minor_unit"] = 0
        payload["items"][0]["prices"]["price"] = "100"
        snapshot = parse_cart_snapshot(payload)
        assert snapshot.totals.total == Money(19500)
        assert snapshot.items[0].base_unit_price == Money(10000)

    def test_malformed_items_are_skipped(self, payload):
        payload["items"].append({"id": 7})
        payload["items"].append(raw_item(key="", id=7))
        snapshot = parse_cart_snapshot(payload)
        assert snapshot.line_item_keys == frozenset({"abc"})

    def test_skipped_items_stay_live(self, payload):
        payload["items"].append(raw_item(key="neg", prices={"price": "-100"}))
        payload["items"].append(raw_item(key="eur", prices={"price": "100", "currency_code": "EUR"}))
        snapshot = parse_cart_snapshot(payload)
        assert [item.key for item in snapshot.items] == ["abc"]
        assert snapshot.skipped_keys == frozenset({"neg", "eur"})
        assert snapshot.line_item_keys == frozenset({"abc", "neg", "eur"})

    def test_empty_cart(self):
        snapshot = parse_cart_snapshot({"items": [], "totals": {}})
        assert snapshot.items == ()
        assert snapshot.totals.total == Money(0)
        assert snapshot.items_count == 0

    @pytest.mark.parametrize("payload", [
        {"items": 5, "totals": {}},
        {"items": {"abc": {}}, "totals": {}},
        {"items": [], "totals": [1, 2]},
        {"items": [], "totals": "19500"},
        {"items": [], "totals": {"currency_minor_unit": [2]}},
    ])
    def test_malformed_cart_shape(self, payload):
        with pytest.raises(ValueError):
            parse_cart_snapshot(payload)

    @pytest.mark.parametrize("payload", [None, [], "cart"])
    def test_not_an_object(self, payload):
        with pytest.raises(ValueError):
            parse_cart_snapshot(payload)

    def test_malformed_coupons(self, payload):
        payload["coupons"] = [{"totals": {}}]
        with pytest.raises(ValueError):
            parse_cart_snapshot(payload)
