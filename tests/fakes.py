"""
Stateful fake of the upstream store used by the test suite

Serves the Store API cart under ``/store`` and the REST product catalog under
``/rest`` through ``httpx.MockTransport``. Like the real store, cart totals and
line items never include add-on prices.
"""

import asyncio
import json
from collections import Counter
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx

from cartsync.application.use_cases.cart_sync_engine import CartSyncEngine
from cartsync.infrastructure.catalog.rest_addon_catalog import RestAddonCatalog
from cartsync.infrastructure.persistence.addon_ledger import AddonLedger
from cartsync.infrastructure.persistence.persistence_adapter import PersistenceAdapter
from cartsync.infrastructure.upstream.store_api_client import UpstreamCartClient

STORE_URL = "http://store.test/store"
REST_URL = "http://store.test/rest"
NONCE = "nonce-123"
CART_TOKEN = "cart-token-abc"

PRODUCT_42 = {
    "id": 42,
    "name": "Custom Mug",
    "price": "100.00",
    "addons": [
        {
            "id": "size",
            "name": "Size",
            "type": "multiple_choice",
            "required": True,
            "options": [
                {"label": "Small", "price": "0"},
                {"label": "Large", "price": "20.00", "price_type": "flat_fee"},
            ],
        },
        {
            "id": "extras",
            "name": "Extras",
            "type": "checkbox",
            "options": [
                {"label": "Gift wrap", "price": "15.00"},
                {"label": "Card", "price": "5.00"},
            ],
        },
        {"id": "engraving", "name": "Engraving", "type": "custom_text", "price": "7.50"},
        {"id": "section", "name": "Personalise", "type": "heading"},
    ],
}

PRODUCT_7 = {"id": 7, "name": "Plain Tee", "price": "25.00", "addons": []}


class FakeStoreBackend:
    """In-memory session cart with failure injection and call counting"""

    def __init__(self):
        self.products: Dict[int, Dict[str, Any]] = {42: PRODUCT_42, 7: PRODUCT_7}
        self.lines: List[Dict[str, Any]] = []
        self.coupons: Dict[str, int] = {}
        self.known_coupons: Dict[str, int] = {"SAVE10": 1000}
        self.selected_rate = "flat_rate:1"
        self.calls: Counter = Counter()
        self.requests: List[httpx.Request] = []
        self.failures: Dict[str, Any] = {}
        self.get_cart_delay = 0.0
        self.render_item_data: Optional[Callable[[int, Dict[str, Any]], List[Dict[str, Any]]]] = None
        self._next_key = 0

    # Transport

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        route = f"{request.method} {path}"
        self.calls[route] += 1
        self.requests.append(request)

        failure = self.failures.pop(route, None)
        if failure is not None:
            if isinstance(failure, Exception):
                raise failure
            status, body = failure
            return httpx.Response(status, json=body)

        if path.startswith("/rest/products/"):
            return self._product(int(path.rsplit("/", 1)[-1]))

        body = json.loads(request.content) if request.content else {}
        if route == "GET /store/cart":
            if self.get_cart_delay:
                await asyncio.sleep(self.get_cart_delay)
            return self._cart_response()
        if route == "POST /store/cart/add-item":
            return self._add_item(body)
        if route == "POST /store/cart/update-item":
            return self._update_item(body)
        if route == "POST /store/cart/remove-item":
            return self._remove_item(body)
        if route == "DELETE /store/cart/items":
            self.lines.clear()
            return httpx.Response(200, json=[], headers=self._session_headers())
        if route == "POST /store/cart/apply-coupon":
            return self._apply_coupon(body)
        if route == "POST /store/cart/remove-coupon":
            self.coupons.pop(body.get("code", "").upper(), None)
            return self._cart_response()
        if route == "POST /store/cart/select-shipping-rate":
            self.selected_rate = body["rate_id"]
            return self._cart_response()
        return httpx.Response(404, json={"code": "rest_no_route", "message": "No route"})

    # Helpers for tests

    def fail_next(self, route: str, status: int = 503, code: str = "internal_error",
                  message: str = "Upstream failure") -> None:
        """Make the next request on ``route`` fail with an HTTP error"""
        self.failures[route] = (status, {"code": code, "message": message})

    def raise_next(self, route: str, error: Exception) -> None:
        """Make the next request on ``route`` raise a transport error"""
        self.failures[route] = error

    def add_line_out_of_band(self, product_id: int, quantity: int = 1) -> str:
        """Add a line from another tab; no add-on data reaches this process"""
        return self._insert_line(product_id, quantity, {})

    def remove_line_out_of_band(self, key: str) -> None:
        self.lines = [line for line in self.lines if line["key"] != key]

    def mutating_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method != "GET" and r.url.path.startswith("/store")]

    # Handlers

    def _session_headers(self) -> Dict[str, str]:
        return {"Nonce": NONCE, "Cart-Token": CART_TOKEN}

    def _product(self, product_id: int) -> httpx.Response:
        product = self.products.get(product_id)
        if product is None:
            return httpx.Response(
                404, json={"code": "woocommerce_rest_product_invalid_id", "message": "Invalid ID."}
            )
        return httpx.Response(200, json=product)

    def _insert_line(self, product_id: int, quantity: int, config: Dict[str, Any]) -> str:
        for line in self.lines:
            if line["id"] == product_id and line["config"] == config:
                line["quantity"] += quantity
                return line["key"]
        self._next_key += 1
        key = f"line{self._next_key:03d}"
        self.lines.append({"key": key, "id": product_id, "quantity": quantity, "config": config})
        return key

    def _add_item(self, body: Dict[str, Any]) -> httpx.Response:
        product_id = int(body["id"])
        if product_id not in self.products:
            return httpx.Response(
                400, json={"code": "woocommerce_rest_cart_invalid_product", "message": "No such product"}
            )
        self._insert_line(product_id, int(body.get("quantity", 1)), body.get("addons_configuration", {}))
        return self._cart_response(status=201)

    def _update_item(self, body: Dict[str, Any]) -> httpx.Response:
        for line in self.lines:
            if line["key"] == body["key"]:
                line["quantity"] = int(body["quantity"])
                return self._cart_response()
        return httpx.Response(
            404, json={"code": "woocommerce_rest_cart_invalid_key", "message": "Cart item does not exist."}
        )

    def _remove_item(self, body: Dict[str, Any]) -> httpx.Response:
        before = len(self.lines)
        self.remove_line_out_of_band(body["key"])
        if len(self.lines) == before:
            return httpx.Response(
                404, json={"code": "woocommerce_rest_cart_invalid_key", "message": "Cart item does not exist."}
            )
        return self._cart_response()

    def _apply_coupon(self, body: Dict[str, Any]) -> httpx.Response:
        code = str(body.get("code", "")).upper()
        if code not in self.known_coupons:
            return httpx.Response(
                400,
                json={"code": "woocommerce_rest_cart_coupon_error",
                      "message": f'Coupon "{code}" does not exist!'},
            )
        self.coupons[code] = self.known_coupons[code]
        return self._cart_response()

    # Rendering

    @staticmethod
    def _cents(price: str) -> int:
        return int(Decimal(price) * 100)

    def _render_line(self, line: Dict[str, Any]) -> Dict[str, Any]:
        product = self.products[line["id"]]
        price = self._cents(product["price"])
        item_data = []
        if self.render_item_data is not None:
            item_data = self.render_item_data(line["id"], line["config"])
        return {
            "key": line["key"],
            "id": line["id"],
            "name": product["name"],
            "quantity": line["quantity"],
            "item_data": item_data,
            "prices": {"price": str(price), "currency_code": "USD", "currency_minor_unit": 2},
            "totals": {"line_total": str(price * line["quantity"]), "currency_minor_unit": 2},
            "extensions": {},
        }

    def cart_payload(self) -> Dict[str, Any]:
        items = [self._render_line(line) for line in self.lines]
        total_items = sum(int(item["totals"]["line_total"]) for item in items)
        discount = min(sum(self.coupons.values()), total_items)
        shipping = 500 if items else 0
        return {
            "items": items,
            "items_count": sum(line["quantity"] for line in self.lines),
            "coupons": [
                {"code": code, "totals": {"total_discount": str(amount)}}
                for code, amount in self.coupons.items()
            ],
            "shipping_rates": [
                {
                    "package_id": 0,
                    "name": "Shipment 1",
                    "shipping_rates": [
                        {"rate_id": "flat_rate:1", "name": "Flat rate", "price": "500",
                         "selected": self.selected_rate == "flat_rate:1"},
                        {"rate_id": "local_pickup:2", "name": "Pickup", "price": "0",
                         "selected": self.selected_rate == "local_pickup:2"},
                    ],
                }
            ],
            "totals": {
                "total_items": str(total_items),
                "total_discount": str(discount),
                "total_shipping": str(shipping),
                "total_tax": "0",
                "total_price": str(total_items - discount + shipping),
                "currency_code": "USD",
                "currency_minor_unit": 2,
            },
        }

    def _cart_response(self, status: int = 200) -> httpx.Response:
        return httpx.Response(status, json=self.cart_payload(), headers=self._session_headers())


def priced_item_data(product_id: int, config: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Render item_data the way a store with the add-on plugin's cart display does"""
    product = {42: PRODUCT_42, 7: PRODUCT_7}[product_id]
    rendered = []
    for addon in product["addons"]:
        selected = config.get(addon["id"])
        if selected is None:
            continue
        indexes = selected if isinstance(selected, list) else [selected]
        if addon.get("options"):
            for index in indexes:
                option = addon["options"][index]
                rendered.append({
                    "name": addon["name"],
                    "value": f'{option["label"]} (+ ${Decimal(option["price"]):.2f})',
                })
        else:
            rendered.append({"name": addon["name"], "value": f'{selected} (+ ${addon["price"]})'})
    return rendered


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_engine(backend: FakeStoreBackend, storage, cache_manager):
    """Wire an engine against the fake store the way the container does"""
    transport = backend.transport()
    client = UpstreamCartClient(STORE_URL, transport=transport)
    catalog = RestAddonCatalog(REST_URL, cache_manager=cache_manager, transport=transport)
    ledger = AddonLedger.create(PersistenceAdapter(storage))
    return CartSyncEngine(client, ledger, catalog, cache_manager), client, catalog
