"""
Tests for the Store API session-cart client
"""

import json

import httpx
import pytest
import pytest_asyncio

from cartsync.domain.repositories.cart_gateway import AddItemRequest
from cartsync.domain.value_objects.addon_config import MultiChoice, SingleChoice
from cartsync.domain.value_objects.money import Money
from cartsync.domain.value_objects.product_id import ProductId
from cartsync.infrastructure.logging.logging_config import get_performance_metrics
from cartsync.infrastructure.upstream.store_api_client import UpstreamCartClient
from cartsync.infrastructure.utilities.exceptions import UpstreamRejected, UpstreamUnavailable
from fakes import CART_TOKEN, NONCE, STORE_URL


@pytest_asyncio.fixture
async def client(backend):
    async with UpstreamCartClient(STORE_URL, transport=backend.transport()) as cart_client:
        yield cart_client


class TestUpstreamCartClient:
    """Test cart operations against the fake store"""

    @pytest.mark.asyncio
    async def test_get_empty_cart(self, client, backend):
        snapshot = await client.get_cart()
        assert snapshot.items == ()
        assert backend.calls["GET /store/cart"] == 1

    @pytest.mark.asyncio
    async def test_add_item_sends_addons_configuration(self, client, backend):
        request = AddItemRequest(
            ProductId(42), quantity=2,
            addon_config={"size": SingleChoice(1), "extras": MultiChoice((0,))},
        )
        snapshot = await client.add_item(request)

        sent = json.loads(backend.requests[-1].content)
        assert sent == {
            "id": 42,
            "quantity": 2,
            "addons_configuration": {"size": 1, "extras": [0]},
        }
        item = snapshot.items[0]
        assert item.quantity == 2
        assert item.base_unit_price == Money(10000)

    @pytest.mark.asyncio
    async def test_session_headers_replayed_on_mutations(self, client, backend):
        await client.get_cart()
        assert client.nonce == NONCE
        assert client.cart_token == CART_TOKEN

        await client.add_item(AddItemRequest(ProductId(7)))
        mutation = backend.mutating_requests()[-1]
        assert mutation.headers["Nonce"] == NONCE
        assert mutation.headers["X-WC-Store-API-Nonce"] == NONCE
        assert mutation.headers["Cart-Token"] == CART_TOKEN

    @pytest.mark.asyncio
    async def test_get_does_not_send_nonce(self, client, backend):
        await client.get_cart()
        await client.get_cart()
        assert "Nonce" not in backend.requests[-1].headers

    @pytest.mark.asyncio
    async def test_update_and_remove(self, client, backend):
        key = backend.add_line_out_of_band(7)
        snapshot = await client.update_item(key, 5)
        assert snapshot.find_item(key).quantity == 5
        snapshot = await client.remove_item(key)
        assert snapshot.items == ()

    @pytest.mark.asyncio
    async def test_coupons_and_shipping(self, client, backend):
        backend.add_line_out_of_band(7, 2)
        snapshot = await client.apply_coupon("save10")
        assert snapshot.coupons[0].code == "SAVE10"
        assert snapshot.totals.discount == Money(1000)
        snapshot = await client.remove_coupon("save10")
        assert snapshot.coupons == ()
        snapshot = await client.select_shipping_rate(0, "local_pickup:2")
        assert snapshot.shipping_packages[0].selected_rate.rate_id == "local_pickup:2"

    @pytest.mark.asyncio
    async def test_clear_cart_refetches_when_given_a_list(self, client, backend):
        backend.add_line_out_of_band(7)
        snapshot = await client.clear_cart()
        assert snapshot.items == ()
        assert backend.calls["DELETE /store/cart/items"] == 1
        assert backend.calls["GET /store/cart"] == 1

    @pytest.mark.asyncio
    async def test_rejection_carries_upstream_code(self, client):
        with pytest.raises(UpstreamRejected) as exc_info:
            await client.apply_coupon("bogus")
        error = exc_info.value
        assert error.status_code == 400
        assert error.code == "woocommerce_rest_cart_coupon_error"
        assert "does not exist" in error.user_message
        assert not error.retryable

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, client, backend):
        backend.fail_next("GET /store/cart", 502)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await client.get_cart()
        assert exc_info.value.status_code == 502
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_transport_errors_are_unavailable(self, client, backend):
        backend.raise_next("GET /store/cart", httpx.ConnectError("refused"))
        with pytest.raises(UpstreamUnavailable):
            await client.get_cart()
        backend.raise_next("GET /store/cart", httpx.ReadTimeout("slow"))
        with pytest.raises(UpstreamUnavailable):
            await client.get_cart()

    @pytest.mark.asyncio
    async def test_add_item_not_retried(self, client, backend):
        backend.fail_next("POST /store/cart/add-item", 503)
        with pytest.raises(UpstreamUnavailable):
            await client.add_item(AddItemRequest(ProductId(7)))
        assert backend.calls["POST /store/cart/add-item"] == 1
        assert backend.lines == []

    @pytest.mark.asyncio
    async def test_invalid_json_is_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with UpstreamCartClient(STORE_URL, transport=transport) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.get_cart()

    @pytest.mark.asyncio
    async def test_malformed_cart_is_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "a", "cart"]))
        async with UpstreamCartClient(STORE_URL, transport=transport) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.get_cart()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"items": 5, "totals": {}}, {"items": [], "totals": "x"}])
    async def test_malformed_cart_shape_is_unavailable(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        async with UpstreamCartClient(STORE_URL, transport=transport) as client:
            with pytest.raises(UpstreamUnavailable):
                await client.get_cart()

    @pytest.mark.asyncio
    async def test_requests_are_measured(self, client, backend):
        backend.fail_next("GET /store/cart", 500)
        with pytest.raises(UpstreamUnavailable):
            await client.get_cart()
        await client.get_cart()
        metrics = get_performance_metrics()
        assert metrics["total_requests"] == 2
        assert metrics["error_requests"] == 1

    @pytest.mark.asyncio
    async def test_borrowed_http_client_is_not_closed(self, backend):
        http_client = httpx.AsyncClient(base_url=STORE_URL, transport=backend.transport())
        client = UpstreamCartClient(STORE_URL, http_client=http_client)
        await client.aclose()
        assert not http_client.is_closed
        await http_client.aclose()
