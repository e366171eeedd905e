"""
Store API session-cart client

Async httpx client for the upstream cart. The session cookie lives in the
client's cookie jar; the nonce and cart token the upstream hands out are
captured from response headers and replayed on mutating calls. No request is
retried here: add-item is not idempotent.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from cartsync.domain.entities.cart import ServerCartSnapshot
from cartsync.domain.repositories.cart_gateway import AddItemRequest, UpstreamCartGateway
from cartsync.infrastructure.logging.logging_config import UpstreamRequestLog, log_performance
from cartsync.infrastructure.upstream.snapshot_parser import parse_cart_snapshot
from cartsync.infrastructure.utilities.constants import UpstreamSettings
from cartsync.infrastructure.utilities.exceptions import UpstreamRejected, UpstreamUnavailable


def build_http_client(
    base_url: str,
    timeout: float = UpstreamSettings.DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    auth: Optional[httpx.Auth] = None,
) -> httpx.AsyncClient:
    """Shared construction of upstream httpx clients"""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        headers={"Accept": "application/json"},
        transport=transport,
        auth=auth,
    )


def rejection_from_response(response: httpx.Response) -> UpstreamRejected:
    """Build UpstreamRejected from a ``{code, message}`` error body"""
    code = None
    message = f"Upstream rejected the request with HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or message
    return UpstreamRejected(message, status_code=response.status_code, code=code)


class UpstreamCartClient(UpstreamCartGateway):
    """Client for the Store API ``/cart`` endpoints"""

    def __init__(
        self,
        base_url: str,
        timeout: float = UpstreamSettings.DEFAULT_TIMEOUT_SECONDS,
        currency: str = "USD",
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(base_url, timeout, transport)
        self._currency = currency
        self._nonce: Optional[str] = None
        self._cart_token: Optional[str] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def nonce(self) -> Optional[str]:
        return self._nonce

    @property
    def cart_token(self) -> Optional[str]:
        return self._cart_token

    async def __aenter__(self) -> "UpstreamCartClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it"""
        if self._owns_client:
            await self._client.aclose()

    # Cart operations

    async def get_cart(self) -> ServerCartSnapshot:
        """Fetch the current cart"""
        return await self._request("GET", UpstreamSettings.CART_PATH)

    async def add_item(self, request: AddItemRequest) -> ServerCartSnapshot:
        """Add a line; a retry may create a duplicate line"""
        self._logger.info(
            "🛒 ADD ITEM: product=%s quantity=%d addons=%d",
            request.product_id,
            request.quantity,
            len(request.addon_config),
        )
        return await self._request(
            "POST", UpstreamSettings.ADD_ITEM_PATH, payload=request.to_payload()
        )

    async def update_item(self, key: str, quantity: int) -> ServerCartSnapshot:
        """Change a line's quantity"""
        return await self._request(
            "POST", UpstreamSettings.UPDATE_ITEM_PATH, payload={"key": key, "quantity": quantity}
        )

    async def remove_item(self, key: str) -> ServerCartSnapshot:
        """Remove a line"""
        return await self._request("POST", UpstreamSettings.REMOVE_ITEM_PATH, payload={"key": key})

    async def apply_coupon(self, code: str) -> ServerCartSnapshot:
        """Apply a coupon code"""
        return await self._request("POST", UpstreamSettings.APPLY_COUPON_PATH, payload={"code": code})

    async def remove_coupon(self, code: str) -> ServerCartSnapshot:
        """Remove a coupon code"""
        return await self._request("POST", UpstreamSettings.REMOVE_COUPON_PATH, payload={"code": code})

    async def select_shipping_rate(self, package_id: int, rate_id: str) -> ServerCartSnapshot:
        """Choose a shipping rate for a package"""
        return await self._request(
            "POST",
            UpstreamSettings.SELECT_SHIPPING_PATH,
            payload={"package_id": package_id, "rate_id": rate_id},
        )

    async def clear_cart(self) -> ServerCartSnapshot:
        """Remove every line and return the resulting cart"""
        payload = await self._send("DELETE", UpstreamSettings.CART_ITEMS_PATH)
        if isinstance(payload, list):
            # the endpoint answers with the remaining items, not a cart
            return await self.get_cart()
        return self._parse(payload)

    # Internals

    def _headers(self, method: str) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if method != "GET" and self._nonce:
            for header in UpstreamSettings.NONCE_HEADERS:
                headers[header] = self._nonce
        if self._cart_token:
            headers[UpstreamSettings.CART_TOKEN_HEADER] = self._cart_token
        return headers

    def _capture_session_headers(self, response: httpx.Response) -> None:
        for header in UpstreamSettings.NONCE_HEADERS:
            nonce = response.headers.get(header)
            if nonce:
                self._nonce = nonce
                break
        cart_token = response.headers.get(UpstreamSettings.CART_TOKEN_HEADER)
        if cart_token:
            self._cart_token = cart_token

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> ServerCartSnapshot:
        return self._parse(await self._send(method, path, payload))

    def _parse(self, payload: Any) -> ServerCartSnapshot:
        try:
            return parse_cart_snapshot(payload, self._currency)
        except ValueError as e:
            raise UpstreamUnavailable(f"Malformed cart response: {e}") from e

    async def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        started = time.perf_counter()
        status_code: Optional[int] = None
        status = "error"
        try:
            try:
                response = await self._client.request(
                    method, path, json=payload, headers=self._headers(method)
                )
            except httpx.TimeoutException as e:
                self._logger.error("⏱️ UPSTREAM TIMEOUT: %s %s", method, path)
                raise UpstreamUnavailable(f"Timed out calling {method} {path}") from e
            except httpx.RequestError as e:
                self._logger.error("💥 UPSTREAM TRANSPORT ERROR: %s %s: %s", method, path, e)
                raise UpstreamUnavailable(f"Cannot reach upstream for {method} {path}: {e}") from e

            status_code = response.status_code
            self._capture_session_headers(response)

            if status_code >= 500:
                self._logger.error("💥 UPSTREAM ERROR: %s %s -> %d", method, path, status_code)
                raise UpstreamUnavailable(
                    f"Upstream returned HTTP {status_code} for {method} {path}",
                    status_code=status_code,
                )
            if status_code >= 400:
                rejection = rejection_from_response(response)
                self._logger.warning(
                    "🚫 UPSTREAM REJECTED: %s %s -> %d %s", method, path, status_code, rejection.code
                )
                raise rejection

            try:
                body = response.json()
            except ValueError as e:
                raise UpstreamUnavailable(
                    f"Upstream returned invalid JSON for {method} {path}", status_code=status_code
                ) from e

            status = "success"
            return body
        finally:
            log_performance(
                UpstreamRequestLog(
                    method=method,
                    endpoint=path,
                    response_time=time.perf_counter() - started,
                    status=status,
                    status_code=status_code,
                )
            )
